"""Patch operation models — the closed set of document mutations.

The JSON list form of these ops is the wire contract shared by interactive
edits and automation callers.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from framepatch.errors import ValidationError
from framepatch.models.document import Frame, Node

_OP_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class SetProp(BaseModel):
    """Set the value at a slash path inside a node's layout/style/props."""

    model_config = _OP_CONFIG

    op: Literal["SetProp"] = "SetProp"
    id: str
    path: str
    value: Any = None


class DeleteProp(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["DeleteProp"] = "DeleteProp"
    id: str
    path: str


class InsertNode(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["InsertNode"] = "InsertNode"
    node: Node


class RemoveNode(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["RemoveNode"] = "RemoveNode"
    id: str


class ReplaceNode(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["ReplaceNode"] = "ReplaceNode"
    id: str
    node: Node


class AttachChild(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["AttachChild"] = "AttachChild"
    parent_id: str
    child_id: str
    index: int = -1  # -1 appends


class DetachChild(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["DetachChild"] = "DetachChild"
    parent_id: str
    child_id: str


class MoveNode(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["MoveNode"] = "MoveNode"
    id: str
    new_parent_id: str
    index: int = -1


class InsertFrame(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["InsertFrame"] = "InsertFrame"
    frame: Frame


class RemoveFrame(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["RemoveFrame"] = "RemoveFrame"
    frame_id: str


class SetFrameProp(BaseModel):
    model_config = _OP_CONFIG

    op: Literal["SetFrameProp"] = "SetFrameProp"
    frame_id: str
    path: str
    value: Any = None


class Batch(BaseModel):
    """Ordered ops applied atomically against one working copy."""

    model_config = _OP_CONFIG

    op: Literal["Batch"] = "Batch"
    ops: list[PatchOp] = Field(default_factory=list)


PatchOp = Annotated[
    Union[
        SetProp,
        DeleteProp,
        InsertNode,
        RemoveNode,
        ReplaceNode,
        AttachChild,
        DetachChild,
        MoveNode,
        InsertFrame,
        RemoveFrame,
        SetFrameProp,
        Batch,
    ],
    Field(discriminator="op"),
]

Batch.model_rebuild()

_OPS_ADAPTER = TypeAdapter(list[PatchOp])


def _normalize(raw: Any) -> Any:
    """Map legacy automation spellings onto the canonical op records."""
    if not isinstance(raw, dict):
        return raw
    data = dict(raw)
    if data.get("op") == "DeleteNode":
        data["op"] = "RemoveNode"
    if data.get("op") == "ReplaceNode" and "node" not in data and "newNode" in data:
        data["node"] = data.pop("newNode")
    if data.get("op") == "Batch" and isinstance(data.get("ops"), list):
        data["ops"] = [_normalize(item) for item in data["ops"]]
    return data


def parse_ops(data: Any) -> list[PatchOp]:
    """Validate a JSON op list (or a single op object) into patch ops."""
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValidationError(f"Expected a list of patch ops, got {type(data).__name__}")
    try:
        return _OPS_ADAPTER.validate_python([_normalize(item) for item in data])
    except SchemaError as e:
        raise ValidationError(f"Malformed patch ops: {e.errors(include_url=False)}") from e


def dump_ops(ops: Iterable[PatchOp]) -> list[dict[str, Any]]:
    return [op.model_dump(mode="json", by_alias=True) for op in ops]


def iter_primitive(ops: Iterable[PatchOp]) -> Iterator[PatchOp]:
    """Yield every non-Batch op in application order."""
    for op in ops:
        if isinstance(op, Batch):
            yield from iter_primitive(op.ops)
        else:
            yield op

