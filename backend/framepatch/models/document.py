"""Document data model — frames, a flat node map, and component definitions.

Every model here is frozen. Edits produce new values (``model_copy`` for
structural sharing, full re-validation where a value schema must be checked),
so a ``Document`` held by a caller is a stable snapshot.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Point(BaseModel):
    model_config = _MODEL_CONFIG

    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    model_config = _MODEL_CONFIG

    width: float = 0.0
    height: float = 0.0


class CanvasPlacement(BaseModel):
    """World-space placement of a frame on the infinite canvas."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    position: Point = Field(default_factory=Point)
    size: Size = Field(default_factory=Size)


class NodeType(str, enum.Enum):
    CONTAINER = "container"
    TEXT = "text"
    IMAGE = "image"
    ICON = "icon"
    SPACER = "spacer"
    INSTANCE = "instance"
    SLOT = "slot"


# ---------------------------------------------------------------------------
# Value schemas for the free-form layout/style dicts.
# Extra keys pass through; only the keys the engine reads are checked.
# ---------------------------------------------------------------------------


class _PositionSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    mode: Literal["auto", "absolute"]
    x: float = 0.0
    y: float = 0.0


class _AxisSizeSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    mode: Literal["hug", "fill", "fixed"]
    value: float | None = None

    @model_validator(mode="after")
    def _fixed_needs_value(self) -> _AxisSizeSchema:
        if self.mode == "fixed" and self.value is None:
            raise ValueError("fixed size requires a numeric 'value'")
        return self


class _SizeSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    width: _AxisSizeSchema | None = None
    height: _AxisSizeSchema | None = None


class _PaddingSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0


class _AutoLayoutSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    direction: Literal["horizontal", "vertical"] = "vertical"
    gap: float = Field(0.0, ge=0)
    padding: float | _PaddingSchema = 0.0


class _LayoutSchema(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    position: _PositionSchema | None = None
    size: _SizeSchema | None = None
    auto_layout: _AutoLayoutSchema | None = Field(None, alias="autoLayout")


class _StyleSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    opacity: float | None = Field(None, ge=0.0, le=1.0)
    visible: bool | None = None


class Node(BaseModel):
    """A typed element of the design tree.

    ``patch_target`` is the node's own id when it can be edited directly, and
    ``None`` for expanded-instance descendants. It defaults to the id.
    """

    model_config = _MODEL_CONFIG

    id: str = Field(..., min_length=1)
    name: str = ""
    type: NodeType
    layout: dict[str, Any] = Field(default_factory=dict)
    style: dict[str, Any] = Field(default_factory=dict)
    props: dict[str, Any] = Field(default_factory=dict)
    child_ids: tuple[str, ...] = ()
    patch_target: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_patch_target(cls, data: Any) -> Any:
        if isinstance(data, dict) and "patchTarget" not in data and "patch_target" not in data:
            data = {**data, "patch_target": data.get("id")}
        return data

    @model_validator(mode="after")
    def _check_invariants(self) -> Node:
        if self.patch_target is not None and self.patch_target != self.id:
            raise ValueError(f"patchTarget of {self.id!r} must be null or the node's own id")
        if len(set(self.child_ids)) != len(self.child_ids):
            raise ValueError(f"childIds of {self.id!r} contain duplicates")
        if self.id in self.child_ids:
            raise ValueError(f"node {self.id!r} lists itself as a child")
        _LayoutSchema.model_validate(self.layout)
        _StyleSchema.model_validate(self.style)
        return self

    @property
    def is_patchable(self) -> bool:
        return self.patch_target is not None

    @property
    def x(self) -> float | None:
        position = self.layout.get("position") or {}
        if position.get("mode") == "absolute":
            return float(position.get("x", 0.0))
        return None

    @property
    def y(self) -> float | None:
        position = self.layout.get("position") or {}
        if position.get("mode") == "absolute":
            return float(position.get("y", 0.0))
        return None

    @property
    def auto_layout(self) -> dict[str, Any] | None:
        value = self.layout.get("autoLayout")
        return value if isinstance(value, dict) else None

    @property
    def is_auto_layout(self) -> bool:
        return self.auto_layout is not None

    def with_child_ids(self, child_ids: list[str] | tuple[str, ...]) -> Node:
        return self.model_copy(update={"child_ids": tuple(child_ids)})


class FrameKind(str, enum.Enum):
    DESIGN = "design"
    COMPONENT = "component"


class Frame(BaseModel):
    """A named, positioned canvas region anchoring one node subtree."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel, extra="forbid"
    )

    id: str = Field(..., min_length=1)
    name: str = ""
    root_node_id: str = Field(..., min_length=1)
    canvas: CanvasPlacement = Field(default_factory=CanvasPlacement)
    kind: FrameKind = FrameKind.DESIGN
    component_id: str | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def position(self) -> tuple[float, float]:
        return (self.canvas.position.x, self.canvas.position.y)

    def contains_world(self, x: float, y: float) -> bool:
        px, py = self.position
        return (
            px <= x <= px + self.canvas.size.width
            and py <= y <= py + self.canvas.size.height
        )


class ComponentDef(BaseModel):
    model_config = _MODEL_CONFIG

    id: str
    name: str = ""
    description: str | None = None
    root_node_id: str
    params: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Document(BaseModel):
    """The whole editable document. Node ids are unique document-wide."""

    model_config = _MODEL_CONFIG

    ir_version: str = "1.0"
    document_id: str
    frames: dict[str, Frame] = Field(default_factory=dict)
    nodes: dict[str, Node] = Field(default_factory=dict)
    components: dict[str, ComponentDef] = Field(default_factory=dict)
    theme_id: str = "default"

    @classmethod
    def empty(cls, document_id: str | None = None) -> Document:
        return cls(document_id=document_id or f"doc_{uuid.uuid4().hex[:12]}")

    # --- queries ---

    def subtree(self, node_id: str) -> list[str]:
        """Pre-order ids of ``node_id`` and its descendants (missing ids skipped)."""
        result: list[str] = []
        stack = [node_id]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current in seen or current not in self.nodes:
                continue
            seen.add(current)
            result.append(current)
            stack.extend(reversed(self.nodes[current].child_ids))
        return result

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def check_invariants(document: Document) -> list[str]:
    """Return every structural inconsistency found in ``document`` (empty when sound)."""
    problems: list[str] = []
    parents: dict[str, str] = {}

    for node_id, node in document.nodes.items():
        if node.id != node_id:
            problems.append(f"node keyed {node_id!r} has id {node.id!r}")
        for child_id in node.child_ids:
            if child_id not in document.nodes:
                problems.append(f"{node_id!r} references missing child {child_id!r}")
            elif child_id in parents:
                problems.append(
                    f"{child_id!r} has two parents: {parents[child_id]!r} and {node_id!r}"
                )
            else:
                parents[child_id] = node_id

    roots: dict[str, str] = {}
    for frame_id, frame in document.frames.items():
        if frame.id != frame_id:
            problems.append(f"frame keyed {frame_id!r} has id {frame.id!r}")
        if frame.root_node_id not in document.nodes:
            problems.append(f"frame {frame_id!r} root {frame.root_node_id!r} is missing")
        if frame.root_node_id in parents:
            problems.append(f"frame {frame_id!r} root {frame.root_node_id!r} has a parent")
        if frame.root_node_id in roots:
            problems.append(
                f"root {frame.root_node_id!r} shared by frames "
                f"{roots[frame.root_node_id]!r} and {frame_id!r}"
            )
        roots[frame.root_node_id] = frame_id

    for node_id in document.nodes:
        seen = {node_id}
        current = parents.get(node_id)
        while current is not None:
            if current in seen:
                problems.append(f"cycle through {node_id!r}")
                break
            seen.add(current)
            current = parents.get(current)

    return problems
