"""Clipboard payload — the serialized form of copied subtrees."""

from __future__ import annotations

import json
import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from framepatch.errors import ClipboardError
from framepatch.models.document import Node, Point

logger = logging.getLogger(__name__)

CLIPBOARD_TYPE = "clipboard"
CLIPBOARD_VERSION = 1

_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class ClipboardSource(BaseModel):
    model_config = _CONFIG

    document_id: str | None = None
    frame_id: str | None = None


class ClipboardPayload(BaseModel):
    """Top-level ``root_ids`` plus every node of their subtrees.

    ``anchor`` is the frame-local top-left of the roots' positions; paste
    translation is computed relative to it.
    """

    model_config = _CONFIG

    type: Literal["clipboard"] = CLIPBOARD_TYPE
    version: int = CLIPBOARD_VERSION
    source: ClipboardSource = Field(default_factory=ClipboardSource)
    root_ids: tuple[str, ...] = ()
    nodes: tuple[Node, ...] = ()
    anchor: Point = Field(default_factory=Point)

    @field_validator("version")
    @classmethod
    def _supported_version(cls, v: int) -> int:
        if v < 1 or v > CLIPBOARD_VERSION:
            raise ValueError(f"unsupported clipboard version {v}")
        return v

    @property
    def is_empty(self) -> bool:
        return not self.nodes or not self.root_ids

    @property
    def node_map(self) -> dict[str, Node]:
        return {node.id: node for node in self.nodes}

    def dangling_children(self) -> list[str]:
        """Child ids referenced by a payload node but not carried in the payload."""
        known = {node.id for node in self.nodes}
        return [c for node in self.nodes for c in node.child_ids if c not in known]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, text: str) -> ClipboardPayload:
        if not text or not text.strip():
            raise ClipboardError("Clipboard is empty")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ClipboardError(f"Clipboard does not hold JSON: {e}") from e
        if not isinstance(data, dict) or data.get("type") != CLIPBOARD_TYPE:
            raise ClipboardError("Clipboard content is not a design clipboard payload")
        try:
            payload = cls.model_validate(data)
        except SchemaError as e:
            raise ClipboardError(f"Incompatible clipboard payload: {e.error_count()} errors") from e
        known = {node.id for node in payload.nodes}
        missing = [root_id for root_id in payload.root_ids if root_id not in known]
        if missing:
            raise ClipboardError(f"Clipboard roots missing from payload: {', '.join(missing)}")
        dangling = payload.dangling_children()
        if dangling:
            raise ClipboardError(f"Clipboard nodes reference children outside the payload: {', '.join(dangling)}")
        return payload

    @classmethod
    def try_from_json(cls, text: str | None) -> ClipboardPayload | None:
        if text is None:
            return None
        try:
            return cls.from_json(text)
        except ClipboardError as e:
            logger.debug("Ignoring clipboard text: %s", e.message)
            return None
