"""Paste translation and the single-Batch insertion of pasted subtrees."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence

from framepatch.config import Settings, get_settings
from framepatch.models.document import Document, Node, Point
from framepatch.patch.compound import insert_subtree
from framepatch.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


class PasteMode(str, enum.Enum):
    PASTE = "paste"
    DUPLICATE = "duplicate"


def compute_paste_offset(
    anchor: Point,
    mode: PasteMode,
    cursor_frame_local: Point | None = None,
    settings: Settings | None = None,
) -> Point:
    """Translation applied to pasted roots.

    Duplicates (and pastes without a cursor) shift by the fixed duplicate
    offset; a cursor paste moves the anchor onto the cursor.
    """
    settings = settings or get_settings()
    if mode == PasteMode.PASTE and cursor_frame_local is not None:
        return Point(x=cursor_frame_local.x - anchor.x, y=cursor_frame_local.y - anchor.y)
    dx, dy = settings.duplicate_offset
    return Point(x=dx, y=dy)


def translate_roots(nodes: Sequence[Node], root_ids: Sequence[str], offset: Point) -> list[Node]:
    """Shift absolutely positioned roots by ``offset``; everything else is returned as is."""
    roots = set(root_ids)
    result: list[Node] = []
    for node in nodes:
        if node.id in roots and node.x is not None:
            position = dict(node.layout["position"])
            position["x"] = float(position.get("x", 0.0)) + offset.x
            position["y"] = float(position.get("y", 0.0)) + offset.y
            node = node.model_copy(update={"layout": {**node.layout, "position": position}})
        result.append(node)
    return result


def apply_paste(
    store: DocumentStore,
    nodes: Sequence[Node],
    root_ids: Sequence[str],
    target_parent_id: str,
    index: int = -1,
    label: str = "Paste",
) -> Document:
    """Insert the nodes and attach the roots to ``target_parent_id`` as one undo step."""
    batch = insert_subtree(nodes, root_ids, target_parent_id, index)
    document = store.apply_patches(batch.ops, label)
    logger.info("%s: %d roots, %d nodes into %s", label, len(root_ids), len(nodes), target_parent_id)
    return document
