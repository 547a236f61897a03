"""Drag session state machine: idle -> dragging -> hovering -> dropped/cancelled -> idle."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from framepatch.drag.preview import DropPreview
from framepatch.drag.resolver import DropPreviewResolver, LayoutSnapshot, origin_parent_of
from framepatch.errors import EngineError, NotFoundError
from framepatch.models.document import Document
from framepatch.models.patch_ops import Batch
from framepatch.patch.compound import move_nodes
from framepatch.store.document_store import DocumentStore
from framepatch.store.parent_index import ParentIndex

logger = logging.getLogger(__name__)

Point2 = tuple[float, float]


class DragPhase(str, enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING_VALID = "hovering_valid"
    HOVERING_INVALID = "hovering_invalid"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DragOutcome:
    phase: DragPhase
    preview: DropPreview | None
    document: Document | None = None
    reason: str | None = None


def drop_patches(preview: DropPreview, origin_parent_id: str) -> Batch:
    """Detach every dragged node, then attach them in drag order at the target."""
    if not preview.is_valid or preview.target_parent_id is None or preview.insertion_index is None:
        raise ValueError("drop_patches needs a valid preview")
    return move_nodes(
        preview.dragged_ids,
        origin_parent_id,
        preview.target_parent_id,
        preview.insertion_index,
    )


def _is_noop(document: Document, preview: DropPreview) -> bool:
    if preview.target_parent_id != preview.origin_parent_id or preview.insertion_index is None:
        return False
    parent = document.nodes.get(preview.target_parent_id or "")
    if parent is None:
        return False
    dragged = set(preview.dragged_ids)
    rest = [c for c in parent.child_ids if c not in dragged]
    i = preview.insertion_index
    return rest[:i] + list(preview.dragged_ids) + rest[i:] == list(parent.child_ids)


class DragSession:
    """One pointer-driven drag at a time. Cancel at any point is a pure discard."""

    def __init__(self, resolver: DropPreviewResolver | None = None) -> None:
        self._resolver = resolver or DropPreviewResolver()
        self.phase = DragPhase.IDLE
        self.dragged_ids: tuple[str, ...] = ()
        self.frame_id: str | None = None
        self.origin_parent_id: str | None = None
        self.preview: DropPreview | None = None
        self.last_outcome: DragOutcome | None = None
        self._last_index: int | None = None
        self._last_pointer: Point2 | None = None
        self._last_target: str | None = None

    @property
    def is_active(self) -> bool:
        return self.phase in (DragPhase.DRAGGING, DragPhase.HOVERING_VALID, DragPhase.HOVERING_INVALID)

    def start(
        self,
        document: Document,
        parent_index: ParentIndex,
        dragged_ids: Sequence[str],
        frame_id: str | None = None,
    ) -> None:
        if self.is_active:
            raise RuntimeError("a drag is already in progress")
        dragged = tuple(dict.fromkeys(dragged_ids))
        if not dragged:
            raise NotFoundError("no nodes to drag")
        for node_id in dragged:
            if node_id not in document.nodes:
                raise NotFoundError(f"Dragged node {node_id!r} does not exist")
        if frame_id is not None and frame_id not in document.frames:
            raise NotFoundError(f"Frame {frame_id!r} does not exist")
        self.origin_parent_id, _ = origin_parent_of(parent_index, dragged)
        self.dragged_ids = dragged
        self.frame_id = frame_id or parent_index.frame_of(dragged[0])
        self.preview = None
        self._last_index = None
        self._last_pointer = None
        self._last_target = None
        self.phase = DragPhase.DRAGGING
        logger.debug("Drag started: %s in frame %s", ",".join(dragged), self.frame_id)

    def update(
        self,
        document: Document,
        parent_index: ParentIndex,
        layout: LayoutSnapshot,
        pointer_world: Point2,
        zoom: float = 1.0,
    ) -> DropPreview:
        if not self.is_active:
            raise RuntimeError("update() called without an active drag")
        preview = self._resolver.resolve(
            document,
            parent_index,
            layout,
            pointer_world,
            self.dragged_ids,
            self.frame_id,
            last_index=self._last_index,
            last_pointer=self._last_pointer,
            last_target=self._last_target,
            zoom=zoom,
        )
        if preview.is_valid and (
            preview.insertion_index != self._last_index
            or preview.target_parent_id != self._last_target
        ):
            self._last_index = preview.insertion_index
            self._last_pointer = pointer_world
            self._last_target = preview.target_parent_id
        self.preview = preview
        self.phase = DragPhase.HOVERING_VALID if preview.is_valid else DragPhase.HOVERING_INVALID
        return preview

    def drop(self, store: DocumentStore) -> Document | None:
        """Commit the current preview through ``store``; None when nothing was applied."""
        if not self.is_active:
            raise RuntimeError("drop() called without an active drag")
        preview = self.preview
        document: Document | None = None
        reason: str | None = None

        if preview is None or not preview.is_valid or self.origin_parent_id is None:
            reason = preview.invalid_reason if preview is not None else "no preview"
            logger.info("Drop ignored: %s", reason)
        elif _is_noop(store.document, preview):
            reason = "no change"
        else:
            batch = drop_patches(preview, self.origin_parent_id)
            label = "Reorder" if preview.target_parent_id == self.origin_parent_id else "Move"
            try:
                document = store.apply_patches(batch.ops, label)
            except EngineError as e:
                reason = e.message
                logger.warning("Drop rejected against current document: %s", e)

        self.phase = DragPhase.DROPPED
        self.last_outcome = DragOutcome(DragPhase.DROPPED, preview, document, reason)
        self.reset()
        return document

    def cancel(self) -> None:
        if self.is_active:
            logger.debug("Drag cancelled: %s", ",".join(self.dragged_ids))
        self.phase = DragPhase.CANCELLED
        self.last_outcome = DragOutcome(DragPhase.CANCELLED, self.preview)
        self.reset()

    def reset(self) -> None:
        self.phase = DragPhase.IDLE
        self.dragged_ids = ()
        self.frame_id = None
        self.origin_parent_id = None
        self.preview = None
        self._last_index = None
        self._last_pointer = None
        self._last_target = None
