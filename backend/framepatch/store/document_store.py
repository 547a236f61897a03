"""Document store — owns the current snapshot, the parent index and undo/redo.

A store is constructed explicitly and passed to whoever edits it; several
stores (one per open document, one per test) can live in one process. All
mutation goes through ``apply_patches``, serialized by a re-entrant lock so a
commit finishes before the next one starts.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any

from framepatch.config import Settings, get_settings
from framepatch.errors import NotFoundError, ValidationError
from framepatch.models.document import Document, Node, check_invariants
from framepatch.models.patch_ops import (
    AttachChild,
    DeleteProp,
    InsertNode,
    MoveNode,
    PatchOp,
    SetFrameProp,
    SetProp,
    iter_primitive,
)
from framepatch.patch import compound
from framepatch.patch.applier import ApplyResult, PatchApplier
from framepatch.patch.change_set import ChangeSet
from framepatch.patch.paths import normalize_path
from framepatch.store.history import UndoEntry, UndoHistory
from framepatch.store.parent_index import ParentIndex

logger = logging.getLogger(__name__)

Listener = Callable[[Document, ChangeSet], None]


def coalesce_key_for(ops: Sequence[PatchOp]) -> str | None:
    """Derive a coalescing key for property-only edits of a single target.

    ``SetProp``/``DeleteProp`` on one node give ``prop:<id>:<path>`` (paths
    joined with ``,`` when a batch touches several); ``SetFrameProp`` gives
    ``frame:<id>:<path>``. Anything structural returns None.
    """
    primitives = list(iter_primitive(ops))
    if not primitives:
        return None
    if all(isinstance(op, (SetProp, DeleteProp)) for op in primitives):
        targets = {op.id for op in primitives}
        if len(targets) != 1:
            return None
        kind = "prop"
    elif all(isinstance(op, SetFrameProp) for op in primitives):
        targets = {op.frame_id for op in primitives}
        if len(targets) != 1:
            return None
        kind = "frame"
    else:
        return None
    path_list = sorted({normalize_path(op.path) for op in primitives})
    return f"{kind}:{targets.pop()}:{','.join(path_list)}"


class DocumentStore:
    def __init__(
        self,
        document: Document | None = None,
        *,
        settings: Settings | None = None,
        applier: PatchApplier | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._applier = applier or PatchApplier()
        self._clock = clock or time.monotonic
        self._lock = threading.RLock()
        self._document = document if document is not None else Document.empty()
        self._index = ParentIndex.build(self._document)
        self._history = UndoHistory(
            limit=self._settings.history_limit,
            coalesce_window=self._settings.coalesce_window_seconds,
        )
        self._version = 0
        self._pending = ChangeSet()
        self._listeners: list[Listener] = []
        # Group key of the calling thread or asyncio task.
        self._active_group: contextvars.ContextVar[str | None] = contextvars.ContextVar(
            f"framepatch_group_{id(self)}", default=None
        )

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def document(self) -> Document:
        return self._document

    @property
    def parent_index(self) -> ParentIndex:
        # Commits swap in a new index built by the applier, so the one handed
        # out here never changes underneath its reader. Treat it as read-only.
        return self._index

    @property
    def version(self) -> int:
        return self._version

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def pending_changes(self) -> ChangeSet:
        return self._pending

    def clear_changes(self) -> None:
        with self._lock:
            self._pending = ChangeSet()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply_patches(
        self,
        ops: Iterable[PatchOp],
        label: str | None = None,
        *,
        coalesce_key: str | None = None,
    ) -> Document:
        """Apply ``ops`` atomically and record one undo step.

        Raises an ``EngineError`` on failure; the document, index and history
        are then exactly as before the call.
        """
        ops = list(ops)
        with self._lock:
            result = self._applier.apply_batch(self._document, ops, self._index)
            if not result.applied:
                return self._document
            key = coalesce_key or self._active_group.get() or coalesce_key_for(ops)
            entry = UndoEntry(
                label=label,
                forward=tuple(result.applied),
                inverse=tuple(result.inverse),
                key=key,
                timestamp=self._clock(),
            )
            merged = self._history.push(entry)
            self._commit(result)
            logger.info(
                "Applied %d ops%s (version %d%s)",
                len(result.applied),
                f" [{label}]" if label else "",
                self._version,
                ", coalesced" if merged else "",
            )
            return self._document

    def apply_patch(self, op: PatchOp, label: str | None = None, **kwargs: Any) -> Document:
        return self.apply_patches([op], label, **kwargs)

    @contextlib.contextmanager
    def group(self, key: str) -> Iterator[None]:
        """Coalesce every commit made inside the block (same label) under ``key``.

        Only commits from the calling thread or task join the group; the store
        stays available to other writers while the block runs.
        """
        token = self._active_group.set(key)
        try:
            yield
        finally:
            self._active_group.reset(token)

    def undo(self) -> bool:
        with self._lock:
            entry = self._history.pop_undo()
            if entry is None:
                return False
            try:
                result = self._applier.apply_batch(self._document, entry.inverse, self._index)
            except Exception:
                self._history.restore_undo(entry)
                raise
            self._history.push_redo(entry)
            self._commit(result)
            logger.info("Undo %r (version %d)", entry.label, self._version)
            return True

    def redo(self) -> bool:
        with self._lock:
            entry = self._history.pop_redo()
            if entry is None:
                return False
            try:
                result = self._applier.apply_batch(self._document, entry.forward, self._index)
            except Exception:
                self._history.push_redo(entry)
                raise
            self._history.push_undo_from_redo(entry)
            self._commit(result)
            logger.info("Redo %r (version %d)", entry.label, self._version)
            return True

    def replace_document(self, document: Document) -> None:
        """Swap in a new/loaded document; history is cleared and the index rebuilt."""
        problems = check_invariants(document)
        if problems:
            raise ValidationError(f"Document {document.document_id!r} is inconsistent: {problems[0]}")
        with self._lock:
            self._document = document
            self._index = ParentIndex.build(document)
            self._history.clear()
            self._version += 1
            changes = ChangeSet(
                compilation_dirty=frozenset(document.nodes),
                frame_dirty=frozenset(document.frames),
            )
            self._pending = self._pending.merge(changes)
            logger.info(
                "Replaced document %s (%d frames, %d nodes)",
                document.document_id,
                len(document.frames),
                len(document.nodes),
            )
            self._notify(changes)

    def _commit(self, result: ApplyResult) -> None:
        self._document = result.document
        self._index = result.index
        self._version += 1
        self._pending = self._pending.merge(result.changes)
        self._notify(result.changes)

    # ------------------------------------------------------------------
    # History state
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def undo_labels(self) -> list[str | None]:
        return self._history.undo_labels

    @property
    def redo_labels(self) -> list[str | None]:
        return self._history.redo_labels

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(document, changes)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changes: ChangeSet) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._document, changes)
            except Exception:
                logger.exception("Document listener %r failed", listener)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> Node:
        node = self._document.nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Node {node_id!r} does not exist")
        return node

    def get_parent(self, node_id: str) -> str | None:
        return self._index.parent_of(node_id)

    def get_ancestors(self, node_id: str) -> list[str]:
        return self._index.ancestors(node_id)

    def get_descendants(self, node_id: str) -> list[str]:
        return self._document.subtree(node_id)[1:]

    def get_frame_for_node(self, node_id: str) -> str | None:
        return self._index.frame_of(node_id)

    # ------------------------------------------------------------------
    # Convenience intents
    # ------------------------------------------------------------------

    def add_node(self, node: Node, parent_id: str, index: int = -1) -> Document:
        return self.apply_patches(
            [InsertNode(node=node), AttachChild(parent_id=parent_id, child_id=node.id, index=index)],
            "Add node",
        )

    def update_node_prop(self, node_id: str, path: str, value: Any) -> Document:
        return self.apply_patch(SetProp(id=node_id, path=path, value=value), "Edit property")

    def update_node_props(self, node_id: str, updates: dict[str, Any]) -> Document:
        ops = [SetProp(id=node_id, path=path, value=value) for path, value in updates.items()]
        return self.apply_patches(ops, "Edit properties")

    def update_frame_prop(self, frame_id: str, path: str, value: Any) -> Document:
        return self.apply_patch(
            SetFrameProp(frame_id=frame_id, path=path, value=value), "Edit frame"
        )

    def move_node(self, node_id: str, new_parent_id: str, index: int = -1) -> Document:
        return self.apply_patch(
            MoveNode(id=node_id, new_parent_id=new_parent_id, index=index), "Move node"
        )

    def delete_node(self, node_id: str) -> Document:
        with self._lock:
            batch = compound.delete_subtree(self._document, self._index, node_id)
            return self.apply_patch(batch, "Delete node")

    def delete_nodes(self, node_ids: Iterable[str]) -> Document:
        with self._lock:
            batch = compound.delete_nodes(self._document, self._index, node_ids)
            return self.apply_patch(batch, "Delete nodes")

    def delete_frame(self, frame_id: str) -> Document:
        with self._lock:
            batch = compound.delete_frame_and_subtree(self._document, frame_id)
            return self.apply_patch(batch, "Delete frame")

    def __repr__(self) -> str:
        return (
            f"DocumentStore({self._document.document_id!r}, version={self._version}, "
            f"undo={len(self._history)})"
        )

