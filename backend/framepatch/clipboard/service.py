"""Clipboard service — copy, cut, paste and duplicate against a DocumentStore.

The external system clipboard is asynchronous and only touched at this
boundary: its text is awaited and parsed into a ``ClipboardPayload`` first,
then handed to the synchronous patch path. The store never suspends.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from framepatch.clipboard.paste import PasteMode, apply_paste, compute_paste_offset, translate_roots
from framepatch.clipboard.remapper import remap
from framepatch.clipboard.selection import (
    build_payload,
    determine_target_parent,
    get_top_level_roots,
)
from framepatch.config import Settings, get_settings
from framepatch.errors import EngineError
from framepatch.models.clipboard import ClipboardPayload
from framepatch.models.document import Document, Point
from framepatch.models.patch_ops import PatchOp
from framepatch.patch.compound import insert_subtree
from framepatch.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


class SystemClipboard(Protocol):
    async def read_text(self) -> str | None: ...

    async def write_text(self, text: str) -> None: ...


class InMemorySystemClipboard:
    """Process-local stand-in for the OS clipboard."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text

    async def read_text(self) -> str | None:
        return self.text

    async def write_text(self, text: str) -> None:
        self.text = text


class ClipboardOperation(str, enum.Enum):
    COPY = "copy"
    CUT = "cut"
    DUPLICATE = "duplicate"


class ClipboardService:
    def __init__(
        self,
        system: SystemClipboard | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._system = system if system is not None else InMemorySystemClipboard()
        self._settings = settings or get_settings()
        self._clock = clock or time.monotonic
        self._id_factory = id_factory
        self._internal: ClipboardPayload | None = None
        self._copied_at: float | None = None
        self.last_operation: ClipboardOperation | None = None

    # ------------------------------------------------------------------
    # Internal clipboard
    # ------------------------------------------------------------------

    @property
    def has_content(self) -> bool:
        return self._internal is not None

    def internal(self) -> ClipboardPayload | None:
        """The internal value while it is fresh, else None."""
        if self._internal is None or self._copied_at is None:
            return None
        if self._clock() - self._copied_at > self._settings.clipboard_freshness_seconds:
            return None
        return self._internal

    def clear(self) -> None:
        self._internal = None
        self._copied_at = None
        self.last_operation = None

    # ------------------------------------------------------------------
    # Copy / cut
    # ------------------------------------------------------------------

    def copy_selection(
        self,
        store: DocumentStore,
        selection: Sequence[str],
        frame_ids: Sequence[str] = (),
    ) -> ClipboardPayload:
        """Build the payload for ``selection`` from the store's current snapshot."""
        document = store.document
        index = store.parent_index
        roots = get_top_level_roots(document, index, selection, frame_ids)
        return build_payload(document, index, roots)

    async def copy(self, payload: ClipboardPayload) -> None:
        self._remember(payload, ClipboardOperation.COPY)
        await self._write_system(payload)

    async def cut(self, payload: ClipboardPayload, store: DocumentStore) -> Document:
        self._remember(payload, ClipboardOperation.CUT)
        await self._write_system(payload)
        document = store.delete_nodes(payload.root_ids)
        logger.info("Cut %d roots", len(payload.root_ids))
        return document

    def _remember(self, payload: ClipboardPayload, operation: ClipboardOperation) -> None:
        self._internal = payload
        self._copied_at = self._clock()
        self.last_operation = operation

    async def _write_system(self, payload: ClipboardPayload) -> None:
        try:
            await self._system.write_text(payload.to_json())
        except Exception as e:
            logger.warning("System clipboard write failed: %s", e)

    # ------------------------------------------------------------------
    # Paste
    # ------------------------------------------------------------------

    async def read(self) -> ClipboardPayload | None:
        """Fresh internal value, else whatever the system clipboard holds."""
        payload = self.internal()
        if payload is not None:
            return payload
        try:
            text = await self._system.read_text()
        except Exception as e:
            logger.warning("System clipboard read failed: %s", e)
            return None
        payload = ClipboardPayload.try_from_json(text)
        if payload is None or payload.is_empty:
            logger.info("Nothing to paste: clipboard is empty or holds foreign content")
            return None
        return payload

    async def paste(
        self,
        store: DocumentStore,
        frame_id: str,
        selection: Sequence[str] = (),
        cursor_frame_local: Point | None = None,
    ) -> Document | None:
        """User paste: resolves the clipboard, then pastes; failures are logged no-ops."""
        payload = await self.read()
        if payload is None:
            return None
        try:
            return self.paste_into(store, payload, frame_id, selection, cursor_frame_local)
        except EngineError as e:
            logger.warning("Paste rejected: %s", e)
            return None

    def paste_into(
        self,
        store: DocumentStore,
        payload: ClipboardPayload,
        frame_id: str,
        selection: Sequence[str] = (),
        cursor_frame_local: Point | None = None,
        index: int = -1,
    ) -> Document:
        """Synchronous paste of an already resolved payload. Raises on failure."""
        document = store.document
        target_parent_id = determine_target_parent(
            document, store.parent_index, selection, frame_id
        )
        remapped, _ = remap(payload, self._id_factory, taken=document.nodes.keys())
        offset = compute_paste_offset(
            payload.anchor, PasteMode.PASTE, cursor_frame_local, self._settings
        )
        nodes = translate_roots(remapped.nodes, remapped.root_ids, offset)
        return apply_paste(store, nodes, remapped.root_ids, target_parent_id, index)

    # ------------------------------------------------------------------
    # Duplicate
    # ------------------------------------------------------------------

    def duplicate(self, store: DocumentStore, selection: Sequence[str]) -> Document | None:
        """Copy the selection next to itself, in the same parent, without any clipboard read.

        Each group of roots sharing a parent is inserted right after the last
        original of that group. All groups commit as one undo step.
        """
        document = store.document
        index = store.parent_index
        roots = get_top_level_roots(document, index, selection)

        groups: dict[str, list[str]] = {}
        for root_id in roots:
            parent_id = index.parent_of(root_id)
            if parent_id is None:
                logger.info("Duplicate skips %s: it has no parent", root_id)
                continue
            groups.setdefault(parent_id, []).append(root_id)
        if not groups:
            return None

        offset = compute_paste_offset(Point(), PasteMode.DUPLICATE, settings=self._settings)
        taken = set(document.nodes)
        ops: list[PatchOp] = []
        for parent_id, group in groups.items():
            payload = build_payload(document, index, group)
            remapped, id_map = remap(payload, self._id_factory, taken=taken)
            taken.update(id_map.values())
            nodes = translate_roots(remapped.nodes, remapped.root_ids, offset)
            siblings = document.nodes[parent_id].child_ids
            insert_at = max(siblings.index(root_id) for root_id in group) + 1
            ops.extend(insert_subtree(nodes, remapped.root_ids, parent_id, insert_at).ops)

        self.last_operation = ClipboardOperation.DUPLICATE
        new_document = store.apply_patches(ops, "Duplicate")
        logger.info("Duplicated %d roots", sum(len(g) for g in groups.values()))
        return new_document
