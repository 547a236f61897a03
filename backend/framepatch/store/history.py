"""Undo/redo history with coalescing and a bounded depth."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from framepatch.models.patch_ops import PatchOp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UndoEntry:
    """One undo step. ``inverse`` is applied in order to undo ``forward``."""

    label: str | None
    forward: tuple[PatchOp, ...]
    inverse: tuple[PatchOp, ...]
    key: str | None = None
    timestamp: float = 0.0

    def can_merge(self, other: UndoEntry, window: float) -> bool:
        if self.key is None or other.key is None:
            return False
        return (
            self.key == other.key
            and self.label == other.label
            and 0 <= other.timestamp - self.timestamp <= window
        )

    def merged_with(self, newer: UndoEntry) -> UndoEntry:
        # Newest inverses first: undoing the merged step unwinds the newer edit,
        # then the older one, which ends at the state before the first edit.
        return UndoEntry(
            label=self.label,
            forward=self.forward + newer.forward,
            inverse=newer.inverse + self.inverse,
            key=self.key,
            timestamp=newer.timestamp,
        )


@dataclass
class UndoHistory:
    limit: int = 100
    coalesce_window: float = 2.0
    _undo: deque[UndoEntry] = field(default_factory=deque, repr=False)
    _redo: list[UndoEntry] = field(default_factory=list, repr=False)

    def push(self, entry: UndoEntry) -> bool:
        """Record a new step; returns True when it merged into the previous one."""
        self._redo.clear()
        if self._undo and self._undo[-1].can_merge(entry, self.coalesce_window):
            self._undo[-1] = self._undo[-1].merged_with(entry)
            logger.debug("Coalesced undo entry %r (key %s)", entry.label, entry.key)
            return True
        self._undo.append(entry)
        while len(self._undo) > self.limit:
            dropped = self._undo.popleft()
            logger.debug("History full, evicted %r", dropped.label)
        return False

    def pop_undo(self) -> UndoEntry | None:
        return self._undo.pop() if self._undo else None

    def pop_redo(self) -> UndoEntry | None:
        return self._redo.pop() if self._redo else None

    def push_redo(self, entry: UndoEntry) -> None:
        self._redo.append(entry)

    def push_undo_from_redo(self, entry: UndoEntry) -> None:
        """Return a redone entry to the undo stack without touching redo."""
        self._undo.append(entry)
        while len(self._undo) > self.limit:
            self._undo.popleft()

    def restore_undo(self, entry: UndoEntry) -> None:
        self._undo.append(entry)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_labels(self) -> list[str | None]:
        """Labels from the most recent entry down."""
        return [entry.label for entry in reversed(self._undo)]

    @property
    def redo_labels(self) -> list[str | None]:
        return [entry.label for entry in reversed(self._redo)]

    def __len__(self) -> int:
        return len(self._undo)
