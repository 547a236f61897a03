"""Tests for the bounded, coalescing undo history."""

from __future__ import annotations

from framepatch.models.patch_ops import SetProp
from framepatch.store.history import UndoEntry, UndoHistory


def _entry(label="Edit", key=None, t=0.0, value=1) -> UndoEntry:
    op = SetProp(id="n", path="/props/v", value=value)
    inverse = SetProp(id="n", path="/props/v", value=value - 1)
    return UndoEntry(label=label, forward=(op,), inverse=(inverse,), key=key, timestamp=t)


class TestUndoEntry:
    def test_merge_requires_key_label_and_window(self):
        """Entries should merge only with matching key and label inside the window."""
        first = _entry(key="k", t=0.0)
        assert first.can_merge(_entry(key="k", t=1.5), window=2.0)
        assert not first.can_merge(_entry(key="k", t=2.5), window=2.0)
        assert not first.can_merge(_entry(key="other", t=1.0), window=2.0)
        assert not first.can_merge(_entry(label="Other", key="k", t=1.0), window=2.0)
        assert not _entry().can_merge(_entry(), window=2.0)

    def test_merged_order(self):
        """Merged entries should replay forwards oldest first and inverses newest first."""
        older, newer = _entry(key="k", value=1), _entry(key="k", t=1.0, value=2)
        merged = older.merged_with(newer)
        assert merged.forward == older.forward + newer.forward
        assert merged.inverse == newer.inverse + older.inverse
        assert merged.timestamp == 1.0


class TestUndoHistory:
    def test_push_and_pop(self):
        """The undo stack should pop the newest entry first."""
        history = UndoHistory()
        history.push(_entry(label="one"))
        history.push(_entry(label="two"))
        assert history.undo_labels == ["two", "one"]
        assert history.pop_undo().label == "two"
        assert len(history) == 1

    def test_push_clears_redo(self):
        """A new entry should clear the redo stack."""
        history = UndoHistory()
        history.push(_entry())
        history.push_redo(history.pop_undo())
        assert history.can_redo
        history.push(_entry())
        assert not history.can_redo

    def test_coalescing_chain(self):
        """Each merge should refresh the timestamp so a steady stream keeps merging."""
        history = UndoHistory(coalesce_window=2.0)
        assert not history.push(_entry(key="k", t=0.0))
        assert history.push(_entry(key="k", t=1.5))
        assert history.push(_entry(key="k", t=3.0))  # window slides with each merge
        assert len(history) == 1
        assert len(history.pop_undo().forward) == 3

    def test_limit_evicts_oldest(self):
        """The oldest entries should be evicted past the limit."""
        history = UndoHistory(limit=3)
        for i in range(5):
            history.push(_entry(label=f"e{i}"))
        assert history.undo_labels == ["e4", "e3", "e2"]

    def test_empty_pops(self):
        """Popping an empty stack should return None."""
        history = UndoHistory()
        assert history.pop_undo() is None
        assert history.pop_redo() is None
        assert not history.can_undo

    def test_clear(self):
        """clear should empty both stacks."""
        history = UndoHistory()
        history.push(_entry())
        history.push_redo(_entry())
        history.clear()
        assert not history.can_undo and not history.can_redo
