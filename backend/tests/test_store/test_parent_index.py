"""Tests for the incremental parent index."""

from __future__ import annotations

from framepatch.models.patch_ops import DetachChild, InsertFrame, MoveNode, RemoveFrame, RemoveNode
from framepatch.patch.applier import PatchApplier
from framepatch.store.parent_index import ParentIndex
from tests.conftest import container, frame


class TestQueries:
    def test_parent_and_ancestors(self, index):
        """parent_of and ancestors should walk up to the frame root."""
        assert index.parent_of("A1") == "A"
        assert index.parent_of("C") is None
        assert index.ancestors("B2") == ["B", "C"]
        assert index.ancestors("C") == []

    def test_is_ancestor_is_strict(self, index):
        """A node should not count as its own ancestor."""
        assert index.is_ancestor("C", "B1")
        assert index.is_ancestor("B", "B1")
        assert not index.is_ancestor("B1", "B1")
        assert not index.is_ancestor("A", "B1")

    def test_frame_lookup(self, index):
        """Nodes should resolve to the frame that owns their root."""
        assert index.frame_of("E1") == "F2"
        assert index.frame_of("C") == "F1"
        assert index.is_root("R2")
        assert index.frame_for_root("A") is None

    def test_dunder_helpers(self, index):
        """Containment, length, equality and repr should describe the edges."""
        assert "A1" in index
        assert "C" not in index
        assert len(index) == 11
        assert index == index.copy()
        assert "edges=11" in repr(index)


class TestIncrementalMaintenance:
    def test_matches_rebuild_after_each_step(self, doc):
        """Incremental updates should equal a full rebuild after every op."""
        applier = PatchApplier()
        index = ParentIndex.build(doc)
        steps = [
            MoveNode(id="D", new_parent_id="B", index=0),
            DetachChild(parent_id="A", child_id="A1"),
            RemoveNode(id="A1"),
            RemoveFrame(frame_id="F2"),
        ]
        for op in steps:
            result = applier.apply(doc, op, index)
            doc, index = result.document, result.index
            assert index == ParentIndex.build(doc)
            assert index.verify(doc) == []

    def test_frame_hooks(self, doc):
        """Frame ops should move root ownership in the index."""
        applier = PatchApplier()
        result = applier.apply_batch(
            doc,
            [
                RemoveFrame(frame_id="F1"),
                DetachChild(parent_id="C", child_id="D"),
                InsertFrame(frame=frame("F3", "D")),
            ],
        )
        assert result.index.frame_for_root("D") == "F3"
        assert not result.index.is_root("C")

    def test_copy_is_independent(self, index):
        """Edits to a copy should not leak into the original."""
        clone = index.copy()
        clone.on_detach("A1")
        assert index.parent_of("A1") == "A"
        assert clone.parent_of("A1") is None

    def test_verify_reports_stale_entries(self, doc, index):
        """verify should report edges the document does not have."""
        index.on_attach("R2", "ghost")
        problems = index.verify(doc)
        assert any("stale" in p for p in problems)

    def test_insert_and_remove_node_hooks(self):
        """Node hooks should add and drop the node's child edges."""
        index = ParentIndex()
        node = container("P", ["x", "y"])
        index.on_insert_node(node)
        assert index.parent_of("y") == "P"
        index.on_remove_node(node)
        assert len(index) == 0
