"""Tests for copy selection: top-level roots, payload building and paste targets."""

from __future__ import annotations

import itertools

import pytest

from framepatch.clipboard.selection import (
    build_payload,
    compute_anchor,
    determine_target_parent,
    get_top_level_roots,
)
from framepatch.errors import ClipboardError, NotFoundError
from framepatch.models.document import Point


class TestTopLevelRoots:
    def test_descendant_of_selected_node_dropped(self, doc, index):
        """Selecting a node and its child should copy only the node."""
        assert get_top_level_roots(doc, index, ["A", "A1"]) == ["A"]

    @pytest.mark.parametrize("selection", list(itertools.permutations(["G", "E1", "E", "I"])))
    def test_order_independent(self, doc, index, selection):
        """Roots should come out in the same order for every selection order."""
        # E (y=30) before G (y=80) before I (y=150); E1 rides along with E.
        assert get_top_level_roots(doc, index, selection) == ["E", "G", "I"]

    def test_ties_break_on_id(self, doc, index):
        """Nodes without positions should sort by id."""
        assert get_top_level_roots(doc, index, ["D", "B", "A"]) == ["A", "B", "D"]

    def test_frame_selection_uses_root(self, doc, index):
        """A selected frame should contribute its root and cover its contents."""
        assert get_top_level_roots(doc, index, ["B1"], frame_ids=["F1"]) == ["C"]

    def test_unpatchable_nodes_ignored(self, doc, index):
        """Unpatchable nodes should be left out of the roots."""
        assert get_top_level_roots(doc, index, ["I1", "G"]) == ["G"]

    def test_unknown_node(self, doc, index):
        """Unknown ids should raise NotFoundError."""
        with pytest.raises(NotFoundError):
            get_top_level_roots(doc, index, ["ghost"])


class TestBuildPayload:
    def test_payload_contents(self, doc, index):
        """The payload should hold the roots, their subtrees, the anchor and the source."""
        payload = build_payload(doc, index, ["E", "G"])
        assert payload.root_ids == ("E", "G")
        assert [n.id for n in payload.nodes] == ["E", "E1", "G"]
        assert payload.anchor == Point(x=10, y=30)
        assert payload.source.document_id == "doc_test"
        assert payload.source.frame_id == "F2"

    def test_anchor_without_positions(self, doc):
        """Roots without absolute positions should anchor at the origin."""
        assert compute_anchor(doc, ["A", "D"]) == Point(x=0, y=0)

    def test_empty_selection(self, doc, index):
        """An empty selection should not build a payload."""
        with pytest.raises(ClipboardError):
            build_payload(doc, index, [])


class TestTargetParent:
    def test_single_container_selected(self, doc, index):
        """A single selected container should receive the paste."""
        assert determine_target_parent(doc, index, ["B"], "F1") == "B"

    def test_leaf_selection_falls_back_to_root(self, doc, index):
        """Leaf or multiple selections should paste into the frame root."""
        assert determine_target_parent(doc, index, ["D"], "F1") == "C"
        assert determine_target_parent(doc, index, [], "F2") == "R2"
        assert determine_target_parent(doc, index, ["A", "B"], "F1") == "C"

    def test_unpatchable_container_falls_back(self, doc, index):
        """An unpatchable container should not receive the paste."""
        assert determine_target_parent(doc, index, ["I1"], "F2") == "R2"

    def test_container_in_other_frame_falls_back(self, doc, index):
        """A container from another frame should not receive the paste."""
        assert determine_target_parent(doc, index, ["B"], "F2") == "R2"

    def test_unknown_frame(self, doc, index):
        """Pasting into a missing frame should raise NotFoundError."""
        with pytest.raises(NotFoundError):
            determine_target_parent(doc, index, [], "F9")
