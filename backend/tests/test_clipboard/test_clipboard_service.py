"""Tests for the clipboard service: copy/cut/paste/duplicate against a store."""

from __future__ import annotations

import asyncio
import itertools

import pytest

from framepatch.clipboard.paste import PasteMode, compute_paste_offset, translate_roots
from framepatch.clipboard.service import ClipboardOperation, ClipboardService, InMemorySystemClipboard
from framepatch.errors import ClipboardError, NotFoundError
from framepatch.models.clipboard import ClipboardPayload
from framepatch.models.document import Point, check_invariants
from framepatch.store.parent_index import ParentIndex
from tests.conftest import leaf


class FailingClipboard:
    async def read_text(self):
        raise OSError("clipboard unavailable")

    async def write_text(self, text):
        raise OSError("clipboard unavailable")


def _ids(prefix="n"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def system():
    return InMemorySystemClipboard()


@pytest.fixture
def service(system, settings, clock):
    return ClipboardService(system, settings=settings, clock=clock, id_factory=_ids())


# ---------------------------------------------------------------------------
# 1. Offsets
# ---------------------------------------------------------------------------

class TestOffsets:
    def test_cursor_paste_moves_anchor_to_cursor(self, settings):
        """A cursor paste should move the anchor onto the cursor."""
        offset = compute_paste_offset(Point(x=0, y=0), PasteMode.PASTE, Point(x=50, y=50), settings)
        assert offset == Point(x=50, y=50)
        moved = translate_roots([leaf("P", x=0, y=0)], ["P"], offset)
        assert (moved[0].x, moved[0].y) == (50.0, 50.0)

    def test_duplicate_uses_fixed_offset(self, settings):
        """Duplicate should ignore the cursor and use the fixed offset."""
        offset = compute_paste_offset(Point(x=5, y=5), PasteMode.DUPLICATE, Point(x=50, y=50), settings)
        assert offset == Point(x=10, y=10)

    def test_only_absolute_roots_move(self):
        """Only positioned roots should be translated."""
        nodes = [leaf("R", x=1, y=1), leaf("child", x=2, y=2), leaf("flow")]
        moved = translate_roots(nodes, ["R", "flow"], Point(x=10, y=10))
        assert (moved[0].x, moved[0].y) == (11.0, 11.0)
        assert (moved[1].x, moved[1].y) == (2.0, 2.0)
        assert moved[2] is nodes[2]


# ---------------------------------------------------------------------------
# 2. Copy / cut / paste
# ---------------------------------------------------------------------------

class TestCopyPaste:
    def test_copy_writes_system_clipboard(self, service, system, store):
        """copy should write the payload JSON and keep it internally."""
        payload = service.copy_selection(store, ["G", "E1", "E"])
        asyncio.run(service.copy(payload))
        assert payload.root_ids == ("E", "G")
        assert ClipboardPayload.from_json(system.text) == payload
        assert service.last_operation == ClipboardOperation.COPY
        assert service.internal() is payload

    def test_paste_at_cursor(self, service, store):
        """Pasting should append fresh nodes at the cursor as one Paste step."""
        asyncio.run(service.copy(service.copy_selection(store, ["G"])))
        result = asyncio.run(service.paste(store, "F2", cursor_frame_local=Point(x=200, y=20)))
        new_id = result.nodes["R2"].child_ids[-1]
        assert new_id == "n1"
        pasted = result.nodes[new_id]
        assert (pasted.x, pasted.y) == (200.0, 20.0)
        assert (result.nodes["G"].x, result.nodes["G"].y) == (10.0, 80.0)
        assert store.undo_labels == ["Paste"]
        assert check_invariants(result) == []

    def test_paste_offset_scenario(self, service, store):
        """A payload anchored at the origin should land exactly on the cursor."""
        payload = ClipboardPayload(root_ids=("P",), nodes=(leaf("P", x=0, y=0),), anchor=Point(x=0, y=0))
        result = service.paste_into(store, payload, "F2", cursor_frame_local=Point(x=50, y=50))
        pasted = result.nodes["n1"]
        assert (pasted.x, pasted.y) == (50.0, 50.0)

    def test_paste_subtree_into_selected_container(self, service, store):
        """A subtree should paste inside the selected container with the index kept in sync."""
        asyncio.run(service.copy(service.copy_selection(store, ["A"])))
        result = asyncio.run(service.paste(store, "F1", selection=["B"]))
        new_root = result.nodes["B"].child_ids[-1]
        new_child = result.nodes[new_root].child_ids[0]
        assert result.nodes[new_child].props == {"text": "Title"}
        assert ParentIndex.build(result) == store.parent_index

    def test_selection_in_another_frame_pastes_at_root(self, service, store):
        """A selection from another frame should not redirect the paste."""
        payload = ClipboardPayload(root_ids=("P",), nodes=(leaf("P", x=0, y=0),), anchor=Point(x=0, y=0))
        result = service.paste_into(store, payload, "F2", selection=["B"])
        assert result.nodes["R2"].child_ids == ("E", "G", "I", "n1")
        assert result.nodes["B"].child_ids == ("B1", "B2")

    def test_paste_is_single_undo_step(self, service, store, doc):
        """A paste should undo in one step."""
        asyncio.run(service.copy(service.copy_selection(store, ["C"], frame_ids=[])))
        asyncio.run(service.paste(store, "F2"))
        assert len(store.undo_labels) == 1
        store.undo()
        assert store.document == doc

    def test_stale_internal_ignored(self, service, system, store, clock):
        """An expired internal payload should not be used."""
        asyncio.run(service.copy(service.copy_selection(store, ["G"])))
        system.text = "text from another application"
        clock.advance(31)
        assert service.internal() is None
        assert service.has_content
        assert asyncio.run(service.paste(store, "F2")) is None
        assert store.version == 0

    def test_external_payload_used_when_internal_empty(self, service, system, store):
        """A payload from the system clipboard should be pasted when nothing is held internally."""
        payload = ClipboardPayload(root_ids=("X",), nodes=(leaf("X", x=1, y=1),), anchor=Point(x=1, y=1))
        system.text = payload.to_json()
        result = asyncio.run(service.paste(store, "F2"))
        assert result is not None
        assert "n1" in result.nodes

    def test_unreadable_clipboard_is_noop(self, store, settings, clock):
        """A failing system clipboard should neither break copy nor paste anything."""
        service = ClipboardService(FailingClipboard(), settings=settings, clock=clock)
        assert asyncio.run(service.paste(store, "F2")) is None
        payload = service.copy_selection(store, ["G"])
        asyncio.run(service.copy(payload))
        assert service.internal() is payload

    def test_paste_into_unknown_frame(self, service, store):
        """Pasting into a missing frame should be a no-op, or raise through paste_into."""
        asyncio.run(service.copy(service.copy_selection(store, ["G"])))
        assert asyncio.run(service.paste(store, "F9")) is None
        with pytest.raises(NotFoundError):
            service.paste_into(store, service.internal(), "F9")

    def test_empty_selection(self, service, store):
        """Copying nothing should raise ClipboardError."""
        with pytest.raises(ClipboardError):
            service.copy_selection(store, [])

    def test_cut_removes_roots(self, service, store, doc):
        """cut should delete the roots and keep them pasteable."""
        payload = service.copy_selection(store, ["E", "E1"])
        document = asyncio.run(service.cut(payload, store))
        assert "E" not in document.nodes and "E1" not in document.nodes
        assert service.last_operation == ClipboardOperation.CUT
        result = asyncio.run(service.paste(store, "F2"))
        assert len(result.nodes) == len(doc.nodes)

    def test_clear(self, service, store):
        """clear should forget the internal payload."""
        asyncio.run(service.copy(service.copy_selection(store, ["G"])))
        service.clear()
        assert not service.has_content
        assert service.last_operation is None


# ---------------------------------------------------------------------------
# 3. Duplicate
# ---------------------------------------------------------------------------

class TestDuplicate:
    def test_duplicate_next_to_original(self, service, store, system):
        """Duplicate should insert right after the original at the fixed offset."""
        result = service.duplicate(store, ["G"])
        assert result.nodes["R2"].child_ids == ("E", "G", "n1", "I")
        copy = result.nodes["n1"]
        assert (copy.x, copy.y) == (20.0, 90.0)
        assert store.undo_labels == ["Duplicate"]
        assert service.last_operation == ClipboardOperation.DUPLICATE
        assert system.text is None

    def test_duplicate_subtree_keeps_child_positions(self, service, store):
        """Only the duplicated root should be offset."""
        result = service.duplicate(store, ["E"])
        new_root = result.nodes["R2"].child_ids[1]
        new_child = result.nodes[new_root].child_ids[0]
        assert (result.nodes[new_root].x, result.nodes[new_root].y) == (50.0, 40.0)
        assert (result.nodes[new_child].x, result.nodes[new_child].y) == (5.0, 5.0)

    def test_duplicate_across_parents_is_one_step(self, service, store, doc):
        """Duplicating across parents should be one undo step."""
        result = service.duplicate(store, ["B1", "D"])
        assert result.nodes["B"].child_ids == ("B1", "n1", "B2")
        assert result.nodes["C"].child_ids == ("A", "B", "D", "n2")
        assert len(store.undo_labels) == 1
        store.undo()
        assert store.document == doc

    def test_duplicate_flow_nodes_do_not_move(self, service, store):
        """Nodes without absolute positions should be duplicated without a position."""
        result = service.duplicate(store, ["D"])
        assert result.nodes["C"].child_ids == ("A", "B", "D", "n1")
        assert result.nodes["n1"].layout == {}

    def test_duplicate_frame_root_is_noop(self, service, store, doc):
        """Duplicating only a frame root should do nothing."""
        assert service.duplicate(store, ["C"]) is None
        assert store.document is doc
