"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from framepatch.config import Settings
from framepatch.drag.resolver import BoundsMap
from framepatch.models.document import CanvasPlacement, Document, Frame, Node, NodeType, Point, Size
from framepatch.store.document_store import DocumentStore
from framepatch.store.parent_index import ParentIndex

FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def container(
    node_id: str,
    children: tuple[str, ...] | list[str] = (),
    *,
    direction: str | None = None,
    gap: float = 0.0,
    padding: float = 0.0,
    x: float | None = None,
    y: float | None = None,
    patchable: bool = True,
    node_type: NodeType = NodeType.CONTAINER,
) -> Node:
    layout: dict[str, Any] = {}
    if direction is not None:
        layout["autoLayout"] = {"direction": direction, "gap": gap, "padding": padding}
    if x is not None and y is not None:
        layout["position"] = {"mode": "absolute", "x": x, "y": y}
    return Node(
        id=node_id,
        name=node_id,
        type=node_type,
        layout=layout,
        child_ids=tuple(children),
        patch_target=node_id if patchable else None,
    )


def leaf(
    node_id: str,
    node_type: NodeType = NodeType.TEXT,
    *,
    x: float | None = None,
    y: float | None = None,
    props: dict[str, Any] | None = None,
) -> Node:
    layout: dict[str, Any] = {}
    if x is not None and y is not None:
        layout["position"] = {"mode": "absolute", "x": x, "y": y}
    return Node(id=node_id, name=node_id, type=node_type, layout=layout, props=props or {})


def frame(
    frame_id: str,
    root_id: str,
    x: float = 0.0,
    y: float = 0.0,
    width: float = 400.0,
    height: float = 400.0,
) -> Frame:
    return Frame(
        id=frame_id,
        name=frame_id,
        root_node_id=root_id,
        canvas=CanvasPlacement(position=Point(x=x, y=y), size=Size(width=width, height=height)),
        created_at=FIXED_TIME,
        updated_at=FIXED_TIME,
    )


def build_document(nodes: list[Node], frames: list[Frame], document_id: str = "doc_test") -> Document:
    return Document(
        document_id=document_id,
        nodes={node.id: node for node in nodes},
        frames={f.id: f for f in frames},
    )


# ---------------------------------------------------------------------------
# Sample document
#
# F1 (world 0,0 400x400): C vertical gap 10 -> [A, B, D]
#   A -> [A1] (plain container), B horizontal gap 4 padding 8 -> [B1, B2]
# F2 (world 600,0 300x300): R2 (absolute) -> [E, G, I]
#   E -> [E1], I is an instance whose expansion I1 is not patchable
# ---------------------------------------------------------------------------

def sample_document() -> Document:
    nodes = [
        container("C", ["A", "B", "D"], direction="vertical", gap=10),
        container("A", ["A1"]),
        leaf("A1", props={"text": "Title"}),
        container("B", ["B1", "B2"], direction="horizontal", gap=4, padding=8),
        leaf("B1", NodeType.ICON),
        leaf("B2", NodeType.ICON),
        leaf("D", props={"text": "Footer"}),
        container("R2", ["E", "G", "I"]),
        container("E", ["E1"], x=40, y=30),
        leaf("E1", x=5, y=5),
        leaf("G", NodeType.IMAGE, x=10, y=80),
        container("I", ["I1"], x=100, y=150, node_type=NodeType.INSTANCE),
        container("I1", direction="vertical", patchable=False),
    ]
    frames = [frame("F1", "C"), frame("F2", "R2", x=600, width=300, height=300)]
    return build_document(nodes, frames)


def sample_bounds() -> BoundsMap:
    """Frame-local bounds for the sample document."""
    return BoundsMap.from_tuples(
        {
            "C": (0, 0, 400, 400),
            "A": (0, 0, 400, 50),
            "A1": (0, 0, 100, 20),
            "B": (0, 60, 400, 50),
            "B1": (8, 68, 30, 30),
            "B2": (42, 68, 30, 30),
            "D": (0, 120, 400, 50),
            "R2": (0, 0, 300, 300),
            "E": (40, 30, 100, 60),
            "E1": (45, 35, 50, 20),
            "G": (10, 80, 40, 40),
            "I": (100, 150, 120, 100),
            "I1": (100, 150, 120, 100),
        }
    )


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def doc() -> Document:
    return sample_document()


@pytest.fixture
def index(doc: Document) -> ParentIndex:
    return ParentIndex.build(doc)


@pytest.fixture
def bounds() -> BoundsMap:
    return sample_bounds()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(doc: Document, settings: Settings, clock: FakeClock) -> DocumentStore:
    return DocumentStore(doc, settings=settings, clock=clock)
