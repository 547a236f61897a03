"""Selection helpers for copy/paste: top-level roots, subtrees and anchors."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from framepatch.errors import ClipboardError, NotFoundError
from framepatch.models.clipboard import ClipboardPayload, ClipboardSource
from framepatch.models.document import Document, Node, NodeType, Point
from framepatch.store.parent_index import ParentIndex


def _sort_key(document: Document, node_id: str) -> tuple[float, float, str]:
    node = document.nodes[node_id]
    return (node.y or 0.0, node.x or 0.0, node_id)


def get_top_level_roots(
    document: Document,
    parent_index: ParentIndex,
    selection: Iterable[str],
    frame_ids: Iterable[str] = (),
) -> list[str]:
    """Selected ids that have no selected ancestor, in (y, x, id) order.

    Frames contribute their root node. Nodes inside an expanded instance are
    not copyable on their own and are ignored. The result does not depend on
    the iteration order of ``selection``.
    """
    selected: set[str] = set()
    for node_id in selection:
        node = document.nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Selected node {node_id!r} does not exist")
        if node.is_patchable:
            selected.add(node_id)
    for frame_id in frame_ids:
        frame = document.frames.get(frame_id)
        if frame is None:
            raise NotFoundError(f"Selected frame {frame_id!r} does not exist")
        selected.add(frame.root_node_id)

    roots = [
        node_id
        for node_id in selected
        if not any(ancestor in selected for ancestor in parent_index.ancestors(node_id))
    ]
    return sorted(roots, key=lambda node_id: _sort_key(document, node_id))


def collect_subtree(document: Document, root_ids: Sequence[str]) -> list[Node]:
    """Every node under ``root_ids`` in pre-order, each once."""
    result: list[Node] = []
    seen: set[str] = set()
    for root_id in root_ids:
        for node_id in document.subtree(root_id):
            if node_id not in seen:
                seen.add(node_id)
                result.append(document.nodes[node_id])
    return result


def compute_anchor(document: Document, root_ids: Sequence[str]) -> Point:
    """Top-left (min x, min y) of the roots' frame-local positions."""
    xs = [document.nodes[r].x or 0.0 for r in root_ids if r in document.nodes]
    ys = [document.nodes[r].y or 0.0 for r in root_ids if r in document.nodes]
    if not xs:
        return Point()
    return Point(x=min(xs), y=min(ys))


def build_payload(
    document: Document,
    parent_index: ParentIndex,
    roots: Sequence[str],
    frame_id: str | None = None,
) -> ClipboardPayload:
    if not roots:
        raise ClipboardError("Nothing selected to copy")
    for root_id in roots:
        if root_id not in document.nodes:
            raise NotFoundError(f"Node {root_id!r} does not exist")
    if frame_id is None:
        frame_id = parent_index.frame_of(roots[0])
    return ClipboardPayload(
        source=ClipboardSource(document_id=document.document_id, frame_id=frame_id),
        root_ids=tuple(roots),
        nodes=tuple(collect_subtree(document, roots)),
        anchor=compute_anchor(document, roots),
    )


def determine_target_parent(
    document: Document,
    parent_index: ParentIndex,
    selection: Sequence[str],
    frame_id: str,
) -> str:
    """Paste inside a single selected patchable container in ``frame_id``, else the frame root."""
    frame = document.frames.get(frame_id)
    if frame is None:
        raise NotFoundError(f"Frame {frame_id!r} does not exist")
    if len(selection) == 1:
        node = document.nodes.get(selection[0])
        if (
            node is not None
            and node.is_patchable
            and node.type == NodeType.CONTAINER
            and parent_index.frame_of(node.id) == frame_id
        ):
            return node.id
    return frame.root_node_id
