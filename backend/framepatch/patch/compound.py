"""Compound op builder — expands composite intents into one primitive Batch.

Each builder returns a single ``Batch`` so the whole intent is one atomic
commit and one undo step.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from framepatch.errors import NotFoundError, StructuralError
from framepatch.models.document import Document, Frame, Node
from framepatch.models.patch_ops import (
    AttachChild,
    Batch,
    DetachChild,
    InsertFrame,
    InsertNode,
    PatchOp,
    RemoveFrame,
    RemoveNode,
)
from framepatch.store.parent_index import ParentIndex


def _children_first(nodes: dict[str, Node], root_id: str) -> list[str]:
    """Reversed pre-order: every node comes after all of its descendants."""
    order: list[str] = []
    stack = [root_id]
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current in seen or current not in nodes:
            continue
        seen.add(current)
        order.append(current)
        stack.extend(reversed(nodes[current].child_ids))
    order.reverse()
    return order


def _remove_descendants(document: Document, root_id: str) -> list[PatchOp]:
    """Detach + remove every strict descendant of ``root_id``, bottom-up."""
    parents: dict[str, str] = {}
    order = _children_first(document.nodes, root_id)
    for node_id in order:
        for child_id in document.nodes[node_id].child_ids:
            parents[child_id] = node_id

    ops: list[PatchOp] = []
    for node_id in order:
        if node_id == root_id:
            continue
        ops.append(DetachChild(parent_id=parents[node_id], child_id=node_id))
        ops.append(RemoveNode(id=node_id))
    return ops


def delete_frame_and_subtree(document: Document, frame_id: str) -> Batch:
    """Remove a frame and every node under its root in one undoable step."""
    frame = document.frames.get(frame_id)
    if frame is None:
        raise NotFoundError(f"Frame {frame_id!r} does not exist")
    ops = _remove_descendants(document, frame.root_node_id)
    ops.append(RemoveFrame(frame_id=frame_id))
    if frame.root_node_id in document.nodes:
        ops.append(RemoveNode(id=frame.root_node_id))
    return Batch(ops=ops)


def delete_subtree(document: Document, parent_index: ParentIndex, node_id: str) -> Batch:
    if node_id not in document.nodes:
        raise NotFoundError(f"Node {node_id!r} does not exist")
    frame_id = parent_index.frame_for_root(node_id)
    if frame_id is not None:
        raise StructuralError(
            f"{node_id!r} is the root of frame {frame_id!r}; delete the frame instead"
        )
    ops: list[PatchOp] = []
    parent_id = parent_index.parent_of(node_id)
    if parent_id is not None:
        ops.append(DetachChild(parent_id=parent_id, child_id=node_id))
    ops.extend(_remove_descendants(document, node_id))
    ops.append(RemoveNode(id=node_id))
    return Batch(ops=ops)


def delete_nodes(document: Document, parent_index: ParentIndex, node_ids: Iterable[str]) -> Batch:
    """Delete several subtrees at once; ids nested under another selected id are skipped."""
    selected = list(dict.fromkeys(node_ids))
    wanted = set(selected)
    ops: list[PatchOp] = []
    for node_id in selected:
        if any(a in wanted for a in parent_index.ancestors(node_id)):
            continue
        ops.extend(delete_subtree(document, parent_index, node_id).ops)
    return Batch(ops=ops)


def insert_subtree(
    nodes: Sequence[Node],
    root_ids: Sequence[str],
    parent_id: str,
    index: int = -1,
) -> Batch:
    """Insert detached subtrees and attach their roots to ``parent_id``.

    Roots land at consecutive positions starting at ``index`` (``-1`` appends
    each in order).
    """
    by_id = {node.id: node for node in nodes}
    ops: list[PatchOp] = []
    for root_id in root_ids:
        ops.extend(InsertNode(node=by_id[node_id]) for node_id in _children_first(by_id, root_id))
    for offset, root_id in enumerate(root_ids):
        position = -1 if index == -1 else index + offset
        ops.append(AttachChild(parent_id=parent_id, child_id=root_id, index=position))
    return Batch(ops=ops)


def move_nodes(
    node_ids: Sequence[str],
    origin_parent_id: str,
    target_parent_id: str,
    index: int = -1,
) -> Batch:
    """Detach every id from its origin, then attach them in order at ``index``.

    ``index`` is a position in the target's child list with the moved nodes
    already removed.
    """
    ops: list[PatchOp] = [
        DetachChild(parent_id=origin_parent_id, child_id=node_id) for node_id in node_ids
    ]
    for offset, node_id in enumerate(node_ids):
        position = -1 if index == -1 else index + offset
        ops.append(AttachChild(parent_id=target_parent_id, child_id=node_id, index=position))
    return Batch(ops=ops)


def create_frame(frame: Frame, root: Node, children: Sequence[Node] = ()) -> Batch:
    """Insert a root node with its descendants, then the frame anchoring it."""
    by_id = {node.id: node for node in (*children, root)}
    ops: list[PatchOp] = [
        InsertNode(node=by_id[node_id]) for node_id in _children_first(by_id, root.id)
    ]
    ops.append(InsertFrame(frame=frame))
    return Batch(ops=ops)
