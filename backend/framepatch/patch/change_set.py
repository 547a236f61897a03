"""Dirty-set bookkeeping for downstream consumers (spatial index, renderer)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from framepatch.models.document import Node
from framepatch.models.patch_ops import (
    AttachChild,
    Batch,
    DeleteProp,
    DetachChild,
    InsertFrame,
    InsertNode,
    MoveNode,
    PatchOp,
    RemoveFrame,
    RemoveNode,
    ReplaceNode,
    SetFrameProp,
    SetProp,
)
from framepatch.store.parent_index import ParentIndex

# Position edits never change layout; size edits do, because they feed auto-layout.
_GEOMETRY_PREFIXES = ("/layout/position", "/canvas/position", "/canvas/size")


def is_geometry_path(path: str) -> bool:
    normalized = path if path.startswith("/") else "/" + path
    return normalized.startswith(_GEOMETRY_PREFIXES)


@dataclass(frozen=True)
class ChangeSet:
    """Ids touched by a commit, split by what a consumer has to recompute."""

    geometry_dirty: frozenset[str] = field(default_factory=frozenset)
    compilation_dirty: frozenset[str] = field(default_factory=frozenset)
    frame_dirty: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.geometry_dirty or self.compilation_dirty or self.frame_dirty)

    def merge(self, other: ChangeSet) -> ChangeSet:
        return ChangeSet(
            geometry_dirty=self.geometry_dirty | other.geometry_dirty,
            compilation_dirty=self.compilation_dirty | other.compilation_dirty,
            frame_dirty=self.frame_dirty | other.frame_dirty,
        )

    @classmethod
    def from_op(cls, op: PatchOp, index: ParentIndex, nodes: Mapping[str, Node]) -> ChangeSet:
        """Classify one op against the state it is about to be applied to."""
        if isinstance(op, Batch):
            result = cls()
            for child in op.ops:
                result = result.merge(cls.from_op(child, index, nodes))
            return result
        if isinstance(op, SetProp) and is_geometry_path(op.path):
            return cls(geometry_dirty=frozenset({op.id}))
        if isinstance(op, (SetProp, DeleteProp, ReplaceNode)):
            return cls(compilation_dirty=_with_ancestors(op.id, index))
        if isinstance(op, SetFrameProp):
            return cls(frame_dirty=frozenset({op.frame_id}))
        if isinstance(op, InsertNode):
            return cls(compilation_dirty=_subtree(op.node.id, {**nodes, op.node.id: op.node}))
        if isinstance(op, AttachChild):
            return cls(
                compilation_dirty=_with_ancestors(op.parent_id, index)
                | _subtree(op.child_id, nodes)
            )
        if isinstance(op, DetachChild):
            return cls(compilation_dirty=_with_ancestors(op.parent_id, index))
        if isinstance(op, MoveNode):
            old_parent = index.parent_of(op.id)
            dirty = _with_ancestors(op.new_parent_id, index) | _subtree(op.id, nodes)
            if old_parent is not None:
                dirty |= _with_ancestors(old_parent, index)
            return cls(compilation_dirty=dirty)
        if isinstance(op, InsertFrame):
            return cls(frame_dirty=frozenset({op.frame.id}))
        if isinstance(op, RemoveFrame):
            return cls(frame_dirty=frozenset({op.frame_id}))
        if isinstance(op, RemoveNode):
            # Already detached by the time it is removed.
            return cls()
        raise TypeError(f"Unhandled patch op {type(op).__name__}")


def _with_ancestors(node_id: str, index: ParentIndex) -> frozenset[str]:
    return frozenset([node_id, *index.ancestors(node_id)])


def _subtree(node_id: str, nodes: Mapping[str, Node]) -> frozenset[str]:
    result: set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        if current in result:
            continue
        result.add(current)
        node = nodes.get(current)
        if node is not None:
            stack.extend(node.child_ids)
    return frozenset(result)
