"""Patch applier — applies patch ops to an immutable Document and records inverses.

Every op is checked before it touches the working state, and the working state
is a private copy of the node/frame maps, so a failing op leaves the caller's
document as it was. Ops inside a ``Batch`` see the effects of earlier ops,
including parent-index updates, which keeps cycle checks correct mid-batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as SchemaError

from framepatch.errors import EngineError, StructuralError, ValidationError
from framepatch.models.document import Document, Frame, Node
from framepatch.models.patch_ops import (
    AttachChild,
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
    iter_primitive,
)
from framepatch.patch import paths
from framepatch.patch.change_set import ChangeSet
from framepatch.store.parent_index import ParentIndex

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of a successful apply: the new snapshot and how to undo it."""

    document: Document
    inverse: list[PatchOp]
    index: ParentIndex
    applied: list[PatchOp] = field(default_factory=list)
    changes: ChangeSet = field(default_factory=ChangeSet)


@dataclass
class _WorkingState:
    nodes: dict[str, Node]
    frames: dict[str, Frame]
    index: ParentIndex


def _schema_message(e: SchemaError) -> str:
    parts = []
    for err in e.errors(include_url=False):
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def _resolve_index(index: int, length: int, what: str) -> int:
    if index == -1:
        return length
    if 0 <= index <= length:
        return index
    raise ValidationError(f"Index {index} out of range for {what} (0..{length} or -1)")


class PatchApplier:
    """Stateless op interpreter; one instance can serve any number of stores."""

    def apply(
        self,
        document: Document,
        op: PatchOp,
        index: ParentIndex | None = None,
    ) -> ApplyResult:
        return self.apply_batch(document, [op], index)

    def apply_batch(
        self,
        document: Document,
        ops: Iterable[PatchOp],
        index: ParentIndex | None = None,
    ) -> ApplyResult:
        """Apply ``ops`` in order, all or nothing.

        Raises an ``EngineError`` carrying the position of the failing op in
        the flattened primitive sequence. ``index`` is never modified; the
        result carries the updated copy.
        """
        base_index = index if index is not None else ParentIndex.build(document)
        state = _WorkingState(
            nodes=dict(document.nodes),
            frames=dict(document.frames),
            index=base_index.copy(),
        )
        inverses: list[PatchOp] = []
        applied: list[PatchOp] = []
        changes = ChangeSet()

        for position, op in enumerate(iter_primitive(ops)):
            try:
                changes = changes.merge(ChangeSet.from_op(op, state.index, state.nodes))
                inverses.append(self._apply_one(state, op))
            except EngineError as e:
                logger.debug("Patch rejected at op %d (%s): %s", position, op.op, e.message)
                raise e.at(position)
            applied.append(op)

        if not applied:
            return ApplyResult(document=document, inverse=[], index=base_index)

        new_document = document.model_copy(update={"nodes": state.nodes, "frames": state.frames})
        logger.debug("Applied %d primitive ops", len(applied))
        return ApplyResult(
            document=new_document,
            inverse=list(reversed(inverses)),
            index=state.index,
            applied=applied,
            changes=changes,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _apply_one(self, state: _WorkingState, op: PatchOp) -> PatchOp:
        if isinstance(op, SetProp):
            return self._set_prop(state, op)
        if isinstance(op, DeleteProp):
            return self._delete_prop(state, op)
        if isinstance(op, InsertNode):
            return self._insert_node(state, op)
        if isinstance(op, RemoveNode):
            return self._remove_node(state, op)
        if isinstance(op, ReplaceNode):
            return self._replace_node(state, op)
        if isinstance(op, AttachChild):
            return self._attach_child(state, op)
        if isinstance(op, DetachChild):
            return self._detach_child(state, op)
        if isinstance(op, MoveNode):
            return self._move_node(state, op)
        if isinstance(op, InsertFrame):
            return self._insert_frame(state, op)
        if isinstance(op, RemoveFrame):
            return self._remove_frame(state, op)
        if isinstance(op, SetFrameProp):
            return self._set_frame_prop(state, op)
        raise ValidationError(f"Unsupported patch op {type(op).__name__}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _node(state: _WorkingState, node_id: str) -> Node:
        node = state.nodes.get(node_id)
        if node is None:
            raise ValidationError(f"Node {node_id!r} does not exist")
        return node

    @classmethod
    def _patchable(cls, state: _WorkingState, node_id: str, op_name: str) -> Node:
        node = cls._node(state, node_id)
        if not node.is_patchable:
            raise ValidationError(
                f"{op_name}: node {node_id!r} is part of an expanded instance "
                "and is not independently addressable"
            )
        return node

    @staticmethod
    def _frame(state: _WorkingState, frame_id: str) -> Frame:
        frame = state.frames.get(frame_id)
        if frame is None:
            raise ValidationError(f"Frame {frame_id!r} does not exist")
        return frame

    @staticmethod
    def _revalidate(node: Node, changes: dict[str, Any]) -> Node:
        try:
            return Node.model_validate({**dict(node), **changes})
        except SchemaError as e:
            raise ValidationError(f"Node {node.id!r}: {_schema_message(e)}") from e

    # ------------------------------------------------------------------
    # Property ops
    # ------------------------------------------------------------------

    def _set_prop(self, state: _WorkingState, op: SetProp) -> PatchOp:
        node = self._patchable(state, op.id, "SetProp")
        root, segments = paths.split_node_path(op.path)
        mapping = getattr(node, root)
        prior = paths.get_in(mapping, segments, op.path)
        updated = paths.set_in(mapping, segments, op.value, op.path)
        state.nodes[op.id] = self._revalidate(node, {root: updated})
        if paths.is_missing(prior):
            return DeleteProp(id=op.id, path=op.path)
        return SetProp(id=op.id, path=op.path, value=prior)

    def _delete_prop(self, state: _WorkingState, op: DeleteProp) -> PatchOp:
        node = self._patchable(state, op.id, "DeleteProp")
        root, segments = paths.split_node_path(op.path)
        mapping = getattr(node, root)
        prior = paths.get_in(mapping, segments, op.path)
        if paths.is_missing(prior):
            raise ValidationError(f"DeleteProp: path {op.path!r} does not exist on {op.id!r}")
        updated = paths.delete_in(mapping, segments, op.path)
        state.nodes[op.id] = self._revalidate(node, {root: updated})
        return SetProp(id=op.id, path=op.path, value=prior)

    # ------------------------------------------------------------------
    # Node ops
    # ------------------------------------------------------------------

    def _insert_node(self, state: _WorkingState, op: InsertNode) -> PatchOp:
        node = op.node
        if node.id in state.nodes:
            raise ValidationError(f"InsertNode: node {node.id!r} already exists")
        for child_id in node.child_ids:
            if child_id not in state.nodes:
                raise ValidationError(f"InsertNode: child {child_id!r} of {node.id!r} does not exist")
            current = state.index.parent_of(child_id)
            if current is not None:
                raise StructuralError(
                    f"InsertNode: child {child_id!r} is already attached to {current!r}"
                )
            if state.index.is_root(child_id):
                raise StructuralError(f"InsertNode: child {child_id!r} is a frame root")
        state.nodes[node.id] = node
        state.index.on_insert_node(node)
        return RemoveNode(id=node.id)

    def _remove_node(self, state: _WorkingState, op: RemoveNode) -> PatchOp:
        node = self._node(state, op.id)
        parent_id = state.index.parent_of(op.id)
        if parent_id is not None:
            raise StructuralError(
                f"RemoveNode: {op.id!r} is still a child of {parent_id!r}; detach it first"
            )
        frame_id = state.index.frame_for_root(op.id)
        if frame_id is not None:
            raise StructuralError(f"RemoveNode: {op.id!r} is the root of frame {frame_id!r}")
        del state.nodes[op.id]
        state.index.on_remove_node(node)
        return InsertNode(node=node)

    def _replace_node(self, state: _WorkingState, op: ReplaceNode) -> PatchOp:
        prior = self._patchable(state, op.id, "ReplaceNode")
        if op.node.id != op.id:
            raise ValidationError(
                f"ReplaceNode: replacement id {op.node.id!r} does not match {op.id!r}"
            )
        if op.node.child_ids != prior.child_ids:
            raise StructuralError(
                f"ReplaceNode: {op.id!r} children may only change through Attach/Detach"
            )
        if not op.node.is_patchable:
            raise ValidationError(f"ReplaceNode: replacement for {op.id!r} must be patchable")
        state.nodes[op.id] = op.node
        return ReplaceNode(id=op.id, node=prior)

    # ------------------------------------------------------------------
    # Structural ops
    # ------------------------------------------------------------------

    def _attach_child(self, state: _WorkingState, op: AttachChild) -> PatchOp:
        parent = self._node(state, op.parent_id)
        self._node(state, op.child_id)
        if op.child_id == op.parent_id:
            raise StructuralError(f"AttachChild: {op.child_id!r} cannot be its own child")
        current = state.index.parent_of(op.child_id)
        if current == op.parent_id:
            raise StructuralError(f"AttachChild: {op.child_id!r} is already a child of {current!r}")
        if current is not None:
            raise StructuralError(
                f"AttachChild: {op.child_id!r} is already attached to {current!r}"
            )
        if state.index.is_root(op.child_id):
            raise StructuralError(f"AttachChild: {op.child_id!r} is a frame root")
        if state.index.is_ancestor(op.child_id, op.parent_id):
            raise StructuralError(
                f"AttachChild: {op.parent_id!r} is a descendant of {op.child_id!r}"
            )
        position = _resolve_index(op.index, len(parent.child_ids), f"children of {op.parent_id!r}")
        child_ids = list(parent.child_ids)
        child_ids.insert(position, op.child_id)
        state.nodes[op.parent_id] = parent.with_child_ids(child_ids)
        state.index.on_attach(op.parent_id, op.child_id)
        return DetachChild(parent_id=op.parent_id, child_id=op.child_id)

    def _detach_child(self, state: _WorkingState, op: DetachChild) -> PatchOp:
        parent = self._node(state, op.parent_id)
        if op.child_id not in parent.child_ids:
            raise StructuralError(
                f"DetachChild: {op.child_id!r} is not a child of {op.parent_id!r}"
            )
        child_ids = list(parent.child_ids)
        position = child_ids.index(op.child_id)
        del child_ids[position]
        state.nodes[op.parent_id] = parent.with_child_ids(child_ids)
        state.index.on_detach(op.child_id)
        return AttachChild(parent_id=op.parent_id, child_id=op.child_id, index=position)

    def _move_node(self, state: _WorkingState, op: MoveNode) -> PatchOp:
        self._patchable(state, op.id, "MoveNode")
        new_parent = self._node(state, op.new_parent_id)
        if op.new_parent_id == op.id:
            raise StructuralError(f"MoveNode: {op.id!r} cannot be moved into itself")
        if state.index.is_root(op.id):
            raise StructuralError(f"MoveNode: {op.id!r} is a frame root")
        old_parent_id = state.index.parent_of(op.id)
        if old_parent_id is None:
            raise StructuralError(f"MoveNode: {op.id!r} is not attached to a parent")
        if state.index.is_ancestor(op.id, op.new_parent_id):
            raise StructuralError(
                f"MoveNode: {op.new_parent_id!r} is a descendant of {op.id!r}"
            )

        old_parent = state.nodes[old_parent_id]
        old_children = list(old_parent.child_ids)
        old_index = old_children.index(op.id)
        del old_children[old_index]

        if old_parent_id == op.new_parent_id:
            position = _resolve_index(op.index, len(old_children), f"children of {old_parent_id!r}")
            old_children.insert(position, op.id)
            state.nodes[old_parent_id] = old_parent.with_child_ids(old_children)
        else:
            new_children = list(new_parent.child_ids)
            position = _resolve_index(op.index, len(new_children), f"children of {op.new_parent_id!r}")
            new_children.insert(position, op.id)
            state.nodes[old_parent_id] = old_parent.with_child_ids(old_children)
            state.nodes[op.new_parent_id] = new_parent.with_child_ids(new_children)
            state.index.on_detach(op.id)
            state.index.on_attach(op.new_parent_id, op.id)

        return MoveNode(id=op.id, new_parent_id=old_parent_id, index=old_index)

    # ------------------------------------------------------------------
    # Frame ops
    # ------------------------------------------------------------------

    def _check_root_available(self, state: _WorkingState, root_id: str, frame_id: str) -> None:
        if root_id not in state.nodes:
            raise ValidationError(f"Frame {frame_id!r}: root node {root_id!r} does not exist")
        parent_id = state.index.parent_of(root_id)
        if parent_id is not None:
            raise StructuralError(
                f"Frame {frame_id!r}: root {root_id!r} is attached to {parent_id!r}"
            )
        owner = state.index.frame_for_root(root_id)
        if owner is not None and owner != frame_id:
            raise StructuralError(
                f"Frame {frame_id!r}: root {root_id!r} already anchors frame {owner!r}"
            )

    def _insert_frame(self, state: _WorkingState, op: InsertFrame) -> PatchOp:
        frame = op.frame
        if frame.id in state.frames:
            raise ValidationError(f"InsertFrame: frame {frame.id!r} already exists")
        self._check_root_available(state, frame.root_node_id, frame.id)
        state.frames[frame.id] = frame
        state.index.on_insert_frame(frame)
        return RemoveFrame(frame_id=frame.id)

    def _remove_frame(self, state: _WorkingState, op: RemoveFrame) -> PatchOp:
        frame = self._frame(state, op.frame_id)
        del state.frames[op.frame_id]
        state.index.on_remove_frame(frame)
        return InsertFrame(frame=frame)

    def _set_frame_prop(self, state: _WorkingState, op: SetFrameProp) -> PatchOp:
        frame = self._frame(state, op.frame_id)
        segments = paths.split_path(op.path)
        if segments == ["id"]:
            raise ValidationError("SetFrameProp: frame id is immutable")
        data = frame.model_dump(by_alias=True)
        prior = paths.get_in(data, segments, op.path)
        if paths.is_missing(prior):
            raise ValidationError(f"SetFrameProp: frame has no property {op.path!r}")
        try:
            updated = Frame.model_validate(paths.set_in(data, segments, op.value, op.path))
        except SchemaError as e:
            raise ValidationError(f"Frame {op.frame_id!r}: {_schema_message(e)}") from e
        if updated.root_node_id != frame.root_node_id:
            self._check_root_available(state, updated.root_node_id, frame.id)
            state.index.on_root_changed(frame.id, frame.root_node_id, updated.root_node_id)
        state.frames[op.frame_id] = updated
        return SetFrameProp(frame_id=op.frame_id, path=op.path, value=prior)


_default_applier = PatchApplier()


def apply_patch(document: Document, op: PatchOp) -> Document:
    return _default_applier.apply(document, op).document


def invert(document: Document, op: PatchOp) -> list[PatchOp]:
    """Inverse ops for applying ``op`` to ``document``, in application order."""
    return _default_applier.apply(document, op).inverse
