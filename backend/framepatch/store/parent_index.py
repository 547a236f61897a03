"""Derived child -> parent lookup, maintained incrementally alongside the document."""

from __future__ import annotations

import logging

from framepatch.models.document import Document, Frame, Node

logger = logging.getLogger(__name__)


class ParentIndex:
    """``child -> parent`` map plus ``root -> frame`` map.

    Never a source of truth: ``build()`` reconstructs it from the child
    sequences and frame roots of a document. Structural ops update only the
    entries they touch through the ``on_*`` hooks.
    """

    __slots__ = ("_parents", "_root_frames")

    def __init__(
        self,
        parents: dict[str, str] | None = None,
        root_frames: dict[str, str] | None = None,
    ) -> None:
        self._parents: dict[str, str] = parents if parents is not None else {}
        self._root_frames: dict[str, str] = root_frames if root_frames is not None else {}

    @classmethod
    def build(cls, document: Document) -> ParentIndex:
        parents: dict[str, str] = {}
        for node in document.nodes.values():
            for child_id in node.child_ids:
                parents[child_id] = node.id
        root_frames = {frame.root_node_id: frame.id for frame in document.frames.values()}
        logger.debug("Rebuilt parent index: %d edges, %d roots", len(parents), len(root_frames))
        return cls(parents, root_frames)

    def copy(self) -> ParentIndex:
        return ParentIndex(dict(self._parents), dict(self._root_frames))

    # ------------------------------------------------------------------
    # Incremental hooks
    # ------------------------------------------------------------------

    def on_attach(self, parent_id: str, child_id: str) -> None:
        self._parents[child_id] = parent_id

    def on_detach(self, child_id: str) -> None:
        self._parents.pop(child_id, None)

    def on_insert_node(self, node: Node) -> None:
        for child_id in node.child_ids:
            self._parents[child_id] = node.id

    def on_remove_node(self, node: Node) -> None:
        for child_id in node.child_ids:
            if self._parents.get(child_id) == node.id:
                del self._parents[child_id]
        self._parents.pop(node.id, None)

    def on_insert_frame(self, frame: Frame) -> None:
        self._root_frames[frame.root_node_id] = frame.id

    def on_remove_frame(self, frame: Frame) -> None:
        if self._root_frames.get(frame.root_node_id) == frame.id:
            del self._root_frames[frame.root_node_id]

    def on_root_changed(self, frame_id: str, old_root_id: str, new_root_id: str) -> None:
        if self._root_frames.get(old_root_id) == frame_id:
            del self._root_frames[old_root_id]
        self._root_frames[new_root_id] = frame_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def parent_of(self, node_id: str) -> str | None:
        return self._parents.get(node_id)

    def ancestors(self, node_id: str) -> list[str]:
        """Ancestors of ``node_id``, nearest first."""
        result: list[str] = []
        seen = {node_id}
        current = self._parents.get(node_id)
        while current is not None and current not in seen:
            result.append(current)
            seen.add(current)
            current = self._parents.get(current)
        return result

    def is_ancestor(self, candidate: str, node_id: str) -> bool:
        """True when ``candidate`` is a strict ancestor of ``node_id``."""
        seen = {node_id}
        current = self._parents.get(node_id)
        while current is not None and current not in seen:
            if current == candidate:
                return True
            seen.add(current)
            current = self._parents.get(current)
        return False

    def top_of(self, node_id: str) -> str:
        chain = self.ancestors(node_id)
        return chain[-1] if chain else node_id

    def frame_of(self, node_id: str) -> str | None:
        return self._root_frames.get(self.top_of(node_id))

    def is_root(self, node_id: str) -> bool:
        return node_id in self._root_frames

    def frame_for_root(self, node_id: str) -> str | None:
        return self._root_frames.get(node_id)

    def __len__(self) -> int:
        return len(self._parents)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._parents

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParentIndex):
            return NotImplemented
        return self._parents == other._parents and self._root_frames == other._root_frames

    def __repr__(self) -> str:
        return f"ParentIndex(edges={len(self._parents)}, roots={len(self._root_frames)})"

    def verify(self, document: Document) -> list[str]:
        """Compare against a full rebuild; returns the mismatches found."""
        problems: list[str] = []
        expected = ParentIndex.build(document)
        for child_id, parent_id in expected._parents.items():
            actual = self._parents.get(child_id)
            if actual != parent_id:
                problems.append(f"{child_id!r}: index has {actual!r}, document has {parent_id!r}")
        for child_id in self._parents.keys() - expected._parents.keys():
            problems.append(f"{child_id!r}: stale entry -> {self._parents[child_id]!r}")
        if self._root_frames != expected._root_frames:
            problems.append(
                f"frame roots differ: index {self._root_frames!r}, "
                f"document {expected._root_frames!r}"
            )
        return problems
