"""Fresh ids for pasted nodes, with every internal reference rewritten."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Collection, Mapping
from typing import Any

from framepatch.errors import ClipboardError
from framepatch.models.clipboard import ClipboardPayload
from framepatch.models.document import Node


def default_id_factory() -> str:
    return f"paste_{uuid.uuid4().hex[:12]}"


def _is_id_key(key: str) -> bool:
    return key.endswith("Id") or key.endswith("Ids")


class NodeRemapper:
    """Assigns a new id to every node in a payload and rewrites references.

    Rewritten references: ``child_ids``, ``patch_target``, props keys ending
    in ``Id``/``Ids`` (``defaultContentId``, ``targetId``, ``contentId`` inside
    ``slots``...) and the keys of ``props.slots``. Prop references to ids
    outside the payload are left alone.
    """

    def __init__(
        self,
        id_factory: Callable[[], str] | None = None,
        taken: Collection[str] = (),
    ) -> None:
        self._id_factory = id_factory or default_id_factory
        self._taken = set(taken)
        self._id_map: dict[str, str] = {}

    @property
    def id_map(self) -> dict[str, str]:
        return dict(self._id_map)

    def _fresh(self) -> str:
        while True:
            new_id = self._id_factory()
            if new_id not in self._taken:
                self._taken.add(new_id)
                return new_id

    def remap_nodes(self, nodes: list[Node] | tuple[Node, ...]) -> list[Node]:
        for node in nodes:
            self._taken.add(node.id)
        for node in nodes:
            self._id_map[node.id] = self._fresh()
        return [self._remap_node(node) for node in nodes]

    def remap_ids(self, ids: list[str] | tuple[str, ...]) -> list[str]:
        return [self._id_map[i] for i in ids]

    def _remap_node(self, node: Node) -> Node:
        new_id = self._id_map[node.id]
        return node.model_copy(
            update={
                "id": new_id,
                "child_ids": tuple(self._id_map.get(c, c) for c in node.child_ids),
                "patch_target": None if node.patch_target is None else new_id,
                "props": self._remap_value(node.props),
                "layout": self._remap_value(node.layout),
                "style": self._remap_value(node.style),
            }
        )

    def _remap_value(self, value: Any, key: str | None = None) -> Any:
        if isinstance(value, Mapping):
            if key == "slots":
                return {
                    self._id_map.get(k, k): self._remap_value(v, k) for k, v in value.items()
                }
            return {k: self._remap_value(v, k) for k, v in value.items()}
        if isinstance(value, str) and key is not None and _is_id_key(key):
            return self._id_map.get(value, value)
        if isinstance(value, list):
            if key is not None and _is_id_key(key):
                return [self._id_map.get(v, v) if isinstance(v, str) else v for v in value]
            return [self._remap_value(v) for v in value]
        return value


def remap(
    payload: ClipboardPayload,
    id_factory: Callable[[], str] | None = None,
    taken: Collection[str] = (),
) -> tuple[ClipboardPayload, dict[str, str]]:
    """Return the payload with fresh ids and the ``old -> new`` id map."""
    dangling = payload.dangling_children()
    if dangling:
        raise ClipboardError(f"Cannot remap children outside the payload: {', '.join(dangling)}")
    remapper = NodeRemapper(id_factory, taken)
    nodes = remapper.remap_nodes(payload.nodes)
    remapped = payload.model_copy(
        update={"nodes": tuple(nodes), "root_ids": tuple(remapper.remap_ids(payload.root_ids))}
    )
    return remapped, remapper.id_map
