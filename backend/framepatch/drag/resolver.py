"""Drop target resolution for drag/reorder/reparent gestures.

Given a document snapshot, externally computed node bounds and a pointer in
world coordinates, the resolver finds the auto-layout container under the
pointer, the insertion index among its children and an insertion indicator.

All math runs in world units. Zoom is carried through to the preview for
overlay conversion only, so the same world geometry resolves identically at
every zoom level. Per call the cost is one root-to-leaf descent plus one pass
over the hovered container's children.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from framepatch.config import Settings, get_settings
from framepatch.drag.preview import DropIntent, DropPreview, Indicator
from framepatch.models.document import Document, Frame, Node
from framepatch.store.parent_index import ParentIndex
from framepatch.utils.geometry import (
    Rect,
    clip_segment,
    count_before,
    midpoints,
    padding_values,
    segment_length,
)

logger = logging.getLogger(__name__)

Point2 = tuple[float, float]


class LayoutSnapshot(Protocol):
    """Frame-local node bounds supplied by the external layout pass."""

    def bounds(self, node_id: str) -> Rect | None: ...


class BoundsMap:
    """Dict-backed ``LayoutSnapshot``."""

    def __init__(self, rects: Mapping[str, Rect] | None = None) -> None:
        self._rects: dict[str, Rect] = dict(rects or {})

    @classmethod
    def from_tuples(cls, rects: Mapping[str, tuple[float, float, float, float]]) -> BoundsMap:
        return cls({node_id: Rect(*xywh) for node_id, xywh in rects.items()})

    def bounds(self, node_id: str) -> Rect | None:
        return self._rects.get(node_id)

    def set(self, node_id: str, rect: Rect) -> None:
        self._rects[node_id] = rect

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._rects


def find_frame_at(document: Document, pointer_world: Point2) -> Frame | None:
    """Frame whose canvas contains the pointer; the lowest id wins on overlap."""
    for frame_id in sorted(document.frames):
        frame = document.frames[frame_id]
        if frame.contains_world(*pointer_world):
            return frame
    return None


def origin_parent_of(
    parent_index: ParentIndex, dragged_ids: Sequence[str]
) -> tuple[str | None, str | None]:
    """Return ``(origin_parent_id, invalid_reason)`` for the dragged set."""
    parents = {parent_index.parent_of(node_id) for node_id in dragged_ids}
    if None in parents:
        return None, "cannot drag a node without a parent"
    if len(parents) != 1:
        return None, "dragged nodes have different parents"
    return parents.pop(), None


class DropPreviewResolver:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def resolve(
        self,
        document: Document,
        parent_index: ParentIndex,
        layout: LayoutSnapshot,
        pointer_world: Point2,
        dragged_ids: Sequence[str],
        frame_id: str | None = None,
        *,
        last_index: int | None = None,
        last_pointer: Point2 | None = None,
        last_target: str | None = None,
        zoom: float = 1.0,
    ) -> DropPreview:
        dragged = tuple(dragged_ids)
        if not dragged:
            return DropPreview.invalid("nothing is being dragged", dragged, frame_id, zoom=zoom)
        for node_id in dragged:
            if node_id not in document.nodes:
                return DropPreview.invalid(
                    f"dragged node {node_id} not found", dragged, frame_id, zoom=zoom
                )

        origin_id, reason = origin_parent_of(parent_index, dragged)
        if reason is not None:
            return DropPreview.invalid(reason, dragged, frame_id, zoom=zoom)

        # 1. Frame
        if frame_id is not None:
            frame = document.frames.get(frame_id)
            if frame is None:
                return DropPreview.invalid(f"frame {frame_id} not found", dragged, frame_id, zoom=zoom)
        else:
            frame = find_frame_at(document, pointer_world)
            if frame is None:
                return DropPreview.invalid("no frame under pointer", dragged, None, origin_id, zoom=zoom)

        fx, fy = frame.position
        local = (pointer_world[0] - fx, pointer_world[1] - fy)
        dragged_set = set(dragged)

        # 2-3. Container: hit-test, then climb to the nearest auto-layout ancestor.
        hit = self._hit_test(document, layout, frame, dragged_set, local)
        target_id = None
        if hit is not None:
            target_id = self._climb(document, parent_index, hit, frame.root_node_id)

        # A hover that would leave the origin for one of its ancestors (or for
        # nothing) while the pointer is still near the origin stays a reorder.
        # Nested containers inside the origin still win.
        if frame.id == parent_index.frame_of(origin_id):
            sticky_id = self._origin_target(document, layout, origin_id, dragged_set, local)
            if sticky_id is not None and (
                target_id is None or parent_index.is_ancestor(target_id, sticky_id)
            ):
                target_id = sticky_id

        if target_id is None:
            reason = "pointer outside frame" if hit is None else "no valid container"
            return DropPreview.invalid(reason, dragged, frame.id, origin_id, zoom=zoom)

        target = document.nodes[target_id]

        # 5. Validity
        if target_id in dragged_set or any(
            parent_index.is_ancestor(node_id, target_id) for node_id in dragged
        ):
            return DropPreview.invalid(
                "cannot drop into own descendant", dragged, frame.id, origin_id, target_id, zoom=zoom
            )
        if not target.is_patchable:
            return DropPreview.invalid(
                "target container is not patchable", dragged, frame.id, origin_id, target_id, zoom=zoom
            )

        # 4. Index
        auto_layout = target.auto_layout or {}
        axis = "horizontal" if auto_layout.get("direction") == "horizontal" else "vertical"
        siblings = [c for c in target.child_ids if c not in dragged_set]
        sibling_rects: list[Rect] = []
        for child_id in siblings:
            rect = layout.bounds(child_id)
            if rect is None:
                return DropPreview.invalid(
                    f"no layout for {child_id}", dragged, frame.id, origin_id, target_id, zoom=zoom
                )
            sibling_rects.append(rect)

        main = local[1] if axis == "vertical" else local[0]
        index = count_before(midpoints(sibling_rects, axis), main)
        # The previous index only means something inside the same container.
        if last_target == target_id:
            index = self._apply_hysteresis(index, last_index, pointer_world, last_pointer, len(siblings))

        # 6. Indicator
        indicator = self._indicator(layout, target, axis, sibling_rects, index, (fx, fy))
        if indicator is None:
            return DropPreview.invalid(
                "container too small", dragged, frame.id, origin_id, target_id, zoom=zoom
            )

        intent = DropIntent.REORDER if target_id == origin_id else DropIntent.REPARENT
        logger.debug(
            "Drop preview: %s -> %s[%d] (%s)", ",".join(dragged), target_id, index, intent.value
        )
        return DropPreview(
            frame_id=frame.id,
            dragged_ids=dragged,
            origin_parent_id=origin_id,
            target_parent_id=target_id,
            insertion_index=index,
            is_valid=True,
            intent=intent,
            indicator=indicator,
            zoom=zoom,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _origin_target(
        self,
        document: Document,
        layout: LayoutSnapshot,
        origin_id: str | None,
        dragged_set: set[str],
        local: Point2,
    ) -> str | None:
        """Keep reorders in the origin container while the pointer stays inside it."""
        if origin_id is None or origin_id in dragged_set:
            return None
        origin = document.nodes.get(origin_id)
        if origin is None or not origin.is_auto_layout:
            return None
        rect = layout.bounds(origin_id)
        if rect is None:
            return None
        content = _content_box(rect, origin)
        slack = self._settings.hysteresis_distance
        sticky = Rect(content.x - slack, content.y - slack, content.width + 2 * slack, content.height + 2 * slack)
        return origin_id if sticky.contains(*local) else None

    @staticmethod
    def _hit_test(
        document: Document,
        layout: LayoutSnapshot,
        frame: Frame,
        dragged_set: set[str],
        local: Point2,
    ) -> str | None:
        """Deepest non-dragged node containing the frame-local pointer."""
        root_id = frame.root_node_id
        root_rect = layout.bounds(root_id) or Rect(0.0, 0.0, frame.canvas.size.width, frame.canvas.size.height)
        if not root_rect.contains(*local):
            return None
        current = root_id
        while True:
            node = document.nodes.get(current)
            if node is None:
                return current
            # Later children paint on top, so they win the hit.
            for child_id in reversed(node.child_ids):
                if child_id in dragged_set:
                    continue
                rect = layout.bounds(child_id)
                if rect is not None and rect.contains(*local):
                    current = child_id
                    break
            else:
                return current

    @staticmethod
    def _climb(
        document: Document, parent_index: ParentIndex, hit: str, root_id: str
    ) -> str | None:
        current: str | None = hit
        while current is not None:
            node = document.nodes.get(current)
            if node is not None and node.is_auto_layout:
                return current
            if current == root_id:
                return None
            current = parent_index.parent_of(current)
        return None

    def _apply_hysteresis(
        self,
        raw_index: int,
        last_index: int | None,
        pointer: Point2,
        last_pointer: Point2 | None,
        sibling_count: int,
    ) -> int:
        if last_index is None or last_pointer is None or raw_index == last_index:
            return raw_index
        moved = segment_length(last_pointer, pointer)
        if moved < self._settings.hysteresis_distance and 0 <= last_index <= sibling_count:
            return last_index
        return raw_index

    def _indicator(
        self,
        layout: LayoutSnapshot,
        target: Node,
        axis: str,
        sibling_rects: list[Rect],
        index: int,
        frame_origin: Point2,
    ) -> Indicator | None:
        rect = layout.bounds(target.id)
        if rect is None:
            return None
        content = _content_box(rect, target)
        gap = float((target.auto_layout or {}).get("gap", 0.0) or 0.0)

        if index == 0 or not sibling_rects:
            main = content.main_start(axis)
        else:
            main = sibling_rects[index - 1].main_end(axis) + gap / 2
        main = min(max(main, content.main_start(axis)), content.main_end(axis))

        if axis == "vertical":
            start, end = (content.left, main), (content.right, main)
            line_axis = "horizontal"
        else:
            start, end = (main, content.top), (main, content.bottom)
            line_axis = "vertical"

        clipped = clip_segment(start, end, content)
        if clipped is None:
            return None
        (sx, sy), (ex, ey) = clipped
        if segment_length((sx, sy), (ex, ey)) < self._settings.min_indicator_length:
            return None
        ox, oy = frame_origin
        return Indicator(start=(sx + ox, sy + oy), end=(ex + ox, ey + oy), axis=line_axis)


def _content_box(rect: Rect, node: Node) -> Rect:
    top, right, bottom, left = padding_values((node.auto_layout or {}).get("padding", 0.0))
    return rect.inset(top, right, bottom, left)
