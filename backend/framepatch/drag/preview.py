"""Drop preview values produced by the resolver for each pointer move."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Literal

Point2 = tuple[float, float]


class DropIntent(str, enum.Enum):
    NONE = "none"
    REORDER = "reorder"
    REPARENT = "reparent"


@dataclass(frozen=True)
class Indicator:
    """Insertion line in world coordinates.

    ``axis`` is the orientation of the line itself: a vertical auto-layout
    gets a horizontal line.
    """

    start: Point2
    end: Point2
    axis: Literal["horizontal", "vertical"]

    @property
    def length(self) -> float:
        return abs(self.end[0] - self.start[0]) + abs(self.end[1] - self.start[1])

    def to_screen(self, zoom: float, viewport_origin: Point2 = (0.0, 0.0)) -> tuple[Point2, Point2]:
        """Convert to screen pixels for an overlay. Only overlays ever use zoom."""
        ox, oy = viewport_origin
        return (
            ((self.start[0] - ox) * zoom, (self.start[1] - oy) * zoom),
            ((self.end[0] - ox) * zoom, (self.end[1] - oy) * zoom),
        )


@dataclass(frozen=True)
class DropPreview:
    frame_id: str | None
    dragged_ids: tuple[str, ...]
    origin_parent_id: str | None = None
    target_parent_id: str | None = None
    insertion_index: int | None = None
    is_valid: bool = False
    invalid_reason: str | None = None
    intent: DropIntent = DropIntent.NONE
    indicator: Indicator | None = None
    zoom: float = 1.0

    @classmethod
    def invalid(
        cls,
        reason: str,
        dragged_ids: tuple[str, ...],
        frame_id: str | None = None,
        origin_parent_id: str | None = None,
        target_parent_id: str | None = None,
        zoom: float = 1.0,
    ) -> DropPreview:
        return cls(
            frame_id=frame_id,
            dragged_ids=dragged_ids,
            origin_parent_id=origin_parent_id,
            target_parent_id=target_parent_id,
            invalid_reason=reason,
            zoom=zoom,
        )

    def screen_indicator(self, viewport_origin: Point2 = (0.0, 0.0)) -> tuple[Point2, Point2] | None:
        if self.indicator is None:
            return None
        return self.indicator.to_screen(self.zoom, viewport_origin)
