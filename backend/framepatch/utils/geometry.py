"""Leaf-node geometry helpers for drop resolution. No engine imports."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray
from shapely.geometry import LineString, box

Axis = Literal["horizontal", "vertical"]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in world units (y grows downward)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        return self.left <= px <= self.right and self.top <= py <= self.bottom

    def inset(self, top: float, right: float, bottom: float, left: float) -> Rect:
        """Shrink by padding; a negative result collapses to zero size."""
        width = max(0.0, self.width - left - right)
        height = max(0.0, self.height - top - bottom)
        return Rect(self.x + left, self.y + top, width, height)

    def main_start(self, axis: Axis) -> float:
        return self.top if axis == "vertical" else self.left

    def main_end(self, axis: Axis) -> float:
        return self.bottom if axis == "vertical" else self.right


def padding_values(padding: object) -> tuple[float, float, float, float]:
    """Normalize a layout padding value to (top, right, bottom, left)."""
    if isinstance(padding, (int, float)):
        p = float(padding)
        return (p, p, p, p)
    if isinstance(padding, dict):
        return (
            float(padding.get("top", 0.0)),
            float(padding.get("right", 0.0)),
            float(padding.get("bottom", 0.0)),
            float(padding.get("left", 0.0)),
        )
    return (0.0, 0.0, 0.0, 0.0)


def midpoints(rects: Sequence[Rect], axis: Axis) -> NDArray[np.float64]:
    """Main-axis midpoint of each rect."""
    if not rects:
        return np.zeros(0, dtype=np.float64)
    starts = np.array([r.main_start(axis) for r in rects], dtype=np.float64)
    ends = np.array([r.main_end(axis) for r in rects], dtype=np.float64)
    return (starts + ends) / 2.0


def count_before(values: NDArray[np.float64], coord: float) -> int:
    """Number of values strictly less than ``coord``."""
    return int(np.count_nonzero(values < coord))


def clip_segment(
    start: tuple[float, float],
    end: tuple[float, float],
    rect: Rect,
) -> tuple[tuple[float, float], tuple[float, float]] | None:
    """Clip an axis-aligned segment to ``rect``; None when nothing remains.

    A rect collapsed to zero width or height has no interior to draw into.
    """
    if rect.width <= 0 or rect.height <= 0 or start == end:
        return None
    clipped = LineString([start, end]).intersection(box(rect.left, rect.top, rect.right, rect.bottom))
    if clipped.is_empty:
        return None
    minx, miny, maxx, maxy = clipped.bounds
    return ((float(minx), float(miny)), (float(maxx), float(maxy)))


def segment_length(start: tuple[float, float], end: tuple[float, float]) -> float:
    return float(np.hypot(end[0] - start[0], end[1] - start[1]))
