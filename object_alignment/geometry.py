# geometry.py
"""Detector-space → display-space rectangle mapping."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, origin top-left."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Point:
        return ((self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0)

    def contains(self, point: Point) -> bool:
        # Half-open: right and bottom edges are outside.
        x, y = point
        return self.left <= x < self.right and self.top <= y < self.bottom


def scale_box(box: Rect, scale_x: float, scale_y: float) -> Rect:
    """Scale every edge independently. No clamping, no rounding."""
    return Rect(
        box.left * scale_x,
        box.top * scale_y,
        box.right * scale_x,
        box.bottom * scale_y,
    )


def scale_factors(
    output_width: float,
    output_height: float,
    source_width: int,
    source_height: int,
) -> Optional[Tuple[float, float]]:
    """
    Scale factors from detector-space into display-space.

    The capture is landscape while the display is portrait, so width is divided
    by the source *height* and height by the source *width*.  Returns ``None``
    when the source or the output has a non-positive dimension.
    """
    if source_width <= 0 or source_height <= 0:
        return None
    if output_width <= 0 or output_height <= 0:
        return None
    return output_width / source_height, output_height / source_width
