"""
Detection models for decoded model output.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class RawDetection:
    """
    A single decoded detection in model input-pixel space.

    Attributes:
        center_x: Box center x coordinate.
        center_y: Box center y coordinate.
        width: Box width.
        height: Box height.
        confidence: Final detection score (0-1).
        class_index: Index of the best-scoring class.
    """
    center_x: float
    center_y: float
    width: float
    height: float
    confidence: float = 1.0
    class_index: int = 0

    @property
    def x1(self) -> float:
        return self.center_x - self.width / 2

    @property
    def y1(self) -> float:
        return self.center_y - self.height / 2

    @property
    def x2(self) -> float:
        return self.center_x + self.width / 2

    @property
    def y2(self) -> float:
        return self.center_y + self.height / 2

    @property
    def center(self) -> Tuple[float, float]:
        return (self.center_x, self.center_y)

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        """Return corners as (x1, y1, x2, y2)."""
        return (self.x1, self.y1, self.x2, self.y2)

    def scaled(self, sx: float, sy: float) -> "RawDetection":
        """Return a copy with coordinates scaled by (sx, sy)."""
        return replace(
            self,
            center_x=self.center_x * sx,
            center_y=self.center_y * sy,
            width=self.width * sx,
            height=self.height * sy,
        )
