"""
Coordinate mapping between model input space, screen space and world space.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from models.pose import Pose3D


@dataclass(frozen=True)
class CoordinateMapper:
    """
    Scales model input-pixel coordinates to screen pixels.

    With no screen size the mapping is the identity, i.e. the ray caster is
    expected to accept model-space coordinates directly.
    """
    model_width: int = 640
    model_height: int = 640
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None

    @classmethod
    def from_sizes(
        cls,
        model_input_size: Sequence[int],
        screen_size: Optional[Sequence[int]] = None,
    ) -> "CoordinateMapper":
        mw, mh = int(model_input_size[0]), int(model_input_size[1])
        if screen_size is None:
            return cls(model_width=mw, model_height=mh)
        return cls(
            model_width=mw,
            model_height=mh,
            screen_width=int(screen_size[0]),
            screen_height=int(screen_size[1]),
        )

    @property
    def scale(self) -> Tuple[float, float]:
        if self.screen_width is None or self.screen_height is None:
            return (1.0, 1.0)
        return (self.screen_width / self.model_width, self.screen_height / self.model_height)

    def model_to_screen(self, x: float, y: float) -> Tuple[float, float]:
        sx, sy = self.scale
        return (x * sx, y * sy)


def offset_pose(pose: Pose3D, offset_cm: float) -> Pose3D:
    """
    Move a pose along its own -Z axis by offset_cm centimeters.

    Rotation and scale are unchanged.
    """
    if offset_cm == 0:
        return pose
    offset_m = offset_cm / 100.0
    z_axis = pose.rotation_matrix[:, 2]
    position = pose.position_array - z_axis * offset_m
    return Pose3D(
        position=tuple(float(v) for v in position),
        rotation=pose.rotation,
        scale=pose.scale,
    )
