"""
Placed marker state and the render commands derived from it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .pose import IDENTITY_ROTATION, Pose3D, Quaternion, Vec3


@dataclass
class PlacedMarker:
    """
    A persistent marker anchored to a resolved pose.

    Owned and mutated by the placement cache; the renderer only ever sees
    RenderCommand snapshots.
    """
    marker_id: int
    position: Vec3
    rotation: tuple = IDENTITY_ROTATION
    scale: Vec3 = (1.0, 1.0, 1.0)
    visible: bool = True

    @property
    def position_array(self) -> np.ndarray:
        return np.array(self.position, dtype=float)

    def distance_to(self, position: np.ndarray) -> float:
        return float(np.linalg.norm(self.position_array - np.asarray(position, dtype=float)))

    def apply_pose(self, pose: Pose3D) -> None:
        """Copy position, rotation and scale from pose and mark visible."""
        self.position = pose.position
        self.rotation = pose.rotation
        self.scale = pose.scale
        self.visible = True

    def as_pose(self) -> Pose3D:
        return Pose3D(position=self.position, rotation=self.rotation, scale=self.scale)

    @classmethod
    def from_pose(cls, marker_id: int, pose: Pose3D) -> "PlacedMarker":
        return cls(
            marker_id=marker_id,
            position=pose.position,
            rotation=pose.rotation,
            scale=pose.scale,
            visible=True,
        )


@dataclass(frozen=True)
class RenderCommand:
    """
    Snapshot of one marker for the renderer to apply.

    Attributes:
        marker_id: Stable marker identifier.
        position: World position (x, y, z).
        orientation: Quaternion (x, y, z, w).
        euler_degrees: Same orientation as (roll, pitch, yaw) degrees.
        scale: Per-axis scale.
        visible: Whether the renderer should show the marker.
    """
    marker_id: int
    position: Vec3
    orientation: Quaternion
    euler_degrees: Vec3
    scale: Vec3
    visible: bool

    @classmethod
    def from_marker(cls, marker: PlacedMarker) -> "RenderCommand":
        pose = marker.as_pose()
        return cls(
            marker_id=marker.marker_id,
            position=marker.position,
            orientation=pose.quaternion,
            euler_degrees=pose.euler_degrees,
            scale=marker.scale,
            visible=marker.visible,
        )

    def to_dict(self) -> dict:
        return {
            "marker_id": self.marker_id,
            "position": list(self.position),
            "orientation": list(self.orientation),
            "euler_degrees": list(self.euler_degrees),
            "scale": list(self.scale),
            "visible": self.visible,
        }
