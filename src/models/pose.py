"""
3D pose models: ray hit points and resolved poses.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation

Vec3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]

IDENTITY_ROTATION: Tuple[Vec3, Vec3, Vec3] = (
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0),
)


@dataclass(frozen=True)
class HitPoint:
    """A world-space surface point returned by a ray cast."""
    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_array(cls, arr) -> "HitPoint":
        return cls(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]))


@dataclass(frozen=True)
class Pose3D:
    """
    A world-anchored position and orientation.

    The orientation is stored as a row-major 3x3 rotation matrix whose
    columns are the local right, up and forward axes. `quaternion` and
    `euler_degrees` are derived views for renderers.

    Attributes:
        position: World position (x, y, z) in meters.
        rotation: 3x3 rotation matrix as nested tuples (rows).
        scale: Per-axis scale.
    """
    position: Vec3
    rotation: Tuple[Vec3, Vec3, Vec3] = IDENTITY_ROTATION
    scale: Vec3 = field(default=(1.0, 1.0, 1.0))

    @property
    def rotation_matrix(self) -> np.ndarray:
        return np.array(self.rotation, dtype=float)

    @property
    def position_array(self) -> np.ndarray:
        return np.array(self.position, dtype=float)

    def as_rotation(self) -> Rotation:
        return Rotation.from_matrix(self.rotation_matrix)

    @property
    def quaternion(self) -> Quaternion:
        """Orientation as (x, y, z, w) with w >= 0."""
        q = self.as_rotation().as_quat()  # x, y, z, w format
        # q and -q are the same rotation; keep one so equal poses compare equal
        if q[3] < 0:
            q = -q
        return (float(q[0]), float(q[1]), float(q[2]), float(q[3]))

    @property
    def euler_degrees(self) -> Vec3:
        """
        Orientation as (roll, pitch, yaw) in degrees.

        Yaw about Z, then pitch about Y, then roll about X. At pitch = +-90
        only the combined roll and yaw are meaningful; scipy zeroes one of them.
        """
        with warnings.catch_warnings():
            # scipy warns on gimbal lock; the pitch is still exact there
            warnings.simplefilter("ignore", UserWarning)
            roll, pitch, yaw = self.as_rotation().as_euler("xyz", degrees=True)
        return (float(roll), float(pitch), float(yaw))

    def is_finite(self) -> bool:
        return bool(
            np.all(np.isfinite(self.position_array))
            and np.all(np.isfinite(self.rotation_matrix))
            and np.all(np.isfinite(np.array(self.scale, dtype=float)))
        )

    @classmethod
    def from_arrays(
        cls,
        position: np.ndarray,
        rotation: np.ndarray,
        scale: Vec3 = (1.0, 1.0, 1.0),
    ) -> "Pose3D":
        """Create a Pose3D from numpy position (3,) and rotation (3, 3)."""
        rot = tuple(tuple(float(v) for v in row) for row in np.asarray(rotation, dtype=float))
        return cls(
            position=tuple(float(v) for v in position),
            rotation=rot,
            scale=tuple(float(v) for v in scale),
        )
