"""
Offline replay session for development without a device.

Stands in for the AR session: recorded model outputs are read from an .npz
file and every frame gets a ray caster that intersects pinhole-camera rays
with a flat world plane (a floor or a table top).

Recording format (.npz):
    outputs   (F, ...)  raw model output per frame, e.g. (F, 1, 84, 8400)
    tracking  (F,)      optional bool, camera tracking per frame
    camera_positions (F, 3) optional camera position per frame
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

import numpy as np

from models.frame import FrameInput, TrackingState
from models.pose import HitPoint

RAY_EPSILON = 1e-9


@dataclass
class PlaneRayCaster:
    """
    Hit test against the plane n·p = n·plane_point.

    The camera follows the OpenGL convention: it looks along its -Z axis
    with +Y up, and camera_rotation maps camera axes to world axes.

    Attributes:
        image_size: (width, height) of the coordinate space rays are cast in.
        fov_y_degrees: Vertical field of view.
        camera_position: Camera center in world space.
        camera_rotation: 3x3 camera-to-world rotation.
        plane_point: Any point on the plane.
        plane_normal: Plane normal (need not be unit length).
    """
    image_size: Sequence[int] = (640, 640)
    fov_y_degrees: float = 60.0
    camera_position: Sequence[float] = (0.0, 1.5, 0.0)
    camera_rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    plane_point: Sequence[float] = (0.0, 0.0, 0.0)
    plane_normal: Sequence[float] = (0.0, 1.0, 0.0)

    @property
    def focal_length(self) -> float:
        height = float(self.image_size[1])
        return (height / 2.0) / np.tan(np.radians(self.fov_y_degrees) / 2.0)

    def ray_direction(self, x: float, y: float) -> np.ndarray:
        """World-space direction of the ray through pixel (x, y)."""
        f = self.focal_length
        cx, cy = self.image_size[0] / 2.0, self.image_size[1] / 2.0
        d_cam = np.array([(x - cx) / f, -(y - cy) / f, -1.0])
        d_world = np.asarray(self.camera_rotation, dtype=float) @ d_cam
        return d_world / np.linalg.norm(d_world)

    def __call__(self, x: float, y: float) -> Optional[HitPoint]:
        origin = np.asarray(self.camera_position, dtype=float)
        direction = self.ray_direction(x, y)
        normal = np.asarray(self.plane_normal, dtype=float)

        denom = float(normal @ direction)
        if abs(denom) < RAY_EPSILON:
            return None
        t = float(normal @ (np.asarray(self.plane_point, dtype=float) - origin)) / denom
        if t <= 0:
            return None
        return HitPoint.from_array(origin + t * direction)


def camera_looking_down(pitch_degrees: float) -> np.ndarray:
    """Camera-to-world rotation for a camera pitched down by pitch_degrees."""
    a = np.radians(pitch_degrees)
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, np.cos(a), np.sin(a)],
        [0.0, -np.sin(a), np.cos(a)],
    ])


class ReplaySession:
    """
    Plays back recorded output tensors as FrameInputs.

    Lifecycle mirrors a live session: open(), read() until None, close().
    Can also be used as a context manager and iterated.
    """

    def __init__(
        self,
        outputs: Sequence,
        ray_caster: Optional[PlaneRayCaster] = None,
        tracking: Optional[Sequence[bool]] = None,
        camera_positions: Optional[Sequence[Sequence[float]]] = None,
        source_id: str = "replay",
    ):
        self._outputs = list(outputs)
        self._ray_caster = ray_caster or PlaneRayCaster()
        self._tracking = list(tracking) if tracking is not None else None
        self._camera_positions = camera_positions
        self.source_id = source_id
        self._is_open = False
        self._frame_index = 0

    @classmethod
    def from_file(cls, path: str, ray_caster: Optional[PlaneRayCaster] = None) -> "ReplaySession":
        """Load a recording written with numpy.savez."""
        with np.load(path) as data:
            if "outputs" not in data:
                raise ValueError(f"Replay file {path} has no 'outputs' array")
            outputs = list(data["outputs"])
            tracking = data["tracking"].astype(bool).tolist() if "tracking" in data else None
            positions = data["camera_positions"].tolist() if "camera_positions" in data else None
        logging.info(f"Loaded replay {path}: {len(outputs)} frames")
        return cls(outputs, ray_caster, tracking, positions, source_id=path)

    def __len__(self) -> int:
        return len(self._outputs)

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        self._is_open = True
        self._frame_index = 0

    def read(self) -> Optional[FrameInput]:
        """Next frame, or None when the recording is exhausted."""
        if not self._is_open or self._frame_index >= len(self._outputs):
            return None

        idx = self._frame_index
        self._frame_index += 1

        tracking = True if self._tracking is None else bool(self._tracking[idx])
        return FrameInput(
            ray_cast=self._ray_caster_for(idx),
            output_tensor=self._outputs[idx],
            tracking_state=TrackingState.TRACKING if tracking else TrackingState.NOT_TRACKING,
            timestamp=time.time(),
            frame_index=idx + 1,
        )

    def close(self) -> None:
        self._is_open = False

    def _ray_caster_for(self, idx: int) -> PlaneRayCaster:
        if self._camera_positions is None:
            return self._ray_caster
        base = self._ray_caster
        return PlaneRayCaster(
            image_size=base.image_size,
            fov_y_degrees=base.fov_y_degrees,
            camera_position=tuple(self._camera_positions[idx]),
            camera_rotation=base.camera_rotation,
            plane_point=base.plane_point,
            plane_normal=base.plane_normal,
        )

    def __enter__(self) -> "ReplaySession":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameInput]:
        if not self._is_open:
            raise RuntimeError("Session must be open before iterating")
        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame
