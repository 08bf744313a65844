"""
Resolve 2D detections into world-anchored poses via three-point ray casting.

For each detection three rays are cast: at the box center, at a point above
the center and at a point right of the center. The three surface hits give a
local frame; the center hit is the position.

This is best-effort: the hits come from a possibly noisy reconstruction, and
a detection is simply dropped for the frame when any ray misses.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from inference.backend import RayCaster
from models.config import PoseConfig
from models.detection import RawDetection
from models.pose import HitPoint, Pose3D
from .coordinates import CoordinateMapper, offset_pose
from .geometry import DegenerateGeometry, frame_from_hits

logger = logging.getLogger(__name__)


class RayCastMiss(LookupError):
    """One of the three required ray casts hit no surface."""


class PoseResolver:
    """
    Converts detections into Pose3D using a per-frame ray-cast function.

    Example:
        resolver = PoseResolver(PoseConfig(top_offset_fraction=0.2))
        poses = resolver.resolve(detections, frame.ray_cast)
    """

    def __init__(self, cfg: Optional[PoseConfig] = None, mapper: Optional[CoordinateMapper] = None):
        self.cfg = cfg or PoseConfig()
        self.mapper = mapper or CoordinateMapper.from_sizes(self.cfg.model_input_size, self.cfg.screen_size)
        self._scale = tuple(float(v) for v in self.cfg.marker_scale)

    def query_points(self, det: RawDetection) -> List[Tuple[float, float]]:
        """
        Return the center, top and right query points in ray-cast coordinates.
        """
        cx, cy = det.center_x, det.center_y
        points = [
            (cx, cy),
            (cx, cy - self.cfg.top_offset_fraction * det.height),
            (cx + self.cfg.right_offset_fraction * det.width, cy),
        ]
        return [self.mapper.model_to_screen(x, y) for x, y in points]

    def resolve(
        self,
        detections: List[RawDetection],
        ray_cast: RayCaster,
        confidence_threshold: Optional[float] = None,
    ) -> List[Pose3D]:
        """
        Resolve one pose per detection whose three rays all hit a surface.

        Args:
            detections: Decoded detections in model input-pixel space.
            ray_cast: Hit-test function bound to the current frame.
            confidence_threshold: Minimum confidence; defaults to the configured value.

        Returns:
            Poses in detection order. Detections below threshold or with a
            missed ray produce no pose.
        """
        threshold = self.cfg.confidence_threshold if confidence_threshold is None else confidence_threshold
        poses: List[Pose3D] = []

        for det in detections:
            if det.confidence < threshold:
                continue
            try:
                hits = self._cast_all(det, ray_cast)
            except RayCastMiss as e:
                logger.debug(f"Dropping detection at ({det.center_x:.1f}, {det.center_y:.1f}): {e}")
                continue
            poses.append(self.pose_from_hits(*hits))

        return poses

    def pose_from_hits(self, p0: HitPoint, p1: HitPoint, p2: HitPoint) -> Pose3D:
        """Build a pose from center, top and right hits."""
        position = p0.as_array()
        try:
            rotation = frame_from_hits(position, p1.as_array(), p2.as_array())
        except DegenerateGeometry as e:
            logger.debug(f"Degenerate hit triangle, using identity orientation: {e}")
            rotation = np.eye(3)

        pose = Pose3D.from_arrays(position, rotation, self._scale)
        return offset_pose(pose, self.cfg.surface_offset_cm)

    def _cast_all(self, det: RawDetection, ray_cast: RayCaster) -> List[HitPoint]:
        hits: List[HitPoint] = []
        for name, (x, y) in zip(("center", "top", "right"), self.query_points(det)):
            try:
                hit = ray_cast(x, y)
            except Exception as e:
                raise RayCastMiss(f"{name} ray cast failed: {e}") from e
            if hit is None:
                raise RayCastMiss(f"{name} ray at ({x:.1f}, {y:.1f}) hit no surface")
            if not isinstance(hit, HitPoint):
                hit = HitPoint.from_array(hit)
            if not np.all(np.isfinite(hit.as_array())):
                raise RayCastMiss(f"{name} ray returned a non-finite hit")
            hits.append(hit)
        return hits
