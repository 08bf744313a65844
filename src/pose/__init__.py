"""
Pose module: turns 2D detections into world-anchored 3D poses.
"""

from .coordinates import CoordinateMapper, offset_pose
from .geometry import DegenerateGeometry, frame_from_hits, look_rotation
from .resolver import PoseResolver, RayCastMiss

__all__ = [
    "CoordinateMapper",
    "DegenerateGeometry",
    "PoseResolver",
    "RayCastMiss",
    "frame_from_hits",
    "look_rotation",
    "offset_pose",
]
