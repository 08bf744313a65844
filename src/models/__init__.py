"""
Typed models for the AR placement pipeline.

Detections, poses and markers are plain dataclasses; render commands are
frozen snapshots handed to the renderer.
"""

from .detection import RawDetection
from .pose import HitPoint, Pose3D, IDENTITY_ROTATION
from .marker import PlacedMarker, RenderCommand
from .frame import FrameInput, FrameResult, TrackingState
from .config import (
    Config,
    DecoderConfig,
    PoseConfig,
    PlacementConfig,
    EngineConfig,
)

__all__ = [
    # Detection
    "RawDetection",
    # Pose
    "HitPoint",
    "Pose3D",
    "IDENTITY_ROTATION",
    # Placement
    "PlacedMarker",
    "RenderCommand",
    # Frame
    "FrameInput",
    "FrameResult",
    "TrackingState",
    # Config
    "Config",
    "DecoderConfig",
    "PoseConfig",
    "PlacementConfig",
    "EngineConfig",
]
