"""
Per-frame input and result models.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from .detection import RawDetection
from .pose import HitPoint, Pose3D

RayCastFn = Callable[[float, float], Optional[HitPoint]]


class TrackingState(str, Enum):
    """Camera tracking state reported by the AR session."""
    TRACKING = "tracking"
    NOT_TRACKING = "not_tracking"


@dataclass
class FrameInput:
    """
    Everything the pipeline needs from one AR frame.

    The ray-cast callable is bound to this frame's tracking data, so it stays
    valid after the session has moved on to the next frame.

    Attributes:
        ray_cast: Hit-test function for this frame.
        output_tensor: Raw model output, if inference already ran.
        output_shape: Declared shape of output_tensor (optional).
        image_tensor: Model input tensor, if inference still has to run.
        image_shape: Shape of image_tensor, e.g. (1, 3, 640, 640).
        tracking_state: Camera tracking state for the frame.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since session start.
    """
    ray_cast: RayCastFn
    output_tensor: Any = None
    output_shape: Optional[Sequence[int]] = None
    image_tensor: Any = None
    image_shape: Optional[Sequence[int]] = None
    tracking_state: TrackingState = TrackingState.TRACKING
    timestamp: float = field(default_factory=time.time)
    frame_index: int = 0

    @property
    def is_tracking(self) -> bool:
        return self.tracking_state == TrackingState.TRACKING


@dataclass(frozen=True)
class FrameResult:
    """Output of decode + resolve for one frame, ready to be applied."""
    frame_index: int
    detections: List[RawDetection]
    poses: List[Pose3D]
    timestamp: Optional[float] = None
