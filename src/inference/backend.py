"""
Interfaces to the external collaborators of the pipeline.

The inference engine and the AR session live outside this project; anything
that satisfies these protocols (a real runtime, a replay file, a test mock)
can be plugged in.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from models.pose import HitPoint


class InferenceBackend(Protocol):
    """Runs the detection model on one input tensor, e.g. shape (1, 3, H, W)."""

    def infer(self, tensor: Any, shape: Sequence[int]) -> Any:
        ...


class RayCaster(Protocol):
    """World-space hit test against the current frame's reconstructed scene."""

    def __call__(self, x: float, y: float) -> Optional[HitPoint]:
        ...
