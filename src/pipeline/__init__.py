"""
Pipeline module for the AR placement system.

The pipeline orchestrates the per-frame flow:
- Inference (optional, when frames carry image tensors)
- Detection decoding and NMS
- Pose resolution via ray casting
- Placement cache update and render commands
"""

from .processor import FrameProcessor, create_processor_from_config
from .engine import PipelineEngine, PipelineStats, create_engine_from_config

__all__ = [
    "FrameProcessor",
    "create_processor_from_config",
    "PipelineEngine",
    "PipelineStats",
    "create_engine_from_config",
]
