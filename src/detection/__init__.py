"""
Detection module: decodes raw model output into deduplicated 2D boxes.
"""

from .base import Decoder, HeadType, ShapeMismatch, TensorLayout, TensorOrder
from .decoder import DetectionDecoder
from .nms import box_iou, non_max_suppression

__all__ = [
    "Decoder",
    "DetectionDecoder",
    "HeadType",
    "ShapeMismatch",
    "TensorLayout",
    "TensorOrder",
    "box_iou",
    "non_max_suppression",
]
