"""
Detection interfaces and tensor layout variants.

Model exports disagree on how the raw output is laid out:
- channel-major `[1, C, N]` (one row per field, one column per anchor)
- anchor-major `[1, N, C]` or a flat buffer of repeating per-anchor tuples

and on whether there is an objectness field before the class scores:
- objectness head: `[cx, cy, w, h, objectness, class_0 .. class_{K-1}]`
- class-score head (anchor-free exports): `[cx, cy, w, h, class_0 .. class_{K-1}]`

Both axes are modelled as explicit variants selected by shape inspection.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

from models.detection import RawDetection

BOX_FIELDS = 4


class ShapeMismatch(ValueError):
    """Raised when a tensor buffer does not match any supported layout."""


class TensorOrder(str, Enum):
    CHANNEL_MAJOR = "channel_major"
    ANCHOR_MAJOR = "anchor_major"


class HeadType(str, Enum):
    OBJECTNESS = "objectness"
    CLASS_SCORES = "class_scores"

    @property
    def score_offset(self) -> int:
        """Index of the first class-score field."""
        return BOX_FIELDS + 1 if self == HeadType.OBJECTNESS else BOX_FIELDS

    @property
    def min_channels(self) -> int:
        """Box fields, optional objectness, and at least one class."""
        return self.score_offset + 1

    def channels_for(self, num_classes: int) -> int:
        return self.score_offset + num_classes


@dataclass(frozen=True)
class TensorLayout:
    """
    Resolved layout of one output tensor.

    Attributes:
        order: Channel-major or anchor-major storage.
        head: Whether an objectness field precedes the class scores.
        channels: Fields per anchor.
        anchors: Number of anchors.
    """
    order: TensorOrder
    head: HeadType
    channels: int
    anchors: int

    @property
    def num_classes(self) -> int:
        return self.channels - self.head.score_offset

    @property
    def expected_length(self) -> int:
        return self.channels * self.anchors


class Decoder:
    """Decoder interface returning detections in model input-pixel space."""

    def decode(self, tensor: Any, shape_hint: Optional[Sequence[int]] = None) -> List[RawDetection]:
        raise NotImplementedError
