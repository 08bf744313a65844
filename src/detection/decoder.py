"""
Decode raw YOLO-style output tensors into deduplicated detections.

The input buffer is untrusted: a swapped model can change the output shape
at any time, so the declared shape is always checked against the buffer
length before anything is read.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from models.config import DecoderConfig
from models.detection import RawDetection
from .base import Decoder, HeadType, ShapeMismatch, TensorLayout, TensorOrder
from .nms import non_max_suppression

logger = logging.getLogger(__name__)


class DetectionDecoder(Decoder):
    """
    Turns a raw model output tensor into a list of RawDetection.

    Steps:
    - resolve the tensor layout from its shape (and num_classes, if declared)
    - score each anchor and keep those above the thresholds
    - run NMS and apply the optional max_detections cap

    Example:
        decoder = DetectionDecoder(DecoderConfig(num_classes=80))
        detections = decoder.decode(output, shape_hint=(1, 85, 8400))
    """

    def __init__(self, cfg: Optional[DecoderConfig] = None):
        self.cfg = cfg or DecoderConfig()
        self._forced_order = self._parse_order(self.cfg.layout)
        self._forced_head = self._parse_head(self.cfg.head)

    @staticmethod
    def _parse_order(value: str) -> Optional[TensorOrder]:
        if value in (None, "", "auto"):
            return None
        return TensorOrder(value)

    @staticmethod
    def _parse_head(value: str) -> Optional[HeadType]:
        if value in (None, "", "auto"):
            return None
        return HeadType(value)

    def decode(self, tensor: Any, shape_hint: Optional[Sequence[int]] = None) -> List[RawDetection]:
        """
        Decode one output tensor.

        Args:
            tensor: numpy array, nested list or flat buffer of numbers.
            shape_hint: Declared shape, e.g. (1, 6, 8400). Uses the array's
                own shape when omitted.

        Returns:
            Detections in descending confidence order.

        Raises:
            ShapeMismatch: If the buffer does not fit any supported layout.
        """
        rows, layout = self.to_anchor_rows(tensor, shape_hint)
        if rows.shape[0] == 0:
            return []

        candidates = self._score_candidates(rows, layout)
        kept = non_max_suppression(candidates, self.cfg.iou_threshold)
        if self.cfg.max_detections is not None:
            kept = kept[: self.cfg.max_detections]

        logger.debug(
            f"Decoded {layout.order.value}/{layout.head.value} tensor: "
            f"anchors={layout.anchors} candidates={len(candidates)} kept={len(kept)}"
        )
        return kept

    def to_anchor_rows(
        self,
        tensor: Any,
        shape_hint: Optional[Sequence[int]] = None,
    ) -> Tuple[np.ndarray, Optional[TensorLayout]]:
        """
        Return the tensor as an (anchors, channels) array plus its layout.
        """
        try:
            arr = np.asarray(tensor, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ShapeMismatch(f"Tensor is not a rectangular numeric buffer: {e}") from e

        flat = arr.ravel()
        if flat.size == 0:
            return np.zeros((0, 0)), None

        layout = self.resolve_layout(flat.size, self._declared_dims(arr, shape_hint))
        if layout.order == TensorOrder.CHANNEL_MAJOR:
            rows = flat.reshape(layout.channels, layout.anchors).T
        else:
            rows = flat.reshape(layout.anchors, layout.channels)
        return rows, layout

    def _declared_dims(self, arr: np.ndarray, shape_hint: Optional[Sequence[int]]) -> Optional[Tuple[int, int]]:
        """Reduce a declared or inferred shape to (A, B), or None for flat buffers."""
        if shape_hint is not None:
            shape = tuple(int(s) for s in shape_hint)
        elif arr.ndim >= 2:
            shape = tuple(arr.shape)
        else:
            return None

        if len(shape) == 1:
            if shape[0] != arr.size:
                raise ShapeMismatch(f"Declared length {shape[0]} but buffer holds {arr.size} values")
            return None
        if len(shape) == 3:
            if shape[0] != 1:
                raise ShapeMismatch(f"Only batch size 1 is supported, got shape {shape}")
            shape = shape[1:]
        if len(shape) != 2:
            raise ShapeMismatch(f"Unsupported output shape {shape}")

        a, b = shape
        if a * b != arr.size:
            raise ShapeMismatch(f"Declared shape {tuple(shape_hint or arr.shape)} needs {a * b} values, buffer holds {arr.size}")
        return a, b

    def resolve_layout(self, total: int, dims: Optional[Tuple[int, int]]) -> TensorLayout:
        """Pick the tensor layout for a buffer of `total` values."""
        num_classes = self.cfg.num_classes
        if dims is None:
            return self._resolve_flat(total)

        a, b = dims
        if self._forced_order == TensorOrder.CHANNEL_MAJOR:
            channels, anchors, order = a, b, TensorOrder.CHANNEL_MAJOR
        elif self._forced_order == TensorOrder.ANCHOR_MAJOR:
            channels, anchors, order = b, a, TensorOrder.ANCHOR_MAJOR
        elif num_classes is not None:
            expected = self._expected_channels(num_classes)
            if a in expected:
                channels, anchors, order = a, b, TensorOrder.CHANNEL_MAJOR
            elif b in expected:
                channels, anchors, order = b, a, TensorOrder.ANCHOR_MAJOR
            else:
                raise ShapeMismatch(
                    f"Shape {dims} has no axis of {sorted(expected)} channels for {num_classes} classes"
                )
        else:
            # Exports put the short axis first ([1, 84, 8400]); a long first axis
            # is anchor-major only if the second one can hold a full anchor tuple.
            min_channels = (self._forced_head or HeadType.OBJECTNESS).min_channels
            if a > b and b >= min_channels:
                channels, anchors, order = b, a, TensorOrder.ANCHOR_MAJOR
            else:
                channels, anchors, order = a, b, TensorOrder.CHANNEL_MAJOR

        head = self._head_for(channels)
        return TensorLayout(order=order, head=head, channels=channels, anchors=anchors)

    def _resolve_flat(self, total: int) -> TensorLayout:
        num_classes = self.cfg.num_classes
        if num_classes is None:
            raise ShapeMismatch("A flat buffer without a declared shape requires num_classes")
        head = self._forced_head or HeadType.OBJECTNESS
        stride = head.channels_for(num_classes)
        if total % stride != 0:
            raise ShapeMismatch(f"Buffer length {total} is not a multiple of the anchor stride {stride}")
        order = self._forced_order or TensorOrder.ANCHOR_MAJOR
        layout = TensorLayout(order=order, head=head, channels=stride, anchors=total // stride)
        self._check_channels(layout)
        return layout

    def _expected_channels(self, num_classes: int) -> set:
        if self._forced_head is not None:
            return {self._forced_head.channels_for(num_classes)}
        return {h.channels_for(num_classes) for h in HeadType}

    def _head_for(self, channels: int) -> HeadType:
        num_classes = self.cfg.num_classes
        if self._forced_head is not None:
            head = self._forced_head
        elif num_classes is not None and channels == HeadType.CLASS_SCORES.channels_for(num_classes):
            head = HeadType.CLASS_SCORES
        else:
            head = HeadType.OBJECTNESS
        self._check_channels(TensorLayout(TensorOrder.CHANNEL_MAJOR, head, channels, 0))
        return head

    def _check_channels(self, layout: TensorLayout) -> None:
        if layout.channels < layout.head.min_channels:
            raise ShapeMismatch(
                f"{layout.channels} channels is fewer than the {layout.head.min_channels} "
                f"required by the {layout.head.value} head"
            )
        num_classes = self.cfg.num_classes
        if num_classes is not None and layout.num_classes != num_classes:
            raise ShapeMismatch(
                f"{layout.channels} channels do not match {num_classes} classes "
                f"for the {layout.head.value} head"
            )

    def _score_candidates(self, rows: np.ndarray, layout: TensorLayout) -> List[RawDetection]:
        """Apply confidence thresholds and build RawDetection candidates."""
        offset = layout.head.score_offset
        class_scores = rows[:, offset:]
        best_class = np.argmax(class_scores, axis=1)
        best_score = class_scores[np.arange(rows.shape[0]), best_class]

        if layout.head == HeadType.OBJECTNESS:
            objectness = rows[:, 4]
            final = objectness * best_score
            mask = (objectness > self.cfg.objectness_threshold) & (final > self.cfg.score_threshold)
        else:
            final = best_score
            mask = final > self.cfg.score_threshold

        mask &= np.all(np.isfinite(rows), axis=1)
        if self.cfg.classes is not None:
            mask &= np.isin(best_class, list(self.cfg.classes))

        out: List[RawDetection] = []
        for idx in np.flatnonzero(mask):
            cx, cy, w, h = rows[idx, :4]
            out.append(
                RawDetection(
                    center_x=float(cx),
                    center_y=float(cy),
                    width=float(w),
                    height=float(h),
                    confidence=float(final[idx]),
                    class_index=int(best_class[idx]),
                )
            )
        return out
