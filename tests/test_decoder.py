"""
Tests for raw tensor decoding: layouts, thresholds and shape validation.
"""

import numpy as np
import pytest

from detection.base import HeadType, ShapeMismatch, TensorOrder
from detection.decoder import DetectionDecoder
from models.config import DecoderConfig


class TestLayoutResolution:
    """Shape inspection picks the right tagged layout."""

    def test_channel_major_yolo_shape(self):
        decoder = DetectionDecoder(DecoderConfig(num_classes=80))
        layout = decoder.resolve_layout(85 * 8400, (85, 8400))
        assert layout.order == TensorOrder.CHANNEL_MAJOR
        assert layout.head == HeadType.OBJECTNESS
        assert layout.num_classes == 80

    def test_anchor_major_yolo_shape(self):
        decoder = DetectionDecoder(DecoderConfig(num_classes=80))
        layout = decoder.resolve_layout(8400 * 85, (8400, 85))
        assert layout.order == TensorOrder.ANCHOR_MAJOR
        assert layout.anchors == 8400

    def test_anchor_free_head_from_num_classes(self):
        decoder = DetectionDecoder(DecoderConfig(num_classes=80))
        layout = decoder.resolve_layout(84 * 8400, (84, 8400))
        assert layout.head == HeadType.CLASS_SCORES
        assert layout.num_classes == 80

    def test_auto_without_num_classes_prefers_short_axis_as_channels(self):
        decoder = DetectionDecoder()
        assert decoder.resolve_layout(6 * 3, (6, 3)).order == TensorOrder.CHANNEL_MAJOR
        assert decoder.resolve_layout(7 * 100, (7, 100)).order == TensorOrder.CHANNEL_MAJOR
        assert decoder.resolve_layout(100 * 7, (100, 7)).order == TensorOrder.ANCHOR_MAJOR

    def test_forced_layout(self):
        decoder = DetectionDecoder(DecoderConfig(layout="anchor_major"))
        layout = decoder.resolve_layout(6 * 10, (6, 10))
        assert layout.order == TensorOrder.ANCHOR_MAJOR
        assert layout.channels == 10

    def test_num_classes_mismatch(self):
        decoder = DetectionDecoder(DecoderConfig(num_classes=3))
        with pytest.raises(ShapeMismatch):
            decoder.resolve_layout(20 * 50, (20, 50))


class TestShapeValidation:
    """Untrusted buffers fail with ShapeMismatch instead of misreading."""

    def test_empty_input(self):
        decoder = DetectionDecoder()
        assert decoder.decode([]) == []
        assert decoder.decode(np.zeros((1, 6, 0))) == []

    def test_length_inconsistent_with_declared_shape(self):
        decoder = DetectionDecoder()
        with pytest.raises(ShapeMismatch):
            decoder.decode(np.zeros(17), shape_hint=(1, 6, 3))

    def test_too_few_channel_rows(self):
        decoder = DetectionDecoder()
        with pytest.raises(ShapeMismatch):
            decoder.decode(np.zeros((1, 5, 100)))

    def test_batch_size_must_be_one(self):
        decoder = DetectionDecoder()
        with pytest.raises(ShapeMismatch):
            decoder.decode(np.zeros((2, 6, 10)))

    def test_ragged_nested_list(self):
        decoder = DetectionDecoder()
        with pytest.raises(ShapeMismatch):
            decoder.decode([[1, 2, 3], [4, 5]])

    def test_flat_buffer_needs_num_classes(self):
        decoder = DetectionDecoder()
        with pytest.raises(ShapeMismatch):
            decoder.decode(np.zeros(12))

    def test_flat_buffer_length_not_multiple_of_stride(self):
        decoder = DetectionDecoder(DecoderConfig(num_classes=1))
        with pytest.raises(ShapeMismatch):
            decoder.decode(np.zeros(13))


class TestDecoding:
    """Scoring, thresholds and NMS on decoded anchors."""

    def test_objectness_times_class_score(self, channel_major):
        tensor = channel_major([
            (100, 100, 40, 40, 0.9, 0.1, 0.8),
            (300, 300, 40, 40, 0.9, 0.3, 0.2),
        ])
        dets = DetectionDecoder().decode(tensor)

        assert len(dets) == 1
        assert dets[0].class_index == 1
        assert dets[0].confidence == pytest.approx(0.72)
        assert dets[0].center == (100.0, 100.0)

    def test_low_objectness_rejected_even_with_high_score(self, channel_major):
        cfg = DecoderConfig(objectness_threshold=0.5, score_threshold=0.1)
        tensor = channel_major([(100, 100, 40, 40, 0.45, 1.0)])
        assert DetectionDecoder(cfg).decode(tensor) == []

    def test_independent_thresholds(self, channel_major):
        tensor = channel_major([(100, 100, 40, 40, 0.9, 0.4)])
        assert DetectionDecoder(DecoderConfig(score_threshold=0.5)).decode(tensor) == []
        assert len(DetectionDecoder(DecoderConfig(score_threshold=0.3)).decode(tensor)) == 1

    def test_all_below_threshold(self, channel_major):
        tensor = channel_major([(100, 100, 40, 40, 0.2, 0.2)] * 5)
        assert DetectionDecoder().decode(tensor) == []

    def test_anchor_major_matches_channel_major(self, channel_major):
        anchors = [
            (100, 100, 40, 40, 0.95, 0.9, 0.1),
            (400, 120, 30, 50, 0.8, 0.2, 0.9),
        ]
        decoder = DetectionDecoder(DecoderConfig(num_classes=2))
        from_cm = decoder.decode(channel_major(anchors))
        from_am = decoder.decode(np.asarray(anchors, dtype=np.float32)[np.newaxis, ...])
        from_flat = decoder.decode(np.asarray(anchors, dtype=np.float32).ravel())

        assert from_cm == from_am == from_flat
        assert len(from_cm) == 2

    def test_nested_list_input_with_shape_hint(self):
        flat = [10, 20, 4, 4, 0.9, 0.9]
        dets = DetectionDecoder().decode(flat, shape_hint=(1, 6, 1))
        assert len(dets) == 1
        assert dets[0].width == 4.0

    def test_non_finite_anchor_skipped(self, channel_major):
        tensor = channel_major([
            (np.nan, 100, 40, 40, 0.9, 0.9),
            (300, 300, 40, 40, 0.9, 0.9),
        ])
        dets = DetectionDecoder().decode(tensor)
        assert [d.center_x for d in dets] == [300.0]

    def test_class_allow_list(self, channel_major):
        tensor = channel_major([
            (100, 100, 40, 40, 0.9, 0.9, 0.1),
            (300, 300, 40, 40, 0.9, 0.1, 0.9),
        ])
        dets = DetectionDecoder(DecoderConfig(classes=[1])).decode(tensor)
        assert [d.class_index for d in dets] == [1]

    def test_max_detections_cap(self, channel_major):
        tensor = channel_major([(i * 100, 100, 20, 20, 0.9, 0.6 + i * 0.05) for i in range(6)])
        dets = DetectionDecoder(DecoderConfig(max_detections=2)).decode(tensor)
        assert len(dets) == 2
        assert dets[0].confidence > dets[1].confidence

    def test_threshold_monotonicity(self):
        rng = np.random.default_rng(11)
        n = 200
        tensor = np.stack([
            rng.uniform(0, 640, n),
            rng.uniform(0, 640, n),
            rng.uniform(5, 80, n),
            rng.uniform(5, 80, n),
            rng.uniform(0, 1, n),
            rng.uniform(0, 1, n),
            rng.uniform(0, 1, n),
        ])[np.newaxis, ...]

        counts = [
            len(DetectionDecoder(DecoderConfig(objectness_threshold=t, score_threshold=t, iou_threshold=1.0)).decode(tensor))
            for t in np.linspace(0.05, 0.95, 10)
        ]
        assert all(a >= b for a, b in zip(counts, counts[1:]))


class TestScenario:
    """Three anchors, two of them overlapping."""

    def test_objectness_head_rejects_low_products(self, channel_major, scenario_anchors):
        # 0.9 * 0.1, 0.85 * 0.1 and 0.6 * 0.2 are all below 0.5
        tensor = channel_major(scenario_anchors)
        assert tensor.shape == (1, 6, 3)
        assert DetectionDecoder().decode(tensor) == []

    def test_class_score_head_keeps_first_and_third(self, channel_major, scenario_anchors):
        tensor = channel_major(scenario_anchors)
        decoder = DetectionDecoder(DecoderConfig(num_classes=2, score_threshold=0.5, iou_threshold=0.4))

        dets = decoder.decode(tensor)

        assert len(dets) == 2
        assert dets[0].center == (50.0, 50.0)
        assert dets[0].confidence == pytest.approx(0.9)
        assert dets[1].center == (200.0, 200.0)
        assert dets[1].confidence == pytest.approx(0.6)

    def test_scenario_with_objectness_and_high_class_score(self, channel_major):
        anchors = [
            (50, 50, 20, 20, 0.9, 1.0),
            (52, 51, 20, 20, 0.85, 1.0),
            (200, 200, 10, 10, 0.6, 1.0),
        ]
        dets = DetectionDecoder().decode(channel_major(anchors))
        assert [d.center for d in dets] == [(50.0, 50.0), (200.0, 200.0)]
