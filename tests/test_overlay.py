"""
Tests for the 2D detection overlay.
"""

import numpy as np

from models.detection import RawDetection
from overlay.draw import COLOR_BOX, blank_canvas, draw_detections


def test_blank_canvas_shape():
    canvas = blank_canvas(320, 240)
    assert canvas.shape == (240, 320, 3)
    assert canvas.dtype == np.uint8
    assert not canvas.any()


def test_boxes_scaled_to_image_size():
    canvas = blank_canvas(640, 640)
    det = RawDetection(center_x=160, center_y=160, width=100, height=100, confidence=0.9)

    draw_detections(canvas, [det], model_input_size=(320, 320))

    # Model box [110, 210] scales to [220, 420] on a 640 canvas
    assert tuple(canvas[420, 300]) == COLOR_BOX
    assert tuple(canvas[300, 420]) == COLOR_BOX
    assert not canvas[320, 320].any()


def test_low_confidence_not_drawn():
    canvas = blank_canvas(640, 640)
    det = RawDetection(center_x=320, center_y=320, width=100, height=100, confidence=0.3)

    out = draw_detections(canvas, [det], confidence_threshold=0.5)

    assert out is canvas
    assert not canvas.any()


def test_labels_by_class_index():
    canvas = blank_canvas(640, 640)
    det = RawDetection(center_x=320, center_y=320, width=100, height=100, confidence=0.9, class_index=5)

    # Out-of-range class index falls back to the numeric label
    draw_detections(canvas, [det], labels=["box"])

    assert canvas.any()
