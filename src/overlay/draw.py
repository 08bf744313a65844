"""
2D debug overlay: detection boxes drawn over the camera image.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import cv2
import numpy as np

from models.detection import RawDetection

# Colors (BGR)
COLOR_BOX = (255, 0, 0)  # Blue
COLOR_TEXT = (255, 255, 255)


def blank_canvas(width: int, height: int) -> np.ndarray:
    """Black BGR image used when no camera image is available."""
    return np.zeros((height, width, 3), dtype=np.uint8)


def draw_detections(
    image: np.ndarray,
    detections: List[RawDetection],
    model_input_size: Sequence[int] = (640, 640),
    confidence_threshold: float = 0.0,
    labels: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """
    Draw detection rectangles scaled from model space to the image size.

    Args:
        image: BGR image, modified in place.
        detections: Detections in model input-pixel space.
        model_input_size: (width, height) of the model input.
        confidence_threshold: Detections below this are not drawn.
        labels: Optional class names indexed by class_index.

    Returns:
        The same image, for chaining.
    """
    height, width = image.shape[:2]
    scale_x = width / float(model_input_size[0])
    scale_y = height / float(model_input_size[1])
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        if det.confidence < confidence_threshold:
            continue
        box = det.scaled(scale_x, scale_y)
        x1, y1, x2, y2 = (int(round(v)) for v in box.as_xyxy())
        cv2.rectangle(image, (x1, y1), (x2, y2), COLOR_BOX, 2)

        name = labels[det.class_index] if labels and det.class_index < len(labels) else f"#{det.class_index}"
        label = f"{name} {det.confidence:.2f}"
        (tw, th), _ = cv2.getTextSize(label, font, 0.5, 1)
        cv2.rectangle(image, (x1, y1 - th - 6), (x1 + tw + 4, y1), COLOR_BOX, -1)
        cv2.putText(image, label, (x1 + 2, y1 - 4), font, 0.5, COLOR_TEXT, 1)

    return image
