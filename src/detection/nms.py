"""
Box overlap and Non-Maximum Suppression.
"""

from __future__ import annotations

from typing import List

from models.detection import RawDetection

IOU_EPSILON = 1e-9


def box_iou(box1: RawDetection, box2: RawDetection) -> float:
    """
    Calculate Intersection over Union (IoU) between two center-format boxes.

    Args:
        box1: First detection.
        box2: Second detection.

    Returns:
        IoU value between 0 and 1. Boxes that do not overlap return exactly 0.
    """
    x1_1, y1_1, x2_1, y2_1 = box1.as_xyxy()
    x1_2, y1_2, x2_2, y2_2 = box2.as_xyxy()

    # Calculate intersection
    x_left = max(x1_1, x1_2)
    y_top = max(y1_1, y1_2)
    x_right = min(x2_1, x2_2)
    y_bottom = min(y2_1, y2_2)

    if x_right <= x_left or y_bottom <= y_top:
        return 0.0

    intersection = (x_right - x_left) * (y_bottom - y_top)

    # Calculate union
    union = box1.area + box2.area - intersection

    return min(1.0, intersection / max(union, IOU_EPSILON))


def non_max_suppression(detections: List[RawDetection], iou_threshold: float = 0.4) -> List[RawDetection]:
    """
    Greedy NMS.

    Candidates are visited in descending confidence order (ties keep their
    input order); each kept candidate suppresses every later candidate whose
    IoU with it exceeds iou_threshold.

    Returns:
        Kept detections in descending confidence order.
    """
    if not detections:
        return []

    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    suppressed = [False] * len(ordered)
    keep: List[RawDetection] = []

    for i, current in enumerate(ordered):
        if suppressed[i]:
            continue
        keep.append(current)

        for j in range(i + 1, len(ordered)):
            if suppressed[j]:
                continue
            if box_iou(current, ordered[j]) > iou_threshold:
                suppressed[j] = True

    return keep
