from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from subjectscan.core.types import BBox


def xywh_to_xyxy(box: BBox) -> tuple[float, float, float, float]:
    x, y, w, h = box
    return (x, y, x + w, y + h)


def xyxy_to_xywh(box: tuple[float, float, float, float]) -> BBox:
    x1, y1, x2, y2 = box
    return (x1, y1, max(0.0, x2 - x1), max(0.0, y2 - y1))


def iou(boxA: BBox, boxB: BBox) -> float:
    """Compute the intersection-over-union (IoU) of two `(x, y, w, h)` boxes.

    Returns exactly 0.0 for boxes that do not overlap on either axis and
    exactly 1.0 for identical non-degenerate boxes.
    """

    ax1, ay1, ax2, ay2 = xywh_to_xyxy(boxA)
    bx1, by1, bx2, by2 = xywh_to_xyxy(boxB)
    interW = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    interH = max(0.0, min(ay2, by2) - max(ay1, by1))
    interArea = interW * interH
    boxAArea = max(0.0, boxA[2]) * max(0.0, boxA[3])
    boxBArea = max(0.0, boxB[2]) * max(0.0, boxB[3])
    union = boxAArea + boxBArea - interArea
    if union <= 0:
        return 0.0
    return interArea / float(union)


def iou_many(box: BBox, boxes: Sequence[BBox]) -> np.ndarray:
    """Vectorised IoU of `box` against each of `boxes` (same semantics as `iou`)."""

    if len(boxes) == 0:
        return np.zeros(0, dtype=np.float64)
    ref = np.asarray(box, dtype=np.float64)
    arr = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    xA = np.maximum(ref[0], arr[:, 0])
    yA = np.maximum(ref[1], arr[:, 1])
    xB = np.minimum(ref[0] + ref[2], arr[:, 0] + arr[:, 2])
    yB = np.minimum(ref[1] + ref[3], arr[:, 1] + arr[:, 3])
    inter = np.maximum(0.0, xB - xA) * np.maximum(0.0, yB - yA)
    ref_area = max(0.0, float(ref[2])) * max(0.0, float(ref[3]))
    areas = np.maximum(0.0, arr[:, 2]) * np.maximum(0.0, arr[:, 3])
    union = ref_area + areas - inter
    safe_union = np.where(union > 0.0, union, 1.0)
    return np.where(union > 0.0, inter / safe_union, 0.0)


def mean_bbox(boxes: Sequence[BBox]) -> BBox:
    """Return the component-wise arithmetic mean of `boxes`."""

    if len(boxes) == 0:
        raise ValueError("mean_bbox requires at least one box")
    mean = np.asarray(boxes, dtype=np.float64).reshape(-1, 4).mean(axis=0)
    return (float(mean[0]), float(mean[1]), float(mean[2]), float(mean[3]))
