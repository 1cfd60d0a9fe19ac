import numpy as np
import pytest

from subjectscan.core import geometry as geo


def test_iou_identical_boxes_is_one():
    assert geo.iou((3.0, 4.0, 10.0, 20.0), (3.0, 4.0, 10.0, 20.0)) == 1.0


def test_iou_disjoint_and_touching_boxes_are_zero():
    assert geo.iou((0, 0, 1, 1), (2, 2, 1, 1)) == 0.0
    # Overlap on x only.
    assert geo.iou((0, 0, 10, 10), (5, 20, 10, 10)) == 0.0
    # Shared edge has no area.
    assert geo.iou((0, 0, 10, 10), (10, 0, 10, 10)) == 0.0


def test_iou_partial_overlap():
    # 9x9 intersection, union 100 + 100 - 81.
    assert geo.iou((0, 0, 10, 10), (1, 1, 10, 10)) == pytest.approx(81 / 119)


def test_iou_degenerate_boxes():
    assert geo.iou((0, 0, 0, 0), (0, 0, 0, 0)) == 0.0
    assert geo.iou((5, 5, 0, 0), (0, 0, 10, 10)) == 0.0


def test_iou_stays_in_unit_range():
    rng = np.random.default_rng(0)
    for _ in range(200):
        a = tuple(float(v) for v in rng.uniform(0, 50, size=4))
        b = tuple(float(v) for v in rng.uniform(0, 50, size=4))
        value = geo.iou(a, b)
        assert 0.0 <= value <= 1.0


def test_iou_many_matches_scalar_iou():
    ref = (0.0, 0.0, 10.0, 10.0)
    boxes = [(0.0, 0.0, 10.0, 10.0), (1.0, 1.0, 10.0, 10.0), (50.0, 50.0, 5.0, 5.0), (0.0, 0.0, 0.0, 0.0)]
    out = geo.iou_many(ref, boxes)
    assert out.shape == (4,)
    assert list(out) == [geo.iou(ref, b) for b in boxes]
    assert geo.iou_many(ref, []).size == 0


def test_box_format_conversions():
    assert geo.xywh_to_xyxy((1, 2, 3, 4)) == (1, 2, 4, 6)
    assert geo.xyxy_to_xywh((1, 2, 4, 6)) == (1, 2, 3, 4)
    # Inverted corners clamp to an empty box.
    assert geo.xyxy_to_xywh((5, 5, 1, 1)) == (5, 5, 0.0, 0.0)


def test_mean_bbox():
    assert geo.mean_bbox([(0, 0, 10, 10), (2, 4, 20, 30)]) == (1.0, 2.0, 15.0, 20.0)
    with pytest.raises(ValueError):
        geo.mean_bbox([])
