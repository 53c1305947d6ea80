import numpy as np
import pytest

from objslam.similarity import (
    check_static_object,
    convert_flow_point,
    jaccard_similarity,
    mask_iou,
    overlap_points,
    partial_similarity,
    point_in_polygon,
    polygon_coverage,
    rect_iou,
    shift_instance,
)

SQUARE = [(0, 0), (10, 0), (10, 10), (0, 10)]


class _Point:
    def __init__(self, bad=False):
        self.bad = bad

    def is_bad(self):
        return self.bad


def test_rect_iou_identical_is_one():
    assert rect_iou((3, 4, 5, 6), (3, 4, 5, 6)) == pytest.approx(1.0)


def test_rect_iou_disjoint_is_zero():
    assert rect_iou((0, 0, 2, 2), (10, 10, 2, 2)) == 0.0


def test_rect_iou_partial_overlap():
    assert rect_iou((0, 0, 2, 2), (1, 1, 2, 2)) == pytest.approx(1 / 7)


def test_rect_iou_is_symmetric_and_bounded():
    a, b = (0, 0, 7, 3), (2, 1, 4, 9)
    value = rect_iou(a, b)
    assert value == pytest.approx(rect_iou(b, a))
    assert 0.0 < value < 1.0


def test_mask_iou_identical_and_empty():
    mask = np.zeros((5, 5), dtype=np.uint8)
    mask[1:3, 1:4] = 255
    assert mask_iou(mask, mask) == pytest.approx(1.0)
    empty = np.zeros((5, 5), dtype=np.uint8)
    assert mask_iou(empty, empty) == 0.0


def test_mask_iou_symmetric_and_shape_checked():
    a = np.zeros((4, 4)); a[:2] = 1
    b = np.zeros((4, 4)); b[1:3] = 1
    assert mask_iou(a, b) == pytest.approx(mask_iou(b, a))
    assert 0.0 < mask_iou(a, b) < 1.0
    with pytest.raises(ValueError):
        mask_iou(np.zeros((2, 2)), np.zeros((3, 3)))


def test_point_in_polygon_inside_outside_boundary():
    assert point_in_polygon(SQUARE, (5, 5)) is True
    assert point_in_polygon(SQUARE, (15, 5)) is False
    assert point_in_polygon(SQUARE, (10, 5)) is True
    assert point_in_polygon([], (0, 0)) is False


def test_polygon_coverage():
    value, ok = polygon_coverage(SQUARE, [(1, 1), (2, 2), (20, 20), (30, 1)], 0.5)
    assert value == pytest.approx(0.5)
    assert ok is True
    value, ok = polygon_coverage(SQUARE, [(1, 1), (20, 20), (30, 1)], 0.5)
    assert ok is False
    assert polygon_coverage(SQUARE, [], 0.1) == (0.0, False)


def test_check_static_object_skips_background_id():
    points = {0: (5, 5), 1: (2, 2), 2: (50, 50), 3: (8, 8)}
    assert check_static_object(SQUARE, points, 2) is True
    assert check_static_object(SQUARE, points, 3) is False
    assert check_static_object(SQUARE, {}, 0) is False


def test_convert_flow_point_out_of_bounds():
    flow = np.ones((4, 4, 2), dtype=np.int8)
    lookup = convert_flow_point(flow, (-1, 3))
    assert lookup.found is False
    assert lookup.offset == (-1.0, -1.0)
    assert convert_flow_point(flow, (16, 3)).offset == (-1.0, -1.0)


def test_convert_flow_point_zero_flow():
    flow = np.zeros((4, 4, 2), dtype=np.int8)
    lookup = convert_flow_point(flow, (4, 4))
    assert lookup.found is False
    assert lookup.offset == (-2.0, -2.0)


def test_convert_flow_point_scales_and_saturates():
    flow = np.zeros((4, 4, 2), dtype=np.int8)
    flow[1, 2] = (3, -2)
    flow[3, 3] = (100, -100)
    lookup = convert_flow_point(flow, (8, 4))
    assert lookup.found is True
    assert lookup.offset == (3 * 4, -2 * 4)
    assert convert_flow_point(flow, (12, 12)).offset == (127.0, -128.0)


def test_convert_flow_point_rejects_bad_shape():
    with pytest.raises(ValueError):
        convert_flow_point(np.zeros((4, 4)), (1, 1))


def test_shift_instance_moves_everything():
    flow = np.zeros((8, 8, 2), dtype=np.int8)
    flow[2, 2] = (1, 2)
    contour = [(4, 4), (12, 4), (12, 12), (4, 12)]
    result = shift_instance(flow, (8, 8), (4, 4, 8, 8), contour)
    dx, dy = 4, 8
    assert result.point == (8 + dx, 8 + dy)
    assert result.rect == (4 + dx, 4 + dy, 8, 8)
    assert result.contour == [(x + dx, y + dy) for x, y in contour]
    assert result.mask.shape == (32, 32)
    assert result.mask[16, 12] == 255
    assert result.mask[0, 0] == 0
    assert result.mask[12 + dy, 4 + dx] == 255


def test_shift_instance_fails_without_flow():
    flow = np.zeros((8, 8, 2), dtype=np.int8)
    assert shift_instance(flow, (8, 8), (0, 0, 4, 4), SQUARE) is None


def test_overlap_points_ignores_invalid():
    p1, p2, bad = _Point(), _Point(), _Point(bad=True)
    assert overlap_points({p1, p2, bad, None}, {p2, bad}) == {p2}


def test_partial_similarity():
    p = [_Point() for _ in range(4)]
    assert partial_similarity(p, p[:2]) == pytest.approx(0.5)
    assert partial_similarity([], p) == 0.0
    assert partial_similarity(p[:2], p) == pytest.approx(1.0)


def test_jaccard_similarity():
    p = [_Point() for _ in range(4)]
    assert jaccard_similarity(p[:3], p[1:]) == pytest.approx(0.5)
    assert jaccard_similarity(p, p) == pytest.approx(1.0)
    assert jaccard_similarity([], []) == 0.0
    assert jaccard_similarity(p[:2], p[2:]) == 0.0