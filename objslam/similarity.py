"""Similarity measures between segmented instances and optical-flow propagation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, NamedTuple

import numpy as np

# Optical flow is stored at a quarter of the image resolution.
FLOW_SCALE = 4
NOT_FOUND = (-1.0, -1.0)
ZERO_FLOW = (-2.0, -2.0)
_INT8_MIN, _INT8_MAX = -128, 127


def rect_iou(rect1, rect2) -> float:
    """Return the intersection over union of two ``(x, y, width, height)`` rectangles."""
    ax, ay, aw, ah = rect1
    bx, by, bw, bh = rect2
    x1 = max(ax, bx)
    y1 = max(ay, by)
    x2 = min(ax + aw, bx + bw)
    y2 = min(ay + ah, by + bh)
    if x2 < x1 or y2 < y1:
        return 0.0
    intersection = float((x2 - x1) * (y2 - y1))
    union = float(aw * ah + bw * bh) - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def mask_iou(mask1, mask2) -> float:
    """Return the overlap ratio of the non-zero pixels of two equally sized masks."""
    a = np.asarray(mask1) != 0
    b = np.asarray(mask2) != 0
    if a.shape != b.shape:
        raise ValueError("masks must have the same shape")
    overlap = int(np.count_nonzero(a & b))
    union = int(np.count_nonzero(a | b)) or 1
    return overlap / union


def _polygon_contains(contour, xs, ys) -> np.ndarray:
    """Even-odd test of points against a closed polygon; boundary points count as inside."""
    pts = np.asarray(contour, dtype=float).reshape(-1, 2)
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    inside = np.zeros(np.broadcast(xs, ys).shape, dtype=bool)
    if len(pts) == 0:
        return inside
    boundary = np.zeros_like(inside)
    for (xi, yi), (xj, yj) in zip(pts, np.roll(pts, -1, axis=0)):
        cross = (xj - xi) * (ys - yi) - (yj - yi) * (xs - xi)
        boundary |= (
            (cross == 0)
            & (xs >= min(xi, xj)) & (xs <= max(xi, xj))
            & (ys >= min(yi, yj)) & (ys <= max(yi, yj))
        )
        if yi == yj:
            continue
        straddles = (yi > ys) != (yj > ys)
        x_cross = (xj - xi) * (ys - yi) / (yj - yi) + xi
        inside ^= straddles & (xs < x_cross)
    return inside | boundary


def point_in_polygon(contour, point) -> bool:
    """True if ``point`` lies inside the closed ``contour`` or on its boundary."""
    x, y = point
    return bool(_polygon_contains(contour, x, y))


def polygon_coverage(contour, points, threshold) -> tuple[float, bool]:
    """Return the fraction of ``points`` inside ``contour`` and whether it reaches ``threshold``."""
    pts = [tuple(p) for p in points]
    if not pts:
        return 0.0, False
    arr = np.asarray(pts, dtype=float)
    covered = int(np.count_nonzero(_polygon_contains(contour, arr[:, 0], arr[:, 1])))
    value = covered / len(pts)
    return value, value >= threshold


def check_static_object(contour, instance_points: Mapping[int, tuple], threshold) -> bool:
    """True if at least ``threshold`` instance centres (id 0 excluded) lie inside ``contour``."""
    if not instance_points:
        return False
    count = sum(
        1
        for instance_id, point in instance_points.items()
        if instance_id != 0 and point_in_polygon(contour, point)
    )
    return count >= threshold


class FlowLookup(NamedTuple):
    """Result of reading the flow field at an image point."""

    found: bool
    offset: tuple[float, float]


def convert_flow_point(flow, point) -> FlowLookup:
    """Read the image-resolution displacement at ``point`` from a quarter-resolution flow.

    ``flow`` holds signed 8-bit ``(dx, dy)`` pairs of shape ``(rows, cols, 2)``. A point
    outside the field gives offset ``(-1, -1)``; a zero displacement gives ``(-2, -2)``.
    """
    field = np.asarray(flow)
    if field.ndim != 3 or field.shape[2] != 2:
        raise ValueError("flow must have shape (rows, cols, 2)")
    rows, cols = field.shape[:2]
    rx = point[0] / FLOW_SCALE
    ry = point[1] / FLOW_SCALE
    if rx < 0 or ry < 0 or rx >= cols or ry >= rows:
        return FlowLookup(False, NOT_FOUND)
    col = min(int(round(rx)), cols - 1)
    row = min(int(round(ry)), rows - 1)
    dx, dy = (
        min(max(int(v) * FLOW_SCALE, _INT8_MIN), _INT8_MAX) for v in field[row, col]
    )
    if dx == 0 and dy == 0:
        return FlowLookup(False, ZERO_FLOW)
    return FlowLookup(True, (float(dx), float(dy)))


@dataclass
class ShiftedInstance:
    """An instance carried into the next frame by optical flow."""

    point: tuple[float, float]
    rect: tuple[int, int, int, int]
    contour: list[tuple[int, int]]
    mask: np.ndarray


def _fill_polygon(contour, height: int, width: int) -> np.ndarray:
    mask = np.zeros((height, width), dtype=np.uint8)
    if not contour:
        return mask
    ys, xs = np.mgrid[0:height, 0:width]
    mask[_polygon_contains(contour, xs, ys)] = 255
    return mask


def shift_instance(flow, point, rect, contour) -> ShiftedInstance | None:
    """Move an instance by the flow at its centre; ``None`` if the flow there is unusable."""
    lookup = convert_flow_point(flow, point)
    if not lookup.found:
        return None
    dx, dy = lookup.offset
    x, y, w, h = rect
    new_point = (float(point[0] + dx), float(point[1] + dy))
    new_rect = (int(x + dx), int(y + dy), int(w), int(h))
    new_contour = [(int(cx + dx), int(cy + dy)) for cx, cy in contour]
    rows, cols = np.asarray(flow).shape[:2]
    mask = _fill_polygon(new_contour, rows * FLOW_SCALE, cols * FLOW_SCALE)
    return ShiftedInstance(new_point, new_rect, new_contour, mask)


def _is_valid(point) -> bool:
    if point is None:
        return False
    bad = getattr(point, "is_bad", False)
    if callable(bad):
        bad = bad()
    return not bad


def _valid_set(points: Iterable) -> set:
    return {p for p in points if _is_valid(p)}


def overlap_points(a: Iterable, b: Iterable) -> set:
    """Return the valid map points shared by two instances."""
    return _valid_set(a) & _valid_set(b)


def partial_similarity(a, b) -> float:
    """Fraction of the points of ``a`` that ``b`` also holds; zero when ``a`` is empty."""
    a = set(a)
    if not a:
        return 0.0
    return len(overlap_points(a, b)) / len(a)


def jaccard_similarity(a, b) -> float:
    """Shared points over the union of both point sets; zero when both are empty."""
    a = set(a)
    b = set(b)
    shared = len(overlap_points(a, b))
    total = len(a) + len(b) - shared
    if total == 0:
        return 0.0
    return shared / total