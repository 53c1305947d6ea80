"""Matching of binary feature descriptors between frames and projected object points."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

# Worst distance a 256-bit descriptor can reach; a projection match must beat it.
MAX_DESCRIPTOR_DISTANCE = 256
_INT_MAX = 2**31 - 1


def _descriptor_rows(descriptors) -> np.ndarray:
    rows = np.asarray(descriptors, dtype=np.uint8)
    if rows.ndim != 2:
        raise ValueError("descriptors must be a two-dimensional array of bytes")
    return rows


def _distance_matrix(desc1: np.ndarray, desc2: np.ndarray) -> np.ndarray:
    if len(desc1) and len(desc2) and desc1.shape[1] != desc2.shape[1]:
        raise ValueError("descriptors must have the same length")
    xor = np.bitwise_xor(desc1[:, None, :], desc2[None, :, :])
    return np.unpackbits(xor, axis=2).sum(axis=2, dtype=np.int64)


def hamming_distance(d1, d2) -> int:
    """Return the number of differing bits between two binary descriptors."""
    a = np.asarray(d1, dtype=np.uint8).ravel()
    b = np.asarray(d2, dtype=np.uint8).ravel()
    if a.shape != b.shape:
        raise ValueError("descriptors must have the same length")
    return int(np.unpackbits(np.bitwise_xor(a, b)).sum())


def _best_unique_matches(
    candidates: Iterable[tuple[int, Iterable[tuple[int, int]]]],
    max_distance: int,
    ratio: float,
) -> list[tuple[int, int]]:
    """Apply the distance and ratio tests; a later query takes over a claimed target."""
    matched1: dict[int, int] = {}
    matched2: dict[int, int] = {}
    for i1, distances in candidates:
        best = second = _INT_MAX
        best_idx = -1
        for i2, dist in distances:
            if dist < best:
                second = best
                best = dist
                best_idx = i2
            elif dist < second:
                second = dist
        if best_idx < 0 or best > max_distance:
            continue
        if not best < float(second) * ratio:
            continue
        previous = matched2.get(best_idx)
        if previous is not None:
            del matched1[previous]
        matched1[i1] = best_idx
        matched2[best_idx] = i1
    return sorted(matched1.items())


def match_descriptors(desc1, desc2, max_distance, ratio) -> list[tuple[int, int]]:
    """Match every row of ``desc1`` against all rows of ``desc2``.

    A match needs a best distance of at most ``max_distance`` and below ``ratio``
    times the second best. Each row of ``desc2`` keeps only its last match.
    Returns ``(i1, i2)`` pairs ordered by ``i1``.
    """
    a = _descriptor_rows(desc1)
    b = _descriptor_rows(desc2)
    distances = _distance_matrix(a, b)
    rows = (
        (i1, ((i2, int(d)) for i2, d in enumerate(row)))
        for i1, row in enumerate(distances)
    )
    return _best_unique_matches(rows, max_distance, ratio)


def match_with_candidates(desc1, desc2, candidates, max_distance, ratio) -> list[tuple[int, int]]:
    """Like ``match_descriptors``, but row ``i1`` is compared only with ``candidates[i1]``.

    ``candidates`` holds, for each row of ``desc1``, the indices of ``desc2`` to
    consider (for instance the features near the same image position).
    """
    a = _descriptor_rows(desc1)
    b = _descriptor_rows(desc2)
    candidate_lists: Sequence = list(candidates)
    if len(candidate_lists) != len(a):
        raise ValueError("one candidate list is needed for each query descriptor")

    def rows():
        for i1, (d1, indices) in enumerate(zip(a, candidate_lists)):
            indices = [int(i) for i in indices]
            if not indices:
                continue
            yield i1, ((i2, hamming_distance(d1, b[i2])) for i2 in indices)

    return _best_unique_matches(rows(), max_distance, ratio)


@dataclass
class ProjectionTarget:
    """A frame into which points are projected and matched against its features."""

    keypoints: np.ndarray
    descriptors: np.ndarray
    pose: np.ndarray
    fx: float
    fy: float
    cx: float
    cy: float
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    scale_factors: Sequence[float]
    matched: list[bool] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.keypoints = np.asarray(self.keypoints, dtype=float).reshape(-1, 2)
        self.descriptors = _descriptor_rows(self.descriptors)
        self.pose = np.asarray(self.pose, dtype=float)
        if len(self.descriptors) != len(self.keypoints):
            raise ValueError("one descriptor is needed for each keypoint")
        if not self.matched:
            self.matched = [False] * len(self.keypoints)

    def features_in_area(self, x, y, radius) -> list[int]:
        """Return the indices of keypoints inside the square window around ``(x, y)``."""
        if len(self.keypoints) == 0:
            return []
        dx = np.abs(self.keypoints[:, 0] - x)
        dy = np.abs(self.keypoints[:, 1] - y)
        return [int(i) for i in np.nonzero((dx < radius) & (dy < radius))[0]]


def match_by_projection(
    points, depths, octaves, descriptors, target: ProjectionTarget, radius_factor, max_distance
) -> list[tuple[int, int]]:
    """Project world points into ``target`` and match each to the closest unmatched feature.

    Points with negative depth, behind the camera or outside the image bounds are
    skipped. The search radius is ``radius_factor`` times the scale factor of the
    point's octave. Matched target features are marked in ``target.matched``.
    Returns ``(point_index, feature_index)`` pairs.
    """
    world = np.asarray(points, dtype=float).reshape(-1, 3)
    desc = _descriptor_rows(descriptors)
    rotation = target.pose[:3, :3]
    translation = target.pose[:3, 3]
    matches: list[tuple[int, int]] = []

    for i, (x3d, depth, octave, d_point) in enumerate(zip(world, depths, octaves, desc)):
        if depth < 0.0:
            continue
        xc, yc, zc = rotation @ x3d + translation
        if zc <= 0:
            continue
        u = target.fx * xc / zc + target.cx
        v = target.fy * yc / zc + target.cy
        if u < target.min_x or u > target.max_x or v < target.min_y or v > target.max_y:
            continue

        radius = radius_factor * target.scale_factors[int(octave)]
        best = MAX_DESCRIPTOR_DISTANCE
        best_idx = -1
        for idx in target.features_in_area(u, v, radius):
            if target.matched[idx]:
                continue
            dist = hamming_distance(d_point, target.descriptors[idx])
            if dist < best:
                best = dist
                best_idx = idx

        if best_idx >= 0 and best <= max_distance:
            target.matched[best_idx] = True
            matches.append((i, best_idx))
    return matches