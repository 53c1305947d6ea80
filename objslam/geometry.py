"""Oriented bounding boxes, principal axes and pinhole projection helpers."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

# Edges of a box whose corners follow the order produced by ``box_corners``.
_BOX_EDGES = (
    (0, 1), (1, 2), (2, 3), (3, 0),  # bottom face
    (4, 5), (5, 6), (6, 7), (7, 4),  # top face
    (0, 4), (1, 5), (2, 6), (3, 7),  # vertical edges
)


def _as_points(points) -> np.ndarray:
    data = np.asarray(points, dtype=float)
    if data.ndim != 2 or data.shape[1] != 3:
        raise ValueError("expected an array of 3D points with shape (n, 3)")
    return data


def pca_frame(points) -> tuple[np.ndarray, np.ndarray]:
    """Return the mean and the right-handed principal axes (as rows) of 3D points.

    Axes are ordered by decreasing variance. At least three points are needed
    for a full three-axis frame.
    """
    data = _as_points(points)
    if len(data) < 3:
        raise ValueError("at least three points are needed for a principal frame")
    mean = data.mean(axis=0)
    centered = data - mean
    covariance = centered.T @ centered / len(data)
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    order = np.argsort(eigenvalues)[::-1]
    axes = eigenvectors[:, order].T.copy()
    if np.linalg.det(axes) < 0:
        axes[2] = -axes[2]
    return mean, axes


def box_corners(min_coords, max_coords) -> np.ndarray:
    """Return the eight corners of an axis-aligned box, bottom face first."""
    x0, y0, z0 = (float(v) for v in min_coords)
    x1, y1, z1 = (float(v) for v in max_coords)
    return np.array(
        [
            (x0, y0, z0),
            (x1, y0, z0),
            (x1, y1, z0),
            (x0, y1, z0),
            (x0, y0, z1),
            (x1, y0, z1),
            (x1, y1, z1),
            (x0, y1, z1),
        ]
    )


def project_corners(corners, K, T) -> np.ndarray:
    """Project 3D world points through pose ``T`` (world to camera) and intrinsics ``K``."""
    pts = np.asarray(corners, dtype=float).reshape(-1, 3)
    pose = np.asarray(T, dtype=float)
    R = pose[:3, :3]
    t = pose[:3, 3]
    camera = (np.asarray(K, dtype=float) @ (R @ pts.T + t[:, None])).T
    with np.errstate(divide="ignore", invalid="ignore"):
        return camera[:, :2] / camera[:, 2:3]


def bounding_rect(points) -> tuple[int, int, int, int]:
    """Return ``(x, y, width, height)`` of the 2D points, or zeros for fewer than two."""
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) < 2:
        return (0, 0, 0, 0)
    min_x, min_y = pts.min(axis=0)
    max_x, max_y = pts.max(axis=0)
    return (int(min_x), int(min_y), int(max_x - min_x), int(max_y - min_y))


def box_edges(projected_corners) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """Return the twelve 2D line segments of a projected box; empty unless eight corners."""
    pts = [tuple(float(v) for v in p) for p in projected_corners]
    if len(pts) != 8:
        return []
    return [(pts[a], pts[b]) for a, b in _BOX_EDGES]


@dataclass
class OrientedBoundingBox:
    """A box aligned with the principal axes of a point set."""

    center: np.ndarray = field(default_factory=lambda: np.zeros(3))
    corners: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    image_points: np.ndarray = field(default_factory=lambda: np.empty((0, 2)))

    def calculate(self, points) -> np.ndarray:
        """Fit the box tightly around ``points`` and return its corners."""
        data = _as_points(points)
        mean, axes = pca_frame(data)
        local = (data - mean) @ axes.T
        local_corners = box_corners(local.min(axis=0), local.max(axis=0))
        self.center = mean
        self.corners = local_corners @ axes + mean
        return self.corners

    def project(self, K, T) -> np.ndarray:
        """Project the corners into an image and return the 2D points."""
        self.image_points = project_corners(self.corners, K, T)
        return self.image_points