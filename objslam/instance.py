"""Objects tracked across frames as a growing set of 3D map points."""

from __future__ import annotations

import itertools
import threading
from typing import Hashable, Iterable

import numpy as np

from objslam.geometry import box_corners, pca_frame, project_corners

# Spread of the box around the mean absolute offset, in standard deviations.
BOX_STD_SCALE = 1.285
# Image point returned when a position cannot be projected.
NO_PROJECTION = (-1.0, -1.0)
# Fewer valid points than this leave the instance without a position in ``update``.
MIN_UPDATE_POINTS = 3

_ids = itertools.count(1)
_id_lock = threading.Lock()


def _is_valid(point) -> bool:
    if point is None:
        return False
    bad = getattr(point, "is_bad", False)
    if callable(bad):
        bad = bad()
    return not bad


def _world_position(point) -> np.ndarray:
    value = point.position
    if callable(value):
        value = value()
    return np.asarray(value, dtype=float).reshape(3)


class GlobalInstance:
    """An object instance linked across frames and described by its map points.

    Map points are hashable objects with a ``position`` (a 3-vector or a callable
    returning one) and an optional ``is_bad`` flag or method. ``connected`` maps
    each frame the instance was seen in to the instance index in that frame.
    """

    def __init__(self, recorder=None):
        with _id_lock:
            self.id = next(_ids)
        self.recorder = recorder
        self.points: set = set()
        self.connected: dict[Hashable, int] = {}
        self.match_fail = 0
        self.bad = False
        self._position = np.zeros(3)
        self._corners = np.empty((0, 3))
        self._position_lock = threading.Lock()
        self._box_lock = threading.Lock()

    @property
    def position(self) -> np.ndarray:
        """The current position estimate; zeros when unknown."""
        with self._position_lock:
            return self._position.copy()

    def _set_position(self, value) -> None:
        with self._position_lock:
            self._position = np.asarray(value, dtype=float).reshape(3).copy()

    @property
    def corners(self) -> np.ndarray:
        """The eight corners of the current bounding box, or an empty array."""
        with self._box_lock:
            return self._corners.copy()

    def _set_corners(self, corners) -> None:
        with self._box_lock:
            self._corners = np.asarray(corners, dtype=float).reshape(-1, 3).copy()

    def _valid_positions(self) -> np.ndarray:
        positions = [_world_position(p) for p in list(self.points) if _is_valid(p)]
        return np.asarray(positions, dtype=float).reshape(-1, 3)

    def _log(self, line: str) -> None:
        if self.recorder is not None:
            self.recorder.log(line)

    def add_points(self, points: Iterable) -> int:
        """Add the valid points not yet held; return how many were added."""
        added = 0
        for point in points:
            if not _is_valid(point) or point in self.points:
                continue
            self.points.add(point)
            added += 1
        return added

    def connect(self, frame, index: int, points: Iterable) -> int:
        """Link the instance to ``index`` in ``frame``, drop bad points and add ``points``.

        Returns the number of points added.
        """
        self.connected[frame] = index
        for point in [p for p in self.points if not _is_valid(p)]:
            self.points.discard(point)
        self._log(f"G::DelMP,{self.id},{len(self.connected)},{len(self.points)}, ,0")
        return self.add_points(points)

    def merge(self, other: "GlobalInstance") -> "GlobalInstance":
        """Fold the instance with fewer connected frames into the other; return the survivor."""
        if self.id == other.id:
            return self
        if len(other.connected) > len(self.connected):
            survivor, absorbed = other, self
        else:
            survivor, absorbed = self, other
        for frame, index in absorbed.connected.items():
            survivor.connected[frame] = index
        survivor.add_points(absorbed.points)
        return survivor

    def update_position(self) -> np.ndarray:
        """Set the position to the mean of the valid points (zeros without any)."""
        positions = self._valid_positions()
        mean = positions.mean(axis=0) if len(positions) else np.zeros(3)
        self._set_position(mean)
        return mean.copy()

    def calculate_bounding_box(self) -> np.ndarray:
        """Fit an oriented box around the valid points and return its corners.

        The half extent along each principal axis is the mean absolute offset
        plus ``BOX_STD_SCALE`` standard deviations. Without points the position
        is reset to zeros and the corners are left unchanged.
        """
        positions = self._valid_positions()
        if len(positions) == 0:
            self._set_position(np.zeros(3))
            return self.corners
        mean, axes = pca_frame(positions)
        local = np.abs((positions - mean) @ axes.T)
        extent = local.mean(axis=0) + BOX_STD_SCALE * local.std(axis=0)
        corners = box_corners(-extent, extent) @ axes + mean
        self._set_position(mean)
        self._set_corners(corners)
        return corners

    def update(self, scale: float) -> np.ndarray:
        """Refit position and box from the valid points and return those points.

        The box spans ``scale`` standard deviations around the mean along each
        principal axis. With fewer than ``MIN_UPDATE_POINTS`` points the position
        is reset to zeros and an empty array is returned.
        """
        positions = self._valid_positions()
        if len(positions) < MIN_UPDATE_POINTS:
            self._set_position(np.zeros(3))
            return np.empty((0, 3))
        mean, axes = pca_frame(positions)
        local = (positions - mean) @ axes.T
        centre = local.mean(axis=0)
        spread = scale * local.std(axis=0)
        restored = local @ axes + mean
        self._set_position(mean)
        corners = box_corners(centre - spread, centre + spread) @ axes + mean
        self._set_corners(corners)
        return restored

    def project_position(self, T, K) -> tuple[float, float]:
        """Project the position into an image; ``(-1, -1)`` if unknown or behind the camera."""
        position = self.position
        if not position.any():
            return NO_PROJECTION
        pose = np.asarray(T, dtype=float)
        camera = np.asarray(K, dtype=float) @ (pose[:3, :3] @ position + pose[:3, 3])
        depth = camera[2]
        if depth <= 0:
            return NO_PROJECTION
        return (float(camera[0] / depth), float(camera[1] / depth))

    def project_bounding_box(self, K, T) -> np.ndarray:
        """Project the box corners into an image."""
        corners = self.corners
        if len(corners) == 0:
            return np.empty((0, 2))
        return project_corners(corners, K, T)