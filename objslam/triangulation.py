"""Two-view triangulation of matched keypoints and initial object poses."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

# Chi-square value at 95% for two degrees of freedom (pixel reprojection error).
CHI2_MONO = 5.991
# Rays closer to parallel than this cosine are rejected without stereo support.
MAX_PARALLAX_COS = 0.9998
# Minimum number of reconstructed points needed to start an object.
MIN_INIT_POINTS = 20


@dataclass
class CameraView:
    """A calibrated view with undistorted keypoints.

    ``pose`` maps world to camera coordinates. ``right`` holds the right-image
    coordinate of each keypoint (negative when it has no stereo match) and
    ``depths`` its stereo depth; both may be left empty. ``mapped`` names the
    keypoints that already carry a reconstructed point.
    """

    pose: np.ndarray
    fx: float
    fy: float
    cx: float
    cy: float
    keypoints: np.ndarray
    octaves: Sequence[int] = ()
    level_sigma2: Sequence[float] = (1.0,)
    scale_factors: Sequence[float] = (1.0,)
    scale_factor: float = 1.2
    right: Sequence[float] = ()
    depths: Sequence[float] = ()
    baseline: float = 0.0
    mapped: set[int] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.pose = np.asarray(self.pose, dtype=float)
        if self.pose.shape != (4, 4):
            raise ValueError("pose must be a 4x4 matrix")
        self.keypoints = np.asarray(self.keypoints, dtype=float).reshape(-1, 2)
        if len(self.octaves) == 0:
            self.octaves = [0] * len(self.keypoints)
        if len(self.octaves) != len(self.keypoints):
            raise ValueError("one octave is needed for each keypoint")

    @property
    def rotation(self) -> np.ndarray:
        return self.pose[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.pose[:3, 3]

    def center(self) -> np.ndarray:
        """Return the camera centre in world coordinates."""
        return -self.rotation.T @ self.translation

    def normalized(self, index: int) -> np.ndarray:
        u, v = self.keypoints[index]
        return np.array([(u - self.cx) / self.fx, (v - self.cy) / self.fy, 1.0])

    def is_stereo(self, index: int) -> bool:
        return len(self.right) > index and self.right[index] >= 0

    def stereo_parallax_cos(self, index: int) -> float:
        return math.cos(2.0 * math.atan2(self.baseline / 2.0, self.depths[index]))

    def reprojection_ok(self, index: int, point: np.ndarray, depth: float) -> bool:
        x = self.rotation[0] @ point + self.translation[0]
        y = self.rotation[1] @ point + self.translation[1]
        u = self.fx * x / depth + self.cx
        v = self.fy * y / depth + self.cy
        ku, kv = self.keypoints[index]
        error = (u - ku) ** 2 + (v - kv) ** 2
        return error <= CHI2_MONO * self.level_sigma2[int(self.octaves[index])]


def _linear_triangulation(
    xn1: np.ndarray, pose1: np.ndarray, xn2: np.ndarray, pose2: np.ndarray
) -> np.ndarray | None:
    A = np.vstack(
        [
            xn1[0] * pose1[2] - pose1[0],
            xn1[1] * pose1[2] - pose1[1],
            xn2[0] * pose2[2] - pose2[0],
            xn2[1] * pose2[2] - pose2[1],
        ]
    )
    _, _, vt = np.linalg.svd(A)
    homogeneous = vt[3]
    if homogeneous[3] == 0:
        return None
    return homogeneous[:3] / homogeneous[3]


def _triangulate_pair(
    view1: CameraView, view2: CameraView, i1: int, i2: int, check_scale: bool
) -> np.ndarray | None:
    xn1 = view1.normalized(i1)
    xn2 = view2.normalized(i2)
    ray1 = view1.rotation.T @ xn1
    ray2 = view2.rotation.T @ xn2
    cos_rays = float(ray1 @ ray2 / (np.linalg.norm(ray1) * np.linalg.norm(ray2)))

    stereo1 = check_scale and view1.is_stereo(i1)
    stereo2 = check_scale and view2.is_stereo(i2)
    cos_stereo1 = view1.stereo_parallax_cos(i1) if stereo1 else cos_rays + 1
    cos_stereo2 = view2.stereo_parallax_cos(i2) if stereo2 else cos_rays + 1
    cos_stereo = min(cos_stereo1, cos_stereo2)

    if not (
        cos_rays < cos_stereo
        and cos_rays > 0
        and (stereo1 or stereo2 or cos_rays < MAX_PARALLAX_COS)
    ):
        return None

    point = _linear_triangulation(xn1, view1.pose, xn2, view2.pose)
    if point is None:
        return None

    z1 = view1.rotation[2] @ point + view1.translation[2]
    if z1 <= 0:
        return None
    z2 = view2.rotation[2] @ point + view2.translation[2]
    if z2 <= 0:
        return None

    if not view1.reprojection_ok(i1, point, z1):
        return None
    if not view2.reprojection_ok(i2, point, z2):
        return None

    if check_scale:
        dist1 = float(np.linalg.norm(point - view1.center()))
        dist2 = float(np.linalg.norm(point - view2.center()))
        if dist1 == 0 or dist2 == 0:
            return None
        ratio_dist = dist2 / dist1
        ratio_octave = (
            view1.scale_factors[int(view1.octaves[i1])]
            / view2.scale_factors[int(view2.octaves[i2])]
        )
        ratio_factor = 1.5 * view1.scale_factor
        if ratio_dist * ratio_factor < ratio_octave or ratio_dist > ratio_octave * ratio_factor:
            return None
    return point


def triangulate_matches(
    view1: CameraView,
    view2: CameraView,
    matches: Iterable[tuple[int, int]],
    check_scale: bool = False,
) -> list[np.ndarray | None]:
    """Triangulate each ``(i1, i2)`` keypoint match between two views.

    Returns one entry per match: the world point, or ``None`` where the match
    was rejected (already mapped in ``view1``, too little parallax, behind a
    camera or too large a reprojection error). With ``check_scale`` the stereo
    data of the views is used and the distance ratio must agree with the
    keypoints' pyramid levels.
    """
    results: list[np.ndarray | None] = []
    for i1, i2 in matches:
        i1, i2 = int(i1), int(i2)
        if i1 in view1.mapped:
            results.append(None)
            continue
        results.append(_triangulate_pair(view1, view2, i1, i2, check_scale))
    return results


def initial_object_pose(world_points: Iterable) -> np.ndarray | None:
    """Return the 4x4 object pose at the mean of the valid points, or ``None``.

    Entries that are ``None`` are ignored; fewer than ``MIN_INIT_POINTS`` valid
    points give ``None``. The rotation is the identity.
    """
    points = [np.asarray(p, dtype=float).reshape(3) for p in world_points if p is not None]
    if len(points) < MIN_INIT_POINTS:
        return None
    pose = np.eye(4)
    pose[:3, 3] = np.mean(points, axis=0)
    return pose