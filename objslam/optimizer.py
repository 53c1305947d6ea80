"""Camera pose refinement of an object from 2D-3D correspondences."""

from __future__ import annotations

import math

import numpy as np

# Chi-square value at 95% for two degrees of freedom.
CHI2_MONO = 5.991
HUBER_DELTA = math.sqrt(CHI2_MONO)
ROUNDS = 4
ITERATIONS_PER_ROUND = 10
# The robust kernel is dropped after this round.
LAST_ROBUST_ROUND = 2
MIN_CORRESPONDENCES = 3
# With fewer correspondences than this a single round is run.
MIN_EDGES_FOR_ROUNDS = 10
_MAX_DAMPING_TRIES = 10


def _skew(v: np.ndarray) -> np.ndarray:
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


def _exp_se3(xi: np.ndarray) -> np.ndarray:
    omega, v = xi[:3], xi[3:]
    theta = float(np.linalg.norm(omega))
    W = _skew(omega)
    if theta < 1e-10:
        R = np.eye(3) + W
        V = np.eye(3) + 0.5 * W
    else:
        a = math.sin(theta) / theta
        b = (1.0 - math.cos(theta)) / theta**2
        c = (theta - math.sin(theta)) / theta**3
        R = np.eye(3) + a * W + b * (W @ W)
        V = np.eye(3) + b * W + c * (W @ W)
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = V @ v
    return T


def _camera_points(pose: np.ndarray, points: np.ndarray) -> np.ndarray:
    return points @ pose[:3, :3].T + pose[:3, 3]


def _residuals(pose, observations, points, intrinsics) -> tuple[np.ndarray, np.ndarray]:
    fx, fy, cx, cy = intrinsics
    cam = _camera_points(pose, points)
    with np.errstate(divide="ignore", invalid="ignore"):
        u = fx * cam[:, 0] / cam[:, 2] + cx
        v = fy * cam[:, 1] / cam[:, 2] + cy
    return np.stack([u, v], axis=1) - observations, cam


def _chi2(pose, observations, points, intrinsics) -> np.ndarray:
    res, _ = _residuals(pose, observations, points, intrinsics)
    return np.sum(res * res, axis=1)


def _robust_cost(chi2: np.ndarray, robust: bool) -> float:
    if not robust:
        return float(np.sum(chi2))
    error = np.sqrt(chi2)
    huber = np.where(error <= HUBER_DELTA, chi2, 2.0 * HUBER_DELTA * error - HUBER_DELTA**2)
    return float(np.sum(huber))


def _jacobians(cam: np.ndarray, intrinsics) -> np.ndarray:
    fx, fy, _, _ = intrinsics
    x, y, z = cam[:, 0], cam[:, 1], cam[:, 2]
    n = len(cam)
    dproj = np.zeros((n, 2, 3))
    with np.errstate(divide="ignore", invalid="ignore"):
        dproj[:, 0, 0] = fx / z
        dproj[:, 0, 2] = -fx * x / z**2
        dproj[:, 1, 1] = fy / z
        dproj[:, 1, 2] = -fy * y / z**2
    dcam = np.zeros((n, 3, 6))
    dcam[:, :, :3] = -np.array([_skew(p) for p in cam])
    dcam[:, :, 3:] = np.eye(3)
    return dproj @ dcam


def _refine(pose, observations, points, intrinsics, iterations: int, robust: bool) -> np.ndarray:
    """Levenberg-Marquardt on the pose, with an optional Huber kernel per correspondence."""
    if len(points) == 0:
        return pose.copy()
    cost = _robust_cost(_chi2(pose, observations, points, intrinsics), robust)
    damping = None
    for _ in range(iterations):
        res, cam = _residuals(pose, observations, points, intrinsics)
        chi2 = np.sum(res * res, axis=1)
        weights = np.ones(len(chi2))
        if robust:
            error = np.sqrt(chi2)
            large = error > HUBER_DELTA
            weights[large] = HUBER_DELTA / error[large]
        J = _jacobians(cam, intrinsics)
        H = np.einsum("nki,n,nkj->ij", J, weights, J)
        b = np.einsum("nki,n,nk->i", J, weights, res)
        if not (np.all(np.isfinite(H)) and np.all(np.isfinite(b))):
            break
        if damping is None:
            damping = 1e-5 * max(float(np.max(np.diag(H))), 1.0)
        improved = False
        for _ in range(_MAX_DAMPING_TRIES):
            try:
                step = np.linalg.solve(H + damping * np.eye(6), -b)
            except np.linalg.LinAlgError:
                damping *= 2.0
                continue
            candidate = _exp_se3(step) @ pose
            new_cost = _robust_cost(_chi2(candidate, observations, points, intrinsics), robust)
            if new_cost < cost:
                pose, cost = candidate, new_cost
                damping = max(damping / 3.0, 1e-12)
                improved = True
                break
            damping *= 2.0
        if not improved:
            break
    return pose


def optimize_object_pose(image_points, object_points, pose, fx, fy, cx, cy):
    """Refine a 4x4 world-to-camera ``pose`` from 2D-3D correspondences.

    Runs up to four rounds, each starting from the given pose, rejecting the
    correspondences whose squared reprojection error exceeds ``CHI2_MONO``.
    Returns ``(inliers, pose, outliers)`` where ``outliers`` flags each
    correspondence. With fewer than three correspondences the pose is returned
    unchanged with zero inliers.
    """
    observations = np.asarray(image_points, dtype=float).reshape(-1, 2)
    points = np.asarray(object_points, dtype=float).reshape(-1, 3)
    if len(observations) != len(points):
        raise ValueError("one object point is needed for each image point")
    initial = np.asarray(pose, dtype=float)
    if initial.shape != (4, 4):
        raise ValueError("pose must be a 4x4 matrix")

    n = len(observations)
    outliers = [False] * n
    if n < MIN_CORRESPONDENCES:
        return 0, initial.copy(), outliers

    intrinsics = (float(fx), float(fy), float(cx), float(cy))
    estimate = initial.copy()
    n_bad = 0
    for round_index in range(ROUNDS):
        active = ~np.array(outliers, dtype=bool)
        estimate = _refine(
            initial,
            observations[active],
            points[active],
            intrinsics,
            ITERATIONS_PER_ROUND,
            robust=round_index <= LAST_ROBUST_ROUND,
        )
        bad = _chi2(estimate, observations, points, intrinsics) > CHI2_MONO
        outliers = [bool(flag) for flag in bad]
        n_bad = int(np.count_nonzero(bad))
        if n_bad == n:
            break
        if n < MIN_EDGES_FOR_ROUNDS:
            break
    return n - n_bad, estimate, outliers