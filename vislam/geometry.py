"""Two-view geometry: homography, fundamental matrix, triangulation and pose checks."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

# Points whose viewing rays are closer to parallel than this are treated as
# being at infinity: they are kept but not counted as triangulated.
PARALLAX_COS_LIMIT = 0.99998


@dataclass
class Reconstruction:
    """A relative pose with the points it triangulates.

    ``points`` holds one row per keypoint of the first view; ``triangulated``
    marks the rows that were reconstructed with enough parallax.
    """

    rotation: np.ndarray
    translation: np.ndarray
    points: np.ndarray
    triangulated: list[bool] = field(default_factory=list)
    good: int = 0
    parallax: float = 0.0


def _xy(point) -> tuple[float, float]:
    pt = getattr(point, "pt", point)
    return float(pt[0]), float(pt[1])


def _as_array(points) -> np.ndarray:
    return np.array([_xy(p) for p in points], dtype=np.float64).reshape(-1, 2)


def _paired(points1, points2) -> tuple[np.ndarray, np.ndarray]:
    p1 = _as_array(points1)
    p2 = _as_array(points2)
    if len(p1) != len(p2):
        raise ValueError("both point sets must have the same length")
    if len(p1) == 0:
        raise ValueError("at least one correspondence is needed")
    return p1, p2


def compute_h21(points1, points2) -> np.ndarray:
    """Homography mapping points1 to points2 by the direct linear transform."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    zeros = np.zeros_like(u1)
    ones = np.ones_like(u1)
    a = np.empty((2 * len(p1), 9))
    a[0::2] = np.column_stack([zeros, zeros, zeros, -u1, -v1, -ones, v2 * u1, v2 * v1, v2])
    a[1::2] = np.column_stack([u1, v1, ones, zeros, zeros, zeros, -u2 * u1, -u2 * v1, -u2])
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    return vt[8].reshape(3, 3)


def compute_f21(points1, points2) -> np.ndarray:
    """Rank-two fundamental matrix with x2^T F x1 = 0 by the eight-point method."""
    p1, p2 = _paired(points1, points2)
    u1, v1 = p1[:, 0], p1[:, 1]
    u2, v2 = p2[:, 0], p2[:, 1]
    a = np.column_stack([u2 * u1, u2 * v1, u2, v2 * u1, v2 * v1, v2, u1, v1, np.ones_like(u1)])
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    f_pre = vt[8].reshape(3, 3)
    u, w, vt = np.linalg.svd(f_pre)
    w[2] = 0.0
    return u @ np.diag(w) @ vt


def normalize(points) -> tuple[np.ndarray, np.ndarray]:
    """Centre points and scale them to unit mean absolute deviation.

    Returns the normalized points and the 3x3 transform that produces them.
    """
    p = _as_array(points)
    if len(p) == 0:
        raise ValueError("cannot normalize an empty point set")
    mean = p.mean(axis=0)
    centred = p - mean
    with np.errstate(divide="ignore", invalid="ignore"):
        scale = 1.0 / np.abs(centred).mean(axis=0)
        normalized = centred * scale
    transform = np.eye(3)
    transform[0, 0] = scale[0]
    transform[1, 1] = scale[1]
    transform[0, 2] = -mean[0] * scale[0]
    transform[1, 2] = -mean[1] * scale[1]
    return normalized, transform


def triangulate(point1, point2, projection1, projection2) -> np.ndarray:
    """Linear triangulation of one correspondence from two 3x4 projections."""
    x1, y1 = _xy(point1)
    x2, y2 = _xy(point2)
    p1 = np.asarray(projection1, dtype=np.float64)
    p2 = np.asarray(projection2, dtype=np.float64)
    a = np.vstack([
        x1 * p1[2] - p1[0],
        y1 * p1[2] - p1[1],
        x2 * p2[2] - p2[0],
        y2 * p2[2] - p2[1],
    ])
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    x = vt[3]
    with np.errstate(divide="ignore", invalid="ignore"):
        return x[:3] / x[3]


def decompose_essential(essential) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an essential matrix into two rotations and a unit translation."""
    e = np.asarray(essential, dtype=np.float64)
    u, _, vt = np.linalg.svd(e)
    t = u[:, 2] / np.linalg.norm(u[:, 2])
    w = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    r1 = u @ w @ vt
    if np.linalg.det(r1) < 0:
        r1 = -r1
    r2 = u @ w.T @ vt
    if np.linalg.det(r2) < 0:
        r2 = -r2
    return r1, r2, t


def _reprojection_error(k: np.ndarray, point: np.ndarray, observed) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        inv_z = np.float64(1.0) / point[2]
        u = k[0, 0] * point[0] * inv_z + k[0, 2]
        v = k[1, 1] * point[1] * inv_z + k[1, 2]
    ox, oy = _xy(observed)
    return float((u - ox) ** 2 + (v - oy) ** 2)


def check_rt(rotation, translation, keys1, keys2, matches, inliers, calibration, th2) -> Reconstruction:
    """Triangulate inlier matches under a pose and count those that pass.

    A point passes when it is in front of both cameras (unless it is nearly at
    infinity) and reprojects within ``th2`` squared pixels in both images.
    """
    r = np.asarray(rotation, dtype=np.float64)
    t = np.asarray(translation, dtype=np.float64).ravel()
    k = np.asarray(calibration, dtype=np.float64)
    matches = list(matches)
    inliers = list(inliers)
    if len(matches) != len(inliers):
        raise ValueError("one inlier flag is needed per match")

    count = len(keys1)
    points = np.zeros((count, 3))
    triangulated = [False] * count
    cos_parallaxes: list[float] = []

    p1 = np.zeros((3, 4))
    p1[:, :3] = k
    p2 = k @ np.hstack([r, t.reshape(3, 1)])
    o2 = -r.T @ t

    for (i1, i2), inlier in zip(matches, inliers):
        if not inlier:
            continue
        kp1 = keys1[i1]
        kp2 = keys2[i2]
        p3d = triangulate(kp1, kp2, p1, p2)
        if not np.all(np.isfinite(p3d)):
            triangulated[i1] = False
            continue

        normal2 = p3d - o2
        with np.errstate(divide="ignore", invalid="ignore"):
            cos_parallax = float(p3d @ normal2 / (np.linalg.norm(p3d) * np.linalg.norm(normal2)))

        if p3d[2] <= 0 and cos_parallax < PARALLAX_COS_LIMIT:
            continue
        p3d_c2 = r @ p3d + t
        if p3d_c2[2] <= 0 and cos_parallax < PARALLAX_COS_LIMIT:
            continue
        if _reprojection_error(k, p3d, kp1) > th2:
            continue
        if _reprojection_error(k, p3d_c2, kp2) > th2:
            continue

        cos_parallaxes.append(cos_parallax)
        points[i1] = p3d
        if cos_parallax < PARALLAX_COS_LIMIT:
            triangulated[i1] = True

    good = len(cos_parallaxes)
    parallax = 0.0
    if good:
        cos_parallaxes.sort()
        index = min(50, good - 1)
        value = min(1.0, max(-1.0, cos_parallaxes[index]))
        parallax = math.degrees(math.acos(value))

    return Reconstruction(rotation=r.copy(), translation=t.copy(), points=points,
                          triangulated=triangulated, good=good, parallax=parallax)