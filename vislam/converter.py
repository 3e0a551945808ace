"""Conversions between matrices, vectors, quaternions and descriptor rows."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np


@dataclass
class KeyPoint:
    """An image feature: position, pyramid octave and detector attributes."""

    x: float
    y: float
    octave: int = 0
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0

    @property
    def pt(self) -> tuple[float, float]:
        return (self.x, self.y)

    def moved(self, x: float, y: float) -> "KeyPoint":
        """Return a copy of this keypoint at another position."""
        return replace(self, x=float(x), y=float(y))


def descriptor_rows(descriptors) -> list[np.ndarray]:
    """Split a descriptor matrix into one array per row."""
    matrix = np.asarray(descriptors)
    if matrix.ndim != 2:
        raise ValueError("descriptors must be a two-dimensional matrix")
    return [row.copy() for row in matrix]


def _rotation(rotation) -> np.ndarray:
    matrix = np.asarray(rotation, dtype=np.float64)
    if matrix.shape != (3, 3):
        raise ValueError("rotation must be a 3x3 matrix")
    return matrix


def _translation(translation) -> np.ndarray:
    vector = np.asarray(translation, dtype=np.float64).ravel()
    if vector.size != 3:
        raise ValueError("translation must have three components")
    return vector


def se3_matrix(rotation, translation) -> np.ndarray:
    """Build a 4x4 single-precision rigid transform from R and t."""
    transform = np.eye(4, dtype=np.float32)
    transform[:3, :3] = _rotation(rotation)
    transform[:3, 3] = _translation(translation)
    return transform


def sim3_matrix(rotation, translation, scale: float) -> np.ndarray:
    """Build a 4x4 similarity transform whose rotation block is s*R."""
    return se3_matrix(float(scale) * _rotation(rotation), translation)


def to_matrix3(matrix) -> np.ndarray:
    """Return the top-left 3x3 block of a matrix in double precision."""
    values = np.asarray(matrix, dtype=np.float64)
    if values.ndim != 2 or values.shape[0] < 3 or values.shape[1] < 3:
        raise ValueError("matrix must be at least 3x3")
    return values[:3, :3].copy()


def to_vector3(vector) -> np.ndarray:
    """Return the first three values of a vector or point in double precision."""
    values = np.asarray(vector, dtype=np.float64).ravel()
    if values.size < 3:
        raise ValueError("vector must have at least three values")
    return values[:3].copy()


def to_quaternion(rotation) -> list[float]:
    """Convert a rotation matrix to a quaternion ordered [x, y, z, w]."""
    m = to_matrix3(rotation)
    q = [0.0, 0.0, 0.0]
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = np.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        q = [(m[2, 1] - m[1, 2]) * t, (m[0, 2] - m[2, 0]) * t, (m[1, 0] - m[0, 1]) * t]
    else:
        i = 0
        if m[1, 1] > m[0, 0]:
            i = 1
        if m[2, 2] > m[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = np.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[i] = 0.5 * t
        t = 0.5 / t
        w = (m[k, j] - m[j, k]) * t
        q[j] = (m[j, i] + m[i, j]) * t
        q[k] = (m[k, i] + m[i, k]) * t
    return [float(np.float32(value)) for value in (*q, w)]