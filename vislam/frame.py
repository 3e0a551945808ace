"""Image frames: undistorted keypoints, a feature grid, depth and camera pose."""

from __future__ import annotations

import copy as _copy
import itertools
import math
from dataclasses import dataclass, field

import numpy as np

from .converter import KeyPoint

_UNDISTORT_ITERATIONS = 5


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass
class Camera:
    """Pinhole intrinsics with radial-tangential distortion (k1, k2, p1, p2, k3).

    ``bf`` is the stereo baseline times fx.
    """

    fx: float
    fy: float
    cx: float
    cy: float
    dist: tuple = field(default=(0.0, 0.0, 0.0, 0.0, 0.0))
    bf: float = 0.0

    def __post_init__(self):
        values = [float(v) for v in self.dist]
        if len(values) not in (4, 5):
            raise ValueError("distortion needs four or five coefficients")
        self.dist = tuple(values + [0.0] * (5 - len(values)))
        if self.fx == 0 or self.fy == 0:
            raise ValueError("focal lengths must be non-zero")

    def matrix(self) -> np.ndarray:
        """The 3x3 calibration matrix K."""
        return np.array([[self.fx, 0.0, self.cx],
                         [0.0, self.fy, self.cy],
                         [0.0, 0.0, 1.0]])

    def undistort(self, points) -> np.ndarray:
        """Remove lens distortion from pixel points; returns an Nx2 array.

        Points are left as they are when the first coefficient is zero.
        """
        pts = np.array([getattr(p, "pt", p) for p in points], dtype=np.float64).reshape(-1, 2)
        if self.dist[0] == 0.0:
            return pts
        k1, k2, p1, p2, k3 = self.dist
        x0 = (pts[:, 0] - self.cx) / self.fx
        y0 = (pts[:, 1] - self.cy) / self.fy
        x, y = x0.copy(), y0.copy()
        for _ in range(_UNDISTORT_ITERATIONS):
            r2 = x * x + y * y
            icdist = 1.0 / (1.0 + ((k3 * r2 + k2) * r2 + k1) * r2)
            dx = 2.0 * p1 * x * y + p2 * (r2 + 2.0 * x * x)
            dy = p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * x * y
            x = (x0 - dx) * icdist
            y = (y0 - dy) * icdist
        return np.column_stack([x * self.fx + self.cx, y * self.fy + self.cy])

    def image_bounds(self, width, height) -> tuple[float, float, float, float]:
        """(min_x, max_x, min_y, max_y) of the undistorted image area."""
        if self.dist[0] == 0.0:
            return 0.0, float(width), 0.0, float(height)
        corners = self.undistort([(0.0, 0.0), (width, 0.0), (0.0, height), (width, height)])
        min_x = float(min(corners[0, 0], corners[2, 0]))
        max_x = float(max(corners[1, 0], corners[3, 0]))
        min_y = float(min(corners[0, 1], corners[1, 1]))
        max_y = float(max(corners[2, 1], corners[3, 1]))
        return min_x, max_x, min_y, max_y


class Frame:
    """One processed image: keypoints, descriptors, depth and an optional pose."""

    _ids = itertools.count()

    def __init__(self, keys, descriptors, timestamp, camera, width, height, th_depth=0.0,
                 depth=None, scale_factors=None, grid_cols=64, grid_rows=48):
        if grid_cols <= 0 or grid_rows <= 0:
            raise ValueError("grid dimensions must be positive")
        self.id = next(Frame._ids)
        self.timestamp = float(timestamp)
        self.camera = camera
        self.th_depth = float(th_depth)
        self.bf = float(camera.bf)
        self.mb = self.bf / camera.fx

        factors = [float(s) for s in (scale_factors or [1.0])]
        self.scale_factors = factors
        self.scale_levels = len(factors)
        self.scale_factor = factors[1] if len(factors) > 1 else 1.0
        self.log_scale_factor = math.log(self.scale_factor)
        self.inv_scale_factors = [1.0 / s for s in factors]
        self.level_sigma2 = [s * s for s in factors]
        self.inv_level_sigma2 = [1.0 / s2 for s2 in self.level_sigma2]

        self.keys = list(keys)
        self.n = len(self.keys)
        self.descriptors = (np.array(descriptors, copy=True) if descriptors is not None
                            else np.zeros((self.n, 0), dtype=np.uint8))

        self.min_x, self.max_x, self.min_y, self.max_y = camera.image_bounds(width, height)
        self.grid_cols = int(grid_cols)
        self.grid_rows = int(grid_rows)
        self.grid_element_width_inv = self.grid_cols / (self.max_x - self.min_x)
        self.grid_element_height_inv = self.grid_rows / (self.max_y - self.min_y)
        self.grid = [[[] for _ in range(self.grid_rows)] for _ in range(self.grid_cols)]

        if self.keys:
            undistorted = camera.undistort(self.keys)
            self.keys_un = [k.moved(u, v) for k, (u, v) in zip(self.keys, undistorted)]
        else:
            self.keys_un = []

        self.u_right = [-1.0] * self.n
        self.depth = [-1.0] * self.n
        if depth is not None and self.n:
            self.compute_stereo_from_rgbd(depth)

        self.map_points = [None] * self.n
        self.outliers = [False] * self.n
        self.reference_keyframe = None

        self.tcw = None
        self.rcw = None
        self.rwc = None
        self.t_cw = None
        self.ow = None

        self._assign_features_to_grid()

    def _assign_features_to_grid(self) -> None:
        for index, key in enumerate(self.keys_un):
            cell = self.pos_in_grid(key)
            if cell is not None:
                self.grid[cell[0]][cell[1]].append(index)

    def copy(self) -> "Frame":
        """An independent copy with the same id, sharing map point objects."""
        other = _copy.copy(self)
        other.keys = list(self.keys)
        other.keys_un = list(self.keys_un)
        other.descriptors = self.descriptors.copy()
        other.u_right = list(self.u_right)
        other.depth = list(self.depth)
        other.map_points = list(self.map_points)
        other.outliers = list(self.outliers)
        other.grid = [[list(cell) for cell in column] for column in self.grid]
        other.tcw = None
        if self.tcw is not None:
            other.set_pose(self.tcw)
        return other

    def set_pose(self, tcw) -> None:
        """Set the world-to-camera transform and derive rotation and centre."""
        pose = np.array(tcw, dtype=np.float64)
        if pose.shape != (4, 4):
            raise ValueError("pose must be a 4x4 matrix")
        self.tcw = pose
        self.rcw = pose[:3, :3].copy()
        self.rwc = self.rcw.T.copy()
        self.t_cw = pose[:3, 3].copy()
        self.ow = -self.rcw.T @ self.t_cw

    def pos_in_grid(self, keypoint) -> tuple[int, int] | None:
        """Grid cell (column, row) of a keypoint, or None when it falls outside."""
        pos_x = _round_half_away((keypoint.x - self.min_x) * self.grid_element_width_inv)
        pos_y = _round_half_away((keypoint.y - self.min_y) * self.grid_element_height_inv)
        if pos_x < 0 or pos_x >= self.grid_cols or pos_y < 0 or pos_y >= self.grid_rows:
            return None
        return pos_x, pos_y

    def get_features_in_area(self, x, y, r, min_level=-1, max_level=-1) -> list[int]:
        """Indices of undistorted keypoints within a square window around (x, y).

        Levels are checked when ``min_level > 0`` or ``max_level >= 0``.
        """
        min_cell_x = max(0, math.floor((x - self.min_x - r) * self.grid_element_width_inv))
        if min_cell_x >= self.grid_cols:
            return []
        max_cell_x = min(self.grid_cols - 1, math.ceil((x - self.min_x + r) * self.grid_element_width_inv))
        if max_cell_x < 0:
            return []
        min_cell_y = max(0, math.floor((y - self.min_y - r) * self.grid_element_height_inv))
        if min_cell_y >= self.grid_rows:
            return []
        max_cell_y = min(self.grid_rows - 1, math.ceil((y - self.min_y + r) * self.grid_element_height_inv))
        if max_cell_y < 0:
            return []

        check_levels = min_level > 0 or max_level >= 0
        found = []
        for ix in range(min_cell_x, max_cell_x + 1):
            for iy in range(min_cell_y, max_cell_y + 1):
                for index in self.grid[ix][iy]:
                    key = self.keys_un[index]
                    if check_levels:
                        if key.octave < min_level:
                            continue
                        if max_level >= 0 and key.octave > max_level:
                            continue
                    if abs(key.x - x) < r and abs(key.y - y) < r:
                        found.append(index)
        return found

    def compute_stereo_from_rgbd(self, depth) -> None:
        """Read each keypoint's depth from a depth image and derive a virtual right coordinate."""
        image = np.asarray(depth)
        self.u_right = [-1.0] * self.n
        self.depth = [-1.0] * self.n
        for index, (key, key_un) in enumerate(zip(self.keys, self.keys_un)):
            d = float(image[int(key.y), int(key.x)])
            if d > 0:
                self.depth[index] = d
                self.u_right[index] = key_un.x - self.bf / d

    def unproject_stereo(self, index) -> np.ndarray | None:
        """World coordinates of a keypoint with known depth, or None without depth."""
        z = self.depth[index]
        if z <= 0:
            return None
        if self.tcw is None:
            raise RuntimeError("frame pose has not been set")
        key = self.keys_un[index]
        x = (key.x - self.camera.cx) * z / self.camera.fx
        y = (key.y - self.camera.cy) * z / self.camera.fy
        return self.rwc @ np.array([x, y, z]) + self.ow