"""Monocular map initialization from two views by homography or fundamental matrix."""

from __future__ import annotations

import math
import random

import numpy as np

from .geometry import (
    Reconstruction,
    check_rt,
    compute_f21,
    compute_h21,
    decompose_essential,
    normalize,
)

_SAMPLE_SIZE = 8
_HOMOGRAPHY_THRESHOLD = 5.991
_FUNDAMENTAL_THRESHOLD = 3.841
_FUNDAMENTAL_SCORE = 5.991
_HOMOGRAPHY_RATIO = 0.40


def _xy(point) -> tuple[float, float]:
    pt = getattr(point, "pt", point)
    return float(pt[0]), float(pt[1])


def _coordinates(keys) -> np.ndarray:
    return np.array([_xy(k) for k in keys], dtype=np.float64).reshape(-1, 2)


def _scored(chi: np.ndarray, threshold: float, score: float) -> tuple[float, np.ndarray]:
    rejected = chi > threshold
    gained = float(np.sum(np.where(rejected, 0.0, score - chi)))
    return gained, rejected


class Initializer:
    """Recovers the relative pose between a reference view and a current view.

    Reference view is 1, current view is 2. A RANSAC search fits both a
    homography and a fundamental matrix; the model with the better share of
    the score is decomposed into a pose and triangulated points.
    """

    def __init__(self, reference_keys, calibration, sigma, iterations):
        self._keys1 = list(reference_keys)
        self._calibration = np.array(calibration, dtype=np.float64)
        self.sigma = float(sigma)
        self._sigma2 = self.sigma * self.sigma
        self.max_iterations = int(iterations)
        self._rng = random.Random(0)
        self._keys2: list = []
        self._matches: list[tuple[int, int]] = []
        self._matched1: list[bool] = []
        self._sets: list[list[int]] = []
        self._p1 = np.zeros((0, 2))
        self._p2 = np.zeros((0, 2))

    @property
    def matches(self) -> list[tuple[int, int]]:
        """Index pairs (reference, current) of the last initialization attempt."""
        return list(self._matches)

    def _require_matches(self) -> None:
        if not self._sets:
            raise RuntimeError("initialize() must be called first")

    def initialize(self, current_keys, matches12) -> Reconstruction | None:
        """Try to reconstruct from the current keypoints and their matches.

        ``matches12`` gives, for each reference keypoint, the index of the
        matched current keypoint or a negative value. Returns the
        reconstruction, or None when no model gives a clear, well-conditioned
        solution.
        """
        self._keys2 = list(current_keys)
        matches = [int(m) for m in matches12]
        if len(matches) != len(self._keys1):
            raise ValueError("one match entry is needed per reference keypoint")
        if any(m >= len(self._keys2) for m in matches):
            raise ValueError("match index beyond the current keypoints")

        self._matches = [(i, m) for i, m in enumerate(matches) if m >= 0]
        self._matched1 = [m >= 0 for m in matches]
        count = len(self._matches)
        if count < _SAMPLE_SIZE:
            raise ValueError(f"at least {_SAMPLE_SIZE} matches are needed")

        coords1 = _coordinates(self._keys1)
        coords2 = _coordinates(self._keys2)
        self._p1 = coords1[[i for i, _ in self._matches]]
        self._p2 = coords2[[j for _, j in self._matches]]

        all_indices = list(range(count))
        self._sets = []
        for _ in range(self.max_iterations):
            available = list(all_indices)
            chosen = []
            for _ in range(_SAMPLE_SIZE):
                pick = self._rng.randint(0, len(available) - 1)
                chosen.append(available[pick])
                available[pick] = available[-1]
                available.pop()
            self._sets.append(chosen)

        inliers_h, score_h, h21 = self.find_homography()
        inliers_f, score_f, f21 = self.find_fundamental()

        total = score_h + score_f
        ratio = score_h / total if total > 0 else 0.0
        if ratio > _HOMOGRAPHY_RATIO:
            if h21 is None:
                return None
            return self.reconstruct_h(inliers_h, h21, self._calibration, 1.0, 50)
        if f21 is None:
            return None
        return self.reconstruct_f(inliers_f, f21, self._calibration, 1.0, 50)

    def _samples(self):
        pn1, t1 = normalize(self._keys1)
        pn2, t2 = normalize(self._keys2)
        idx1 = np.array([i for i, _ in self._matches])
        idx2 = np.array([j for _, j in self._matches])
        for chosen in self._sets:
            yield pn1[idx1[chosen]], pn2[idx2[chosen]], t1, t2

    def find_homography(self) -> tuple[list[bool], float, np.ndarray | None]:
        """RANSAC homography search: (inliers, score, H21) of the best model."""
        self._require_matches()
        best_inliers = [False] * len(self._matches)
        best_score = 0.0
        best_h = None
        for sample1, sample2, t1, t2 in self._samples():
            hn = compute_h21(sample1, sample2)
            try:
                h21 = np.linalg.inv(t2) @ hn @ t1
                h12 = np.linalg.inv(h21)
            except np.linalg.LinAlgError:
                continue
            score, inliers = self.check_homography(h21, h12, self.sigma)
            if score > best_score:
                best_h = h21.copy()
                best_inliers = inliers
                best_score = score
        return best_inliers, best_score, best_h

    def find_fundamental(self) -> tuple[list[bool], float, np.ndarray | None]:
        """RANSAC fundamental matrix search: (inliers, score, F21) of the best model."""
        self._require_matches()
        best_inliers = [False] * len(self._matches)
        best_score = 0.0
        best_f = None
        for sample1, sample2, t1, t2 in self._samples():
            fn = compute_f21(sample1, sample2)
            f21 = t2.T @ fn @ t1
            score, inliers = self.check_fundamental(f21, self.sigma)
            if score > best_score:
                best_f = f21.copy()
                best_inliers = inliers
                best_score = score
        return best_inliers, best_score, best_f

    def check_homography(self, h21, h12, sigma) -> tuple[float, list[bool]]:
        """Score a homography by symmetric transfer error; returns (score, inliers)."""
        self._require_matches()
        h = np.asarray(h21, dtype=np.float64)
        hi = np.asarray(h12, dtype=np.float64)
        u1, v1 = self._p1[:, 0], self._p1[:, 1]
        u2, v2 = self._p2[:, 0], self._p2[:, 1]
        inv_sigma2 = 1.0 / (sigma * sigma)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            w21 = 1.0 / (hi[2, 0] * u2 + hi[2, 1] * v2 + hi[2, 2])
            u2in1 = (hi[0, 0] * u2 + hi[0, 1] * v2 + hi[0, 2]) * w21
            v2in1 = (hi[1, 0] * u2 + hi[1, 1] * v2 + hi[1, 2]) * w21
            chi1 = ((u1 - u2in1) ** 2 + (v1 - v2in1) ** 2) * inv_sigma2

            w12 = 1.0 / (h[2, 0] * u1 + h[2, 1] * v1 + h[2, 2])
            u1in2 = (h[0, 0] * u1 + h[0, 1] * v1 + h[0, 2]) * w12
            v1in2 = (h[1, 0] * u1 + h[1, 1] * v1 + h[1, 2]) * w12
            chi2 = ((u2 - u1in2) ** 2 + (v2 - v1in2) ** 2) * inv_sigma2

            score1, out1 = _scored(chi1, _HOMOGRAPHY_THRESHOLD, _HOMOGRAPHY_THRESHOLD)
            score2, out2 = _scored(chi2, _HOMOGRAPHY_THRESHOLD, _HOMOGRAPHY_THRESHOLD)
        return score1 + score2, [not bool(flag) for flag in (out1 | out2)]

    def check_fundamental(self, f21, sigma) -> tuple[float, list[bool]]:
        """Score a fundamental matrix by epipolar distances; returns (score, inliers)."""
        self._require_matches()
        f = np.asarray(f21, dtype=np.float64)
        u1, v1 = self._p1[:, 0], self._p1[:, 1]
        u2, v2 = self._p2[:, 0], self._p2[:, 1]
        inv_sigma2 = 1.0 / (sigma * sigma)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            a2 = f[0, 0] * u1 + f[0, 1] * v1 + f[0, 2]
            b2 = f[1, 0] * u1 + f[1, 1] * v1 + f[1, 2]
            c2 = f[2, 0] * u1 + f[2, 1] * v1 + f[2, 2]
            num2 = a2 * u2 + b2 * v2 + c2
            chi1 = num2 * num2 / (a2 * a2 + b2 * b2) * inv_sigma2

            a1 = f[0, 0] * u2 + f[1, 0] * v2 + f[2, 0]
            b1 = f[0, 1] * u2 + f[1, 1] * v2 + f[2, 1]
            c1 = f[0, 2] * u2 + f[1, 2] * v2 + f[2, 2]
            num1 = a1 * u1 + b1 * v1 + c1
            chi2 = num1 * num1 / (a1 * a1 + b1 * b1) * inv_sigma2

            score1, out1 = _scored(chi1, _FUNDAMENTAL_THRESHOLD, _FUNDAMENTAL_SCORE)
            score2, out2 = _scored(chi2, _FUNDAMENTAL_THRESHOLD, _FUNDAMENTAL_SCORE)
        return score1 + score2, [not bool(flag) for flag in (out1 | out2)]

    def _check(self, rotation, translation, inliers, calibration) -> Reconstruction:
        return check_rt(rotation, translation, self._keys1, self._keys2, self._matches,
                        inliers, calibration, 4.0 * self._sigma2)

    def reconstruct_f(self, inliers, f21, calibration, min_parallax,
                      min_triangulated) -> Reconstruction | None:
        """Pick the one of four essential-matrix poses that triangulates clearly best."""
        self._require_matches()
        inliers = [bool(flag) for flag in inliers]
        n = sum(inliers)
        k = np.asarray(calibration, dtype=np.float64)
        essential = k.T @ np.asarray(f21, dtype=np.float64) @ k
        r1, r2, t = decompose_essential(essential)

        hypotheses = [
            self._check(r1, t, inliers, k),
            self._check(r2, t, inliers, k),
            self._check(r1, -t, inliers, k),
            self._check(r2, -t, inliers, k),
        ]
        max_good = max(h.good for h in hypotheses)
        min_good = max(int(0.9 * n), min_triangulated)
        similar = sum(1 for h in hypotheses if h.good > 0.7 * max_good)
        if max_good < min_good or similar > 1:
            return None

        best = next(h for h in hypotheses if h.good == max_good)
        if best.parallax > min_parallax:
            return best
        return None

    def reconstruct_h(self, inliers, h21, calibration, min_parallax,
                      min_triangulated) -> Reconstruction | None:
        """Decompose a homography into eight poses and keep a clear winner."""
        self._require_matches()
        inliers = [bool(flag) for flag in inliers]
        n = sum(inliers)
        k = np.asarray(calibration, dtype=np.float64)
        a = np.linalg.inv(k) @ np.asarray(h21, dtype=np.float64) @ k
        u, w, vt = np.linalg.svd(a)
        s = np.linalg.det(u) * np.linalg.det(vt)
        d1, d2, d3 = (float(value) for value in w)

        with np.errstate(divide="ignore", invalid="ignore"):
            ratio12 = d1 / d2 if d2 else math.inf
            ratio23 = d2 / d3 if d3 else math.inf
        if ratio12 < 1.00001 or ratio23 < 1.00001:
            return None

        aux1 = math.sqrt((d1 * d1 - d2 * d2) / (d1 * d1 - d3 * d3))
        aux3 = math.sqrt((d2 * d2 - d3 * d3) / (d1 * d1 - d3 * d3))
        x1 = [aux1, aux1, -aux1, -aux1]
        x3 = [aux3, -aux3, aux3, -aux3]

        rotations: list[np.ndarray] = []
        translations: list[np.ndarray] = []

        root = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3))
        stheta_abs = root / ((d1 + d3) * d2)
        ctheta = (d2 * d2 + d1 * d3) / ((d1 + d3) * d2)
        stheta = [stheta_abs, -stheta_abs, -stheta_abs, stheta_abs]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = ctheta
            rp[0, 2] = -stheta[i]
            rp[2, 0] = stheta[i]
            rp[2, 2] = ctheta
            rotations.append(s * u @ rp @ vt)
            t = u @ (np.array([x1[i], 0.0, -x3[i]]) * (d1 - d3))
            translations.append(t / np.linalg.norm(t))

        sphi_abs = root / ((d1 - d3) * d2)
        cphi = (d1 * d3 - d2 * d2) / ((d1 - d3) * d2)
        sphi = [sphi_abs, -sphi_abs, -sphi_abs, sphi_abs]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = cphi
            rp[0, 2] = sphi[i]
            rp[1, 1] = -1.0
            rp[2, 0] = sphi[i]
            rp[2, 2] = -cphi
            rotations.append(s * u @ rp @ vt)
            t = u @ (np.array([x1[i], 0.0, x3[i]]) * (d1 + d3))
            translations.append(t / np.linalg.norm(t))

        best_good = 0
        second_good = 0
        best: Reconstruction | None = None
        for rotation, translation in zip(rotations, translations):
            candidate = self._check(rotation, translation, inliers, k)
            if candidate.good > best_good:
                second_good = best_good
                best_good = candidate.good
                best = candidate
            elif candidate.good > second_good:
                second_good = candidate.good

        if (best is not None and second_good < 0.75 * best_good
                and best.parallax >= min_parallax and best_good > min_triangulated
                and best_good > 0.9 * n):
            return best
        return None