import numpy as np
import pytest

from vislam.converter import KeyPoint
from vislam.initializer import Initializer

K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])


def _rot_y(angle):
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def _keys(points):
    u = K[0, 0] * points[:, 0] / points[:, 2] + K[0, 2]
    v = K[1, 1] * points[:, 1] / points[:, 2] + K[1, 2]
    return [KeyPoint(float(a), float(b)) for a, b in zip(u, v)]


def _scene(planar=False, n=200):
    rng = np.random.default_rng(7)
    x = rng.uniform(-2.0, 2.0, n)
    y = rng.uniform(-1.5, 1.5, n)
    z = np.full(n, 6.0) if planar else rng.uniform(4.0, 8.0, n)
    points = np.column_stack([x, y, z])
    rotation = _rot_y(0.1)
    translation = np.array([-1.0, 0.1, 0.05])
    keys1 = _keys(points)
    keys2 = _keys(points @ rotation.T + translation)
    return points, rotation, translation, keys1, keys2


def _skew(t):
    return np.array([[0.0, -t[2], t[1]], [t[2], 0.0, -t[0]], [-t[1], t[0], 0.0]])


def test_initialize_recovers_general_motion():
    points, rotation, translation, keys1, keys2 = _scene()
    init = Initializer(keys1, K, 1.0, 50)
    result = init.initialize(keys2, list(range(len(keys1))))
    assert result is not None
    assert np.allclose(result.rotation, rotation, atol=1e-6)
    unit = translation / np.linalg.norm(translation)
    assert np.allclose(result.translation, unit, atol=1e-6)
    assert result.parallax > 1.0
    scaled = points / np.linalg.norm(translation)
    for i, flag in enumerate(result.triangulated):
        if flag:
            assert np.allclose(result.points[i], scaled[i], atol=1e-5)
    assert sum(result.triangulated) > 150


def test_initialize_is_deterministic():
    _, _, _, keys1, keys2 = _scene()
    first = Initializer(keys1, K, 1.0, 30).initialize(keys2, range(len(keys1)))
    second = Initializer(keys1, K, 1.0, 30).initialize(keys2, range(len(keys1)))
    assert first is not None and second is not None
    assert np.array_equal(first.rotation, second.rotation)
    assert first.good == second.good


def test_unmatched_keys_are_ignored():
    _, _, _, keys1, keys2 = _scene()
    matches = list(range(len(keys1)))
    matches[0] = -1
    matches[5] = -1
    init = Initializer(keys1, K, 1.0, 20)
    init.initialize(keys2, matches)
    assert len(init.matches) == len(keys1) - 2
    assert all(i not in (0, 5) for i, _ in init.matches)


def test_check_fundamental_with_true_model_accepts_all():
    _, rotation, translation, keys1, keys2 = _scene()
    init = Initializer(keys1, K, 1.0, 10)
    init.initialize(keys2, range(len(keys1)))
    k_inv = np.linalg.inv(K)
    f21 = k_inv.T @ _skew(translation) @ rotation @ k_inv
    score, inliers = init.check_fundamental(f21, 1.0)
    assert all(inliers)
    assert score == pytest.approx(2 * 5.991 * len(keys1), rel=1e-6)


def test_reconstruct_f_with_true_model():
    _, rotation, translation, keys1, keys2 = _scene()
    init = Initializer(keys1, K, 1.0, 10)
    init.initialize(keys2, range(len(keys1)))
    k_inv = np.linalg.inv(K)
    f21 = k_inv.T @ _skew(translation) @ rotation @ k_inv
    result = init.reconstruct_f([True] * len(keys1), f21, K, 1.0, 50)
    assert result is not None
    assert np.allclose(result.rotation, rotation, atol=1e-8)


def test_check_homography_with_true_plane():
    _, rotation, translation, keys1, keys2 = _scene(planar=True)
    init = Initializer(keys1, K, 1.0, 10)
    init.initialize(keys2, range(len(keys1)))
    normal = np.array([0.0, 0.0, 1.0])
    h21 = K @ (rotation + np.outer(translation, normal) / 6.0) @ np.linalg.inv(K)
    score, inliers = init.check_homography(h21, np.linalg.inv(h21), 1.0)
    assert all(inliers)
    assert score == pytest.approx(2 * 5.991 * len(keys1), rel=1e-6)


def test_check_homography_rejects_wrong_model():
    _, _, _, keys1, keys2 = _scene(planar=True)
    init = Initializer(keys1, K, 1.0, 10)
    init.initialize(keys2, range(len(keys1)))
    score, inliers = init.check_homography(np.eye(3), np.eye(3), 1.0)
    assert not any(inliers)
    assert score < 2 * 5.991 * len(keys1) / 2


def test_reconstruct_h_rejects_pure_rotation():
    _, rotation, _, keys1, keys2 = _scene()
    init = Initializer(keys1, K, 1.0, 10)
    init.initialize(keys2, range(len(keys1)))
    h21 = K @ rotation @ np.linalg.inv(K)
    assert init.reconstruct_h([True] * len(keys1), h21, K, 1.0, 50) is None


def test_too_few_matches_raises():
    _, _, _, keys1, keys2 = _scene()
    matches = [-1] * len(keys1)
    for i in range(7):
        matches[i] = i
    with pytest.raises(ValueError):
        Initializer(keys1, K, 1.0, 10).initialize(keys2, matches)


def test_match_list_length_must_fit():
    _, _, _, keys1, keys2 = _scene()
    with pytest.raises(ValueError):
        Initializer(keys1, K, 1.0, 10).initialize(keys2, range(len(keys1) - 1))


def test_search_before_initialize_raises():
    _, _, _, keys1, _ = _scene()
    init = Initializer(keys1, K, 1.0, 10)
    with pytest.raises(RuntimeError):
        init.find_homography()
    with pytest.raises(RuntimeError):
        init.find_fundamental()