import numpy as np
import pytest

from vislam.converter import KeyPoint
from vislam.frame import Camera, Frame

WIDTH, HEIGHT = 640, 480


def make_camera(dist=(0.0, 0.0, 0.0, 0.0)):
    return Camera(fx=500.0, fy=500.0, cx=320.0, cy=240.0, dist=dist, bf=40.0)


def make_frame(keys, depth=None, camera=None):
    return Frame(keys, None, 1.5, camera or make_camera(), WIDTH, HEIGHT, 35.0,
                 depth, [1.0, 1.2, 1.44], 64, 48)


def sample_keys():
    return [
        KeyPoint(100.0, 100.0, octave=0),
        KeyPoint(103.0, 100.0, octave=1),
        KeyPoint(200.0, 200.0, octave=0),
        KeyPoint(100.0, 104.0, octave=2),
    ]


def test_camera_matrix():
    k = make_camera().matrix()
    assert k[0, 0] == 500.0 and k[1, 1] == 500.0
    assert k[0, 2] == 320.0 and k[1, 2] == 240.0
    assert k[2, 2] == 1.0 and k[0, 1] == 0.0


def test_camera_rejects_bad_distortion():
    with pytest.raises(ValueError):
        Camera(fx=1.0, fy=1.0, cx=0.0, cy=0.0, dist=(0.1, 0.2))


def test_undistort_without_distortion_is_identity():
    points = [(10.0, 20.0), (300.5, 400.25)]
    assert np.allclose(make_camera().undistort(points), points)


def test_undistort_keeps_principal_point():
    cam = make_camera(dist=(-0.3, 0.1, 0.001, 0.002, 0.0))
    assert np.allclose(cam.undistort([(320.0, 240.0)]), [[320.0, 240.0]])


def test_undistort_barrel_moves_points_outward():
    cam = make_camera(dist=(-0.3, 0.0, 0.0, 0.0))
    out = cam.undistort([(600.0, 240.0)])
    assert out[0, 0] > 600.0
    assert out[0, 1] == pytest.approx(240.0)


def test_image_bounds_without_distortion():
    assert make_camera().image_bounds(WIDTH, HEIGHT) == (0.0, 640.0, 0.0, 480.0)


def test_image_bounds_with_distortion_symmetric():
    cam = make_camera(dist=(-0.2, 0.0, 0.0, 0.0))
    min_x, max_x, min_y, max_y = cam.image_bounds(WIDTH, HEIGHT)
    assert min_x < 0.0 and max_x > WIDTH
    assert min_x == pytest.approx(WIDTH - max_x)
    assert min_y == pytest.approx(HEIGHT - max_y)


def test_frame_basic_attributes():
    frame = make_frame(sample_keys())
    assert frame.n == 4
    assert frame.timestamp == 1.5
    assert frame.mb == pytest.approx(40.0 / 500.0)
    assert frame.u_right == [-1.0] * 4
    assert frame.depth == [-1.0] * 4
    assert frame.map_points == [None] * 4
    assert frame.outliers == [False] * 4
    assert frame.scale_factor == 1.2


def test_frame_ids_increase():
    a = make_frame(sample_keys())
    b = make_frame(sample_keys())
    assert b.id == a.id + 1


def test_every_key_assigned_to_its_grid_cell():
    frame = make_frame(sample_keys())
    for index, key in enumerate(frame.keys_un):
        col, row = frame.pos_in_grid(key)
        assert index in frame.grid[col][row]
    total = sum(len(cell) for column in frame.grid for cell in column)
    assert total == frame.n


def test_pos_in_grid_outside_image():
    frame = make_frame(sample_keys())
    assert frame.pos_in_grid(KeyPoint(-10.0, 50.0)) is None
    assert frame.pos_in_grid(KeyPoint(50.0, 1000.0)) is None


def test_features_in_area():
    frame = make_frame(sample_keys())
    assert sorted(frame.get_features_in_area(100.0, 100.0, 5.0)) == [0, 1, 3]
    assert sorted(frame.get_features_in_area(100.0, 100.0, 1.0)) == [0]


def test_features_in_area_levels():
    frame = make_frame(sample_keys())
    assert sorted(frame.get_features_in_area(100.0, 100.0, 5.0, -1, 1)) == [0, 1]
    assert sorted(frame.get_features_in_area(100.0, 100.0, 5.0, 2, -1)) == [3]


def test_features_in_area_far_outside():
    frame = make_frame(sample_keys())
    assert frame.get_features_in_area(5000.0, 100.0, 5.0) == []
    assert frame.get_features_in_area(100.0, -5000.0, 5.0) == []


def test_compute_stereo_from_rgbd():
    depth = np.zeros((HEIGHT, WIDTH), dtype=np.float32)
    depth[100, 100] = 2.0
    frame = make_frame(sample_keys(), depth=depth)
    assert frame.depth[0] == 2.0
    assert frame.u_right[0] == pytest.approx(100.0 - 40.0 / 2.0)
    assert frame.depth[2] == -1.0 and frame.u_right[2] == -1.0


def test_unproject_reprojects_to_key():
    keys = [KeyPoint(370.0, 260.0)]
    depth = np.zeros((HEIGHT, WIDTH), dtype=np.float32)
    depth[260, 370] = 2.0
    frame = make_frame(keys, depth=depth)
    frame.set_pose(np.eye(4))
    point = frame.unproject_stereo(0)
    assert point[2] == pytest.approx(2.0)
    assert 500.0 * point[0] / point[2] + 320.0 == pytest.approx(370.0)
    assert 500.0 * point[1] / point[2] + 240.0 == pytest.approx(260.0)


def test_unproject_with_translation_and_without_depth():
    keys = [KeyPoint(320.0, 240.0), KeyPoint(10.0, 10.0)]
    depth = np.zeros((HEIGHT, WIDTH), dtype=np.float32)
    depth[240, 320] = 3.0
    frame = make_frame(keys, depth=depth)
    pose = np.eye(4)
    pose[:3, 3] = [1.0, 2.0, 3.0]
    frame.set_pose(pose)
    assert np.allclose(frame.ow, [-1.0, -2.0, -3.0])
    assert np.allclose(frame.unproject_stereo(0), [-1.0, -2.0, 0.0])
    assert frame.unproject_stereo(1) is None


def test_unproject_requires_pose():
    keys = [KeyPoint(320.0, 240.0)]
    depth = np.ones((HEIGHT, WIDTH), dtype=np.float32)
    frame = make_frame(keys, depth=depth)
    with pytest.raises(RuntimeError):
        frame.unproject_stereo(0)


def test_set_pose_rejects_bad_shape():
    frame = make_frame(sample_keys())
    with pytest.raises(ValueError):
        frame.set_pose(np.eye(3))


def test_copy_is_independent():
    frame = make_frame(sample_keys())
    pose = np.eye(4)
    pose[0, 3] = 5.0
    frame.set_pose(pose)
    other = frame.copy()
    assert other.id == frame.id
    other.map_points[0] = "point"
    other.grid[0][0].append(99)
    other.tcw[0, 3] = 7.0
    assert frame.map_points[0] is None
    assert 99 not in frame.grid[0][0]
    assert frame.tcw[0, 3] == 5.0
    assert np.allclose(other.ow, frame.ow)


def test_empty_frame():
    frame = make_frame([])
    assert frame.n == 0
    assert frame.get_features_in_area(100.0, 100.0, 5.0) == []