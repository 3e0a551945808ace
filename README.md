# vislam

Building blocks for a feature-based visual SLAM pipeline, written on top of
NumPy and Pillow. You bring keypoints and descriptors; vislam organises them
into frames with a spatial grid, initializes a map from two monocular views,
draws the tracking state onto an image, and reads the image lists,
timestamps and IMU logs of common datasets.

## What is inside

| Module | Purpose |
| --- | --- |
| `vislam.converter` | `KeyPoint`; pose helpers `se3_matrix` and `sim3_matrix`; `to_matrix3`, `to_vector3`; `to_quaternion` (returns `[x, y, z, w]`); `descriptor_rows` |
| `vislam.geometry` | `compute_h21`, `compute_f21`, `normalize`, `triangulate`, `decompose_essential` and `check_rt`, which returns a `Reconstruction` |
| `vislam.initializer` | `Initializer`: RANSAC over homography and fundamental models, model choice by score ratio, and pose/structure recovery |
| `vislam.frame` | `Camera` (intrinsics, distortion, `undistort`, `image_bounds`) and `Frame` (keypoint grid, `get_features_in_area`, `set_pose`, RGB-D depth, `unproject_stereo`) |
| `vislam.frame_drawer` | `TrackingState`, `status_text` and `FrameDrawer`, which renders the latest frame with tracked features and a status strip |
| `vislam.tum` | `load_tum_mono`, `load_tum_rgbd` |
| `vislam.euroc_mono` | `load_euroc_mono` |
| `vislam.euroc_stereo` | `ImuSample`, `ImageRecord`, `load_euroc_stereo_images`, `load_euroc_imu`, `group_imu_by_image` |
| `vislam.kitti_mono`, `vislam.kitti_stereo` | `load_kitti_mono`, `load_kitti_stereo` |
| `vislam.timing` | `TimingSummary`, `tracking_time_summary`, `frame_wait` |

## Quick tour

Poses are 4×4 NumPy arrays holding the world-to-camera transform.

```python
import numpy as np
from vislam.converter import se3_matrix, to_quaternion

tcw = se3_matrix(np.eye(3), [0.1, 0.0, 0.5])   # float32 4x4 transform
qx, qy, qz, qw = to_quaternion(tcw[:3, :3])
```

Two-view initialization from matched keypoints:

```python
from vislam.initializer import Initializer

initializer = Initializer(reference_keys, calibration, sigma=1.0, iterations=200)
result = initializer.initialize(current_keys, matches12)
```

`matches12[i]` is the index of the current keypoint matched to reference
keypoint `i`, or a negative number when there is none; at least eight
matches are required. The result is a `Reconstruction` with `rotation`,
`translation`, `points` (one row per reference keypoint), `triangulated`,
`good` and `parallax`, or `None` when neither model yields a clear,
well-conditioned solution. Sampling uses a fixed seed, so results are
repeatable.

Frames and area queries:

```python
from vislam.converter import KeyPoint
from vislam.frame import Camera, Frame

camera = Camera(fx=500.0, fy=500.0, cx=320.0, cy=240.0)
frame = Frame([KeyPoint(100.0, 80.0)], None, 0.0, camera, 640, 480)
frame.get_features_in_area(100.0, 80.0, 5.0)   # -> [0]
```

Pass a depth image as `depth=` to fill `frame.depth` and `frame.u_right`;
after `set_pose`, `unproject_stereo(i)` gives the world point of keypoint
`i` (or `None` without depth).

Drawing: `FrameDrawer(map_)` needs an object with `keyframes_in_map()` and
`map_points_in_map()`. Feed it with `update(...)` and call `draw_frame()`
to get an RGB array with the status line below the image.

Timing: `tracking_time_summary(times)` gives the median (upper middle
element) and mean; `frame_wait(timestamps, index)` gives the gap to the
next frame, or from the previous one for the last frame.

## Dataset formats

* **TUM monocular**: `rgb.txt` in the sequence folder; the first three lines
  are skipped, each further line holds a timestamp and an image name.
* **TUM RGB-D**: an association file of `time rgb time depth` lines.
* **EuRoC monocular**: one nanosecond timestamp per line; images are
  `<image_path>/<timestamp>.png`, times are returned in seconds.
* **EuRoC stereo + IMU**: the camera and IMU `data.csv` files (header line
  skipped). `group_imu_by_image` gives the first image no samples and every
  later image the samples taken before it and not yet assigned.
* **KITTI**: `times.txt` in the sequence folder, images under `image_0/`
  (and `image_1/` for stereo) with six-digit names.

## What this package does not do

* It does not detect features or compute descriptors; keypoints come from
  you.
* It has no keyframes, covisibility graph, map, local mapping, loop closing
  or bundle adjustment, and no complete tracking loop.
* It reads dataset listings but does not load or rectify images, and it
  installs no command-line programs.

## Requirements

Python 3.10 or newer, NumPy and Pillow. Tests use pytest
(`pip install vislam[test]`).