"""Building blocks for feature-based visual SLAM: frames, two-view initialization, drawing and dataset loaders."""

__version__ = "0.1.0"

__all__ = [
    "converter",
    "euroc_mono",
    "euroc_stereo",
    "frame",
    "frame_drawer",
    "geometry",
    "initializer",
    "kitti_mono",
    "kitti_stereo",
    "timing",
    "tum",
]