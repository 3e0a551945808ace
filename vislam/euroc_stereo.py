"""Readers for EuRoC stereo image listings and IMU logs, and their pairing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

# IMU samples earlier than the first image by more than this are discarded.
_IMU_ALIGNMENT_TOLERANCE = 1e-4


@dataclass(frozen=True)
class ImuSample:
    """One IMU reading: time in seconds, angular velocity and linear acceleration."""

    time: float
    wx: float
    wy: float
    wz: float
    ax: float
    ay: float
    az: float


@dataclass(frozen=True)
class ImageRecord:
    """One stereo pair: time in seconds, file name and the left and right paths."""

    time: float
    name: str
    left: str
    right: str


def _number(field: str, line: str) -> float:
    try:
        return float(field)
    except ValueError:
        raise ValueError(f"bad number in line: {line!r}") from None


def _data_lines(path):
    """Yield the non-empty lines of a CSV file after its header line."""
    with open(path, encoding="utf-8", newline="") as handle:
        next(handle, None)
        for line in handle:
            stripped = line.rstrip("\r\n")
            if stripped:
                yield stripped


def load_euroc_stereo_images(left_path, right_path, csv_path) -> list[ImageRecord]:
    """Read an EuRoC camera ``data.csv`` of ``timestamp,filename`` lines.

    The header line is skipped. The timestamp is the field before the last
    comma, in nanoseconds; the file name is the final field. Both cameras
    share file names, found under ``left_path`` and ``right_path``.
    """
    records = []
    for line in _data_lines(csv_path):
        fields = line.split(",")
        if len(fields) < 2:
            raise ValueError(f"missing image name in line: {line!r}")
        time = _number(fields[-2], line) / 1e9
        name = fields[-1].strip()
        records.append(ImageRecord(time=time, name=name,
                                   left=f"{left_path}/{name}",
                                   right=f"{right_path}/{name}"))
    return records


def load_euroc_imu(path) -> list[ImuSample]:
    """Read an EuRoC IMU ``data.csv``.

    Each line after the header holds a nanosecond timestamp, the angular
    velocity (x, y, z) and the linear acceleration (x, y, z).
    """
    samples = []
    for line in _data_lines(path):
        fields = line.split(",")
        if len(fields) < 7:
            raise ValueError(f"incomplete IMU line: {line!r}")
        values = [_number(field, line) for field in fields[:7]]
        samples.append(ImuSample(values[0] / 1e9, *values[1:7]))
    return samples


def group_imu_by_image(imu: Sequence[ImuSample], images: Sequence) -> list[tuple[list[ImuSample], int]]:
    """Assign IMU samples to the images that follow them.

    Samples from before the first image (beyond a small tolerance) are
    dropped. The first image gets no samples; every later image gets the
    samples taken before it and not yet assigned. Returns
    (samples, image index) pairs in image order.
    """
    if not images:
        raise ValueError("no images to group IMU samples by")
    samples = list(imu)
    first_time = images[0].time
    for index, sample in enumerate(samples[:-1]):
        if first_time - sample.time < _IMU_ALIGNMENT_TOLERANCE:
            samples = samples[index:]
            break

    groups: list[tuple[list[ImuSample], int]] = [([], 0)]
    position = 0
    for index, image in enumerate(images[1:], start=1):
        current = []
        while position < len(samples) and samples[position].time < image.time:
            current.append(samples[position])
            position += 1
        groups.append((current, index))
    return groups