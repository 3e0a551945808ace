"""Reader for KITTI odometry monocular sequences."""

from __future__ import annotations

from pathlib import Path


def load_kitti_mono(sequence) -> list[tuple[float, str]]:
    """Read ``times.txt`` of a sequence and name the left camera images.

    Returns (timestamp, image path) pairs; image ``i`` is
    ``<sequence>/image_0/<i as six digits>.png``.
    """
    root = str(sequence)
    timestamps = []
    with open(Path(root) / "times.txt", encoding="utf-8") as handle:
        for line in handle:
            fields = line.split()
            if not fields:
                continue
            try:
                timestamps.append(float(fields[0]))
            except ValueError:
                raise ValueError(f"bad timestamp in line: {line!r}") from None
    prefix = f"{root}/image_0/"
    return [(t, f"{prefix}{i:06d}.png") for i, t in enumerate(timestamps)]