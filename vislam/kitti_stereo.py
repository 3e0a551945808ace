"""Reader for KITTI odometry stereo sequences."""

from __future__ import annotations

from pathlib import Path


def load_kitti_stereo(sequence) -> list[tuple[float, str, str]]:
    """Read ``times.txt`` of a sequence and name both cameras' images.

    Returns (timestamp, left path, right path) triples; image ``i`` is
    ``<sequence>/image_0/<i as six digits>.png`` on the left and
    ``<sequence>/image_1/...`` on the right.
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
    left = f"{root}/image_0/"
    right = f"{root}/image_1/"
    return [(t, f"{left}{i:06d}.png", f"{right}{i:06d}.png") for i, t in enumerate(timestamps)]