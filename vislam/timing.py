"""Tracking time statistics and playback pacing for image sequences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class TimingSummary:
    median: float
    mean: float


def tracking_time_summary(times) -> TimingSummary:
    """Median (upper middle element) and mean of per-frame tracking times."""
    ordered = sorted(float(t) for t in times)
    if not ordered:
        raise ValueError("no tracking times to summarise")
    return TimingSummary(median=ordered[len(ordered) // 2], mean=sum(ordered) / len(ordered))


def frame_wait(timestamps: Sequence[float], index: int) -> float:
    """Time to the next frame, or since the previous one for the last frame."""
    count = len(timestamps)
    if not 0 <= index < count:
        raise IndexError("frame index out of range")
    if index < count - 1:
        return timestamps[index + 1] - timestamps[index]
    if index > 0:
        return timestamps[index] - timestamps[index - 1]
    return 0.0