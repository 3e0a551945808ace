"""Readers for TUM RGB-D sequence listings."""

from __future__ import annotations

from pathlib import Path


def _timestamp(field: str, line: str) -> float:
    try:
        return float(field)
    except ValueError:
        raise ValueError(f"bad timestamp in line: {line!r}") from None


def load_tum_mono(sequence) -> list[tuple[float, str]]:
    """Read ``rgb.txt`` of a sequence, skipping its three header lines.

    Returns (timestamp, image name relative to the sequence) pairs.
    """
    with open(Path(sequence) / "rgb.txt", encoding="utf-8") as handle:
        lines = handle.read().splitlines()[3:]
    entries = []
    for line in lines:
        fields = line.split()
        if not fields:
            continue
        if len(fields) < 2:
            raise ValueError(f"missing image name in line: {line!r}")
        entries.append((_timestamp(fields[0], line), fields[1]))
    return entries


def load_tum_rgbd(association_path) -> list[tuple[float, str, str]]:
    """Read an association file of ``time rgb time depth`` lines.

    Returns (timestamp, rgb name, depth name) triples; the names are relative
    to the sequence directory.
    """
    entries = []
    with open(association_path, encoding="utf-8") as handle:
        for line in handle:
            fields = line.split()
            if not fields:
                continue
            if len(fields) < 4:
                raise ValueError(f"incomplete association line: {line!r}")
            entries.append((_timestamp(fields[0], line), fields[1], fields[3]))
    return entries