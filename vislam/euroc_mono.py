"""Reader for EuRoC monocular image timestamp listings."""

from __future__ import annotations


def load_euroc_mono(image_path, times_path) -> list[tuple[float, str]]:
    """Read a file of nanosecond timestamps, one per line.

    Each timestamp names an image ``<image_path>/<timestamp>.png``. Returns
    (timestamp in seconds, image path) pairs in file order.
    """
    entries = []
    with open(times_path, encoding="utf-8") as handle:
        for line in handle:
            name = line.strip()
            if not name:
                continue
            try:
                nanoseconds = float(name)
            except ValueError:
                raise ValueError(f"bad timestamp in line: {line!r}") from None
            entries.append((nanoseconds / 1e9, f"{image_path}/{name}.png"))
    return entries