"""Frame sampling.

Produces the ordered list of timestamps a scan inspects. The hard cap on
sample count keeps worst-case scan cost bounded regardless of video length,
at the price of temporal resolution.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from subjectscan.core.types import Segment, validate_segments

logger = logging.getLogger(__name__)


def _steps(start: float, interval: float, stop: float, *, inclusive: bool) -> list[float]:
    # Multiply rather than accumulate to avoid float drift on long videos.
    out: list[float] = []
    i = 0
    while True:
        t = start + i * interval
        if t > stop or (not inclusive and t >= stop):
            break
        out.append(t)
        i += 1
    return out


def downsample(timestamps: Sequence[float], max_samples: int) -> list[float]:
    """Pick `max_samples` evenly spaced entries, preserving order.

    `max_samples <= 0` disables the cap.
    """

    n = len(timestamps)
    if max_samples <= 0 or n <= max_samples:
        return list(timestamps)
    logger.debug("Downsampling %d timestamps to %d", n, max_samples)
    return [timestamps[(i * n) // max_samples] for i in range(max_samples)]


def sample_timestamps(
    duration: float,
    segments: Iterable[Segment | tuple[float, float]] | None,
    interval: float,
    max_samples: int,
) -> list[float]:
    """Return the ascending timestamps (seconds) to inspect.

    With segments, each segment contributes `start, start+interval, ...`
    up to and including its end, in segment order. Without segments the
    whole `[0, duration)` range is covered. A non-positive duration or
    interval yields an empty list.

    Raises:
        ValueError: A segment is inverted, or segments overlap or are out of order.
    """

    if duration <= 0 or interval <= 0:
        return []

    segs = validate_segments(segments or ())
    timestamps: list[float] = []
    if segs:
        for seg in segs:
            timestamps.extend(_steps(seg.start, interval, seg.end, inclusive=True))
    else:
        timestamps = _steps(0.0, interval, duration, inclusive=False)

    return downsample(timestamps, max_samples)
