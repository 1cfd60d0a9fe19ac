"""Shared type definitions used across the scanner.

Boxes are kept in source-bitmap pixel space as `(x, y, width, height)`;
normalisation to percentages only happens when building focus regions.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

import numpy as np

Frame = np.ndarray

# x, y, width, height (pixels)
BBox = tuple[float, float, float, float]


@dataclass(frozen=True)
class Segment:
    """A `[start, end]` time range (seconds) restricting a scan."""

    start: float
    end: float


def validate_segments(segments: Iterable[Segment | tuple[float, float]]) -> tuple[Segment, ...]:
    """Normalise `(start, end)` pairs to `Segment`s.

    Segments must be well-formed and strictly ascending: each one starts
    after the previous one ends, so sampled timestamps never repeat or go
    backwards.
    """

    out: list[Segment] = []
    for s in segments:
        seg = s if isinstance(s, Segment) else Segment(float(s[0]), float(s[1]))
        if seg.end < seg.start:
            raise ValueError("segment end must be >= start")
        if out and seg.start <= out[-1].end:
            raise ValueError("segments must be ordered and must not overlap")
        out.append(seg)
    return tuple(out)


@dataclass
class Detection:
    """Raw detector output for one object in one frame."""

    label: str
    bbox: BBox
    score: float


@dataclass(frozen=True)
class Position:
    """One observation of a subject at a sampled timestamp."""

    time: float
    bbox: BBox
    score: float


@dataclass(frozen=True)
class Subject:
    """A physical object tracked across sampled frames.

    Subjects are immutable: `with_position()` returns an updated copy so a
    snapshot handed to a caller never changes under them.
    """

    id: str
    label: str
    positions: tuple[Position, ...]
    first_seen: float
    last_seen: float

    @classmethod
    def create(cls, subject_id: str, label: str, position: Position) -> Subject:
        return cls(
            id=subject_id,
            label=label,
            positions=(position,),
            first_seen=position.time,
            last_seen=position.time,
        )

    @property
    def last_position(self) -> Position:
        return self.positions[-1]

    @property
    def score(self) -> float:
        """Mean confidence across all positions."""

        if not self.positions:
            return 0.0
        return sum(p.score for p in self.positions) / len(self.positions)

    def with_position(self, position: Position) -> Subject:
        return replace(
            self,
            positions=self.positions + (position,),
            first_seen=min(self.first_seen, position.time),
            last_seen=max(self.last_seen, position.time),
        )


@dataclass
class ScanProgress:
    """Observational progress snapshot emitted after every processed frame."""

    current_frame: int
    total_frames: int
    elapsed_seconds: float
    estimated_remaining_seconds: float
    percent_complete: float


@dataclass
class FocusRegion:
    """UI-facing crop hint derived from a subject's averaged box."""

    subject_id: str
    time_start: float
    time_end: float
    center_x_percent: float
    center_y_percent: float
    width_percent: float
    height_percent: float
    label: str


@dataclass(frozen=True)
class ScanOptions:
    """Per-scan configuration.

    `max_samples` bounds the number of frames inspected regardless of video
    length; `max_time_gap_for_match` stops unrelated reappearances from being
    stitched onto an old subject.
    """

    interval: float = 1.0
    min_score: float = 0.35
    similarity_threshold: float = 0.5
    min_detections: int = 1
    segments: tuple[Segment, ...] = field(default_factory=tuple)
    max_samples: int = 15
    max_objects_per_frame: int = 3
    max_time_gap_for_match: float = 5.0
    # Scheduling knobs for the frame acquisition boundary.
    first_seek_timeout: float = 2.0
    seek_timeout: float = 0.3
    ready_timeout: float = 10.0
    frame_yield_seconds: float = 0.01

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be > 0")
        if not 0.0 <= self.min_score <= 1.0:
            raise ValueError("min_score must be in [0, 1]")
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be in [0, 1]")
        if self.min_detections < 1:
            raise ValueError("min_detections must be >= 1")
        if self.max_objects_per_frame < 1:
            raise ValueError("max_objects_per_frame must be >= 1")
        if self.max_time_gap_for_match < 0:
            raise ValueError("max_time_gap_for_match must be >= 0")
        for name in ("first_seek_timeout", "seek_timeout", "ready_timeout", "frame_yield_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        # Accept plain (start, end) pairs as well as Segment instances.
        object.__setattr__(self, "segments", validate_segments(self.segments))
