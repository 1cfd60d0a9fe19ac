"""Conversion of tracked subjects into focus regions for reframing."""

from __future__ import annotations

from collections.abc import Iterable

from subjectscan.core.geometry import mean_bbox
from subjectscan.core.types import FocusRegion, Subject


def focus_label(subject: Subject) -> str:
    return f"{subject.label} ({round(subject.score * 100)}%)"


def subject_to_focus_region(subject: Subject, frame_width: float, frame_height: float) -> FocusRegion:
    """Build a focus region from the subject's averaged box over all positions."""

    if frame_width <= 0 or frame_height <= 0:
        raise ValueError("frame size must be > 0")
    x, y, w, h = mean_bbox([p.bbox for p in subject.positions])
    return FocusRegion(
        subject_id=subject.id,
        time_start=subject.first_seen,
        time_end=subject.last_seen,
        center_x_percent=(x + w / 2.0) / frame_width * 100.0,
        center_y_percent=(y + h / 2.0) / frame_height * 100.0,
        width_percent=w / frame_width * 100.0,
        height_percent=h / frame_height * 100.0,
        label=focus_label(subject),
    )


def subjects_to_focus_regions(
    subjects: Iterable[Subject], frame_width: float, frame_height: float
) -> list[FocusRegion]:
    """Convert subjects to focus regions, preserving order. Pure."""

    return [subject_to_focus_region(s, frame_width, frame_height) for s in subjects]
