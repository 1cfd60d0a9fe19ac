from __future__ import annotations

from typing import Protocol

from subjectscan.core.types import Detection, Frame


class Detector(Protocol):
    """Detection capability consumed by the scanner.

    Caching and rate limiting are the implementation's concern, not the
    scanner's.
    """

    def warm_up(self) -> None:
        """Prepare the model. Idempotent; cheap after the first call."""

    def detect(self, frame: Frame) -> list[Detection]:
        """Return detections in source pixel space; raise `DetectionError` on failure."""


class NullDetector:
    """Detector that never finds anything (dry runs, `--mock`)."""

    def warm_up(self) -> None:
        return None

    def detect(self, frame: Frame) -> list[Detection]:
        return []
