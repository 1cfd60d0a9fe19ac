"""Accept/reject review of scan results before they become focus regions."""

from __future__ import annotations

from collections.abc import Iterable

from subjectscan.core.scanning.focus import subjects_to_focus_regions
from subjectscan.core.types import FocusRegion, Subject


class ScanReview:
    """Tracks which scanned subjects the user kept.

    A subject is in at most one of the accepted/rejected sets; anything in
    neither is still pending.
    """

    def __init__(self, subjects: Iterable[Subject]) -> None:
        self.subjects: list[Subject] = list(subjects)
        self._by_id = {s.id: s for s in self.subjects}
        self._accepted: set[str] = set()
        self._rejected: set[str] = set()

    def _check(self, subject_id: str) -> None:
        if subject_id not in self._by_id:
            raise KeyError(subject_id)

    def accept(self, subject_id: str) -> None:
        self._check(subject_id)
        self._rejected.discard(subject_id)
        self._accepted.add(subject_id)

    def reject(self, subject_id: str) -> None:
        self._check(subject_id)
        self._accepted.discard(subject_id)
        self._rejected.add(subject_id)

    def accept_all(self) -> None:
        self._accepted = set(self._by_id)
        self._rejected.clear()

    def reject_all(self) -> None:
        self._rejected = set(self._by_id)
        self._accepted.clear()

    def accepted(self) -> list[Subject]:
        return [s for s in self.subjects if s.id in self._accepted]

    def rejected(self) -> list[Subject]:
        return [s for s in self.subjects if s.id in self._rejected]

    def pending(self) -> list[Subject]:
        decided = self._accepted | self._rejected
        return [s for s in self.subjects if s.id not in decided]

    def finalize(self, frame_width: float, frame_height: float) -> list[FocusRegion]:
        """Return focus regions for the accepted subjects, in scan order."""

        return subjects_to_focus_regions(self.accepted(), frame_width, frame_height)
