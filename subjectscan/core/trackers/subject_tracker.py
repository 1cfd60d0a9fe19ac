from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable

import numpy as np

from subjectscan.core.geometry import iou_many
from subjectscan.core.types import Detection, Position, Subject

logger = logging.getLogger(__name__)


def _default_id(label: str) -> str:
    return f"{label}_{uuid.uuid4().hex[:12]}"


class SubjectTracker:
    """Greedy IoU-based identity association over sampled frames.

    Each detection is matched independently, in the order given, against the
    open subjects of the same label whose last observation is recent enough.
    The best candidate by IoU wins if it clears the similarity threshold; ties
    go to the earliest-created subject. Unmatched detections open new
    subjects. Subjects are never merged or removed here.
    """

    def __init__(
        self,
        similarity_threshold: float = 0.5,
        max_time_gap: float = 5.0,
        id_factory: Callable[[str], str] | None = None,
    ) -> None:
        self.similarity_threshold = similarity_threshold
        self.max_time_gap = max_time_gap
        self._id_factory = id_factory or _default_id
        # Insertion order == creation order; used for tie-breaking.
        self._subjects: dict[str, Subject] = {}

    def reset(self) -> None:
        self._subjects.clear()

    def subjects(self) -> list[Subject]:
        """Return a snapshot of the open subjects in creation order."""

        return list(self._subjects.values())

    def _candidates(self, label: str, time: float) -> list[Subject]:
        return [
            subject
            for subject in self._subjects.values()
            if subject.label == label and abs(time - subject.last_seen) <= self.max_time_gap
        ]

    def update(self, detections: Iterable[Detection], time: float) -> list[Subject]:
        """Associate one frame's detections at `time` and return the open subjects."""

        for det in detections:
            position = Position(time=time, bbox=det.bbox, score=det.score)
            candidates = self._candidates(det.label, time)
            match: Subject | None = None
            if candidates:
                scores = iou_many(det.bbox, [c.last_position.bbox for c in candidates])
                # argmax returns the first maximum, i.e. the earliest-created subject.
                best = int(np.argmax(scores))
                if scores[best] >= self.similarity_threshold:
                    match = candidates[best]

            if match is not None:
                self._subjects[match.id] = match.with_position(position)
                continue

            new_id = self._id_factory(det.label)
            if new_id in self._subjects:
                raise ValueError(f"id_factory produced a duplicate subject id: {new_id}")
            self._subjects[new_id] = Subject.create(new_id, det.label, position)
            logger.debug("New subject %s at %.3fs", new_id, time)

        return self.subjects()
