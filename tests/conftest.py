from __future__ import annotations

import pytest

from subjectscan.core.errors import AcquisitionTimeoutError, DetectionError, SeekTimeoutError
from subjectscan.core.video_sources.base import PlaybackState, VideoSource


class FakeSource(VideoSource):
    """In-memory video source; frames are dicts carrying their timestamp."""

    def __init__(self, *, ready=True, seek_timeouts=(), position=7.0, duration=10.0, size=(200, 100)):
        self.ready = ready
        self.seek_timeouts = set(seek_timeouts)
        self.position = position
        self._duration = duration
        self._size = size
        self.sought: list[tuple[float, float]] = []
        self.restored: list[PlaybackState] = []
        self.ready_checks = 0
        self.closed = False
        self._current = None

    def wait_ready(self, timeout):
        self.ready_checks += 1
        if not self.ready:
            raise AcquisitionTimeoutError("never ready")

    def seek_and_capture(self, timestamp, timeout):
        self.sought.append((timestamp, timeout))
        if timestamp in self.seek_timeouts:
            raise SeekTimeoutError(timestamp, timeout)
        self.position = timestamp
        self._current = {"t": timestamp}
        return self._current

    def capture(self):
        return self._current

    def save_state(self):
        return PlaybackState(position=self.position, paused=False)

    def restore_state(self, state):
        self.restored.append(state)
        self.position = state.position

    def frame_size(self):
        return self._size

    def duration(self):
        return self._duration

    def close(self):
        self.closed = True


class ScriptedDetector:
    """Returns pre-scripted detections keyed by the frame's timestamp."""

    def __init__(self, script=None, fail_at=(), warm_up_error=None):
        self.script = script or {}
        self.fail_at = set(fail_at)
        self.warm_up_error = warm_up_error
        self.warm_ups = 0
        self.calls: list[float] = []

    def warm_up(self):
        self.warm_ups += 1
        if self.warm_up_error is not None:
            raise self.warm_up_error

    def detect(self, frame):
        t = frame["t"]
        self.calls.append(t)
        if t in self.fail_at:
            raise DetectionError(f"boom at {t}")
        return list(self.script.get(t, []))


@pytest.fixture()
def make_source():
    return FakeSource


@pytest.fixture()
def make_detector():
    return ScriptedDetector
