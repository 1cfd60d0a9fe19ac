"""Video source abstractions.

The scanner acquires frames through a small interface (`VideoSource`) so the
decoding backend can be swapped without touching the scan loop. A source is
a single shared resource: it is sought for one timestamp at a time.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass

import cv2

from subjectscan.core.errors import AcquisitionTimeoutError, SeekTimeoutError
from subjectscan.core.types import Frame

logger = logging.getLogger(__name__)

RESTORE_TIMEOUT_S = 2.0


@dataclass(frozen=True)
class PlaybackState:
    """Playback position/state saved before a scan and restored after it."""

    position: float
    paused: bool = True


class VideoSource(ABC):
    """Base interface for anything the scanner can seek and capture from."""

    @abstractmethod
    def wait_ready(self, timeout: float) -> None:
        """Block until a frame can be read; raise `AcquisitionTimeoutError` otherwise."""

        raise NotImplementedError

    @abstractmethod
    def seek_and_capture(self, timestamp: float, timeout: float) -> Frame | None:
        """Seek to `timestamp` (seconds) and return the decoded frame.

        Raises `SeekTimeoutError` if the seek does not finish within `timeout`.
        Returns `None` when no frame could be decoded at that time.
        """

        raise NotImplementedError

    @abstractmethod
    def capture(self) -> Frame | None:
        """Return whatever frame is currently available without seeking."""

        raise NotImplementedError

    @abstractmethod
    def save_state(self) -> PlaybackState:
        raise NotImplementedError

    @abstractmethod
    def restore_state(self, state: PlaybackState) -> None:
        raise NotImplementedError

    def frame_size(self) -> tuple[int, int]:
        """Return `(width, height)` of decoded frames, or `(0, 0)` if unknown."""

        return (0, 0)

    def duration(self) -> float:
        """Return the media duration in seconds, or 0.0 if unknown."""

        return 0.0

    def close(self) -> None:
        """Release any underlying resources."""

        return None


class OpenCVFileSource(VideoSource):
    """A seekable `VideoSource` over a local file, backed by `cv2.VideoCapture`.

    Seeks run on a single worker thread so each one can be bounded by a
    timeout while still executing strictly one at a time.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self.cap = cv2.VideoCapture(path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {path}")
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="video-seek")
        self._last_frame: Frame | None = None
        self._position = 0.0

        fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
        frames = float(self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        self._fps = fps if fps > 0.0 else None
        self._duration = frames / fps if fps > 0.0 and frames > 0.0 else 0.0

    def _read_at(self, timestamp: float | None) -> Frame | None:
        """Worker-side seek + decode. Runs on the executor thread only."""

        if timestamp is not None:
            self.cap.set(cv2.CAP_PROP_POS_MSEC, float(timestamp) * 1000.0)
        ok, frame = self.cap.read()
        if not ok or frame is None:
            return None
        with self._lock:
            self._last_frame = frame
            if timestamp is not None:
                self._position = float(timestamp)
        return frame

    def wait_ready(self, timeout: float) -> None:
        with self._lock:
            if self._last_frame is not None:
                return
        future = self._executor.submit(self._read_at, self._position)
        try:
            frame = future.result(timeout=timeout)
        except FutureTimeoutError:
            raise AcquisitionTimeoutError(
                f"Video source {self._path} not ready after {timeout:.1f}s"
            ) from None
        if frame is None:
            raise AcquisitionTimeoutError(f"Video source {self._path} produced no frame")

    def seek_and_capture(self, timestamp: float, timeout: float) -> Frame | None:
        future = self._executor.submit(self._read_at, timestamp)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            raise SeekTimeoutError(timestamp, timeout) from None

    def capture(self) -> Frame | None:
        with self._lock:
            return self._last_frame

    def save_state(self) -> PlaybackState:
        with self._lock:
            return PlaybackState(position=self._position, paused=True)

    def restore_state(self, state: PlaybackState) -> None:
        future = self._executor.submit(self._read_at, state.position)
        try:
            future.result(timeout=RESTORE_TIMEOUT_S)
        except FutureTimeoutError:
            logger.warning("Restoring playback position to %.3fs timed out", state.position)

    def frame_size(self) -> tuple[int, int]:
        w = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        h = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        return (w, h)

    def duration(self) -> float:
        return self._duration

    def close(self) -> None:
        """Stop the seek worker and release the underlying capture."""

        self._executor.shutdown(wait=True, cancel_futures=True)
        self.cap.release()
