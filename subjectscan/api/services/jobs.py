from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncGenerator, Callable

from subjectscan.core.detectors.base import Detector
from subjectscan.core.scanning.focus import subjects_to_focus_regions
from subjectscan.core.scanning.scanner import VideoScanner
from subjectscan.core.types import FocusRegion, ScanOptions, ScanProgress, Subject
from subjectscan.core.video_sources.base import OpenCVFileSource, VideoSource

logger = logging.getLogger(__name__)

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
CANCELLED = "cancelled"
FAILED = "failed"
FINISHED_STATES = frozenset({COMPLETED, CANCELLED, FAILED})


class ScanJob:
    """Runs one scan in a background thread against its own video source.

    The job opens the source itself, so concurrent jobs never share a
    source. Progress events are kept in order for streaming.
    """

    def __init__(
        self,
        video_path: str,
        options: ScanOptions,
        detector: Detector,
        source_factory: Callable[[str], VideoSource] | None = None,
    ) -> None:
        self.video_path = video_path
        self.options = options
        self.detector = detector
        self._source_factory = source_factory or OpenCVFileSource
        self.scanner = VideoScanner()
        self.state = PENDING
        self.error: str | None = None
        self.frame_size: tuple[int, int] = (0, 0)
        self._subjects: list[Subject] = []
        self._progress: list[ScanProgress] = []
        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the worker thread. Subsequent calls are ignored."""

        with self._lock:
            if self._thread is not None:
                return
            self.state = RUNNING
            self._thread = threading.Thread(target=self._run, name="scan-job", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._cancel_requested.set()
        self.scanner.cancel()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def is_finished(self) -> bool:
        with self._lock:
            return self.state in FINISHED_STATES

    def _on_progress(self, progress: ScanProgress) -> None:
        with self._lock:
            self._progress.append(progress)
        # Covers a cancel() that landed before the scanner marked itself running.
        if self._cancel_requested.is_set():
            self.scanner.cancel()

    def _run(self) -> None:
        source: VideoSource | None = None
        try:
            source = self._source_factory(self.video_path)
            self.frame_size = source.frame_size()
            self.scanner.bind(source, self.detector)
            if self._cancel_requested.is_set():
                subjects: list[Subject] = []
            else:
                subjects = self.scanner.scan(
                    source.duration(), self.options, on_progress=self._on_progress
                )
            with self._lock:
                self._subjects = subjects
                self.state = CANCELLED if self._cancel_requested.is_set() else COMPLETED
        except Exception as exc:
            logger.exception("Scan of %s failed", self.video_path)
            with self._lock:
                self.error = str(exc)
                self.state = FAILED
        finally:
            if source is not None:
                source.close()

    def status(self) -> tuple[str, str | None]:
        """Return `(state, error)` as one consistent snapshot."""

        with self._lock:
            return self.state, self.error

    def latest_progress(self) -> ScanProgress | None:
        with self._lock:
            return self._progress[-1] if self._progress else None

    def subjects(self) -> list[Subject]:
        with self._lock:
            return list(self._subjects)

    def focus_regions(self) -> list[FocusRegion]:
        w, h = self.frame_size
        if w <= 0 or h <= 0:
            return []
        return subjects_to_focus_regions(self.subjects(), w, h)

    async def progress_stream(self) -> AsyncGenerator[ScanProgress, None]:
        """Yield every progress event in order, ending once the job finishes."""

        sent = 0
        while True:
            with self._lock:
                pending = self._progress[sent:]
                finished = self.state in FINISHED_STATES
            for progress in pending:
                yield progress
            sent += len(pending)
            if finished and not pending:
                return
            await asyncio.sleep(0.02)
