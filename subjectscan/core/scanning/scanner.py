"""Scan orchestration.

`VideoScanner` drives one sequential scan: sample timestamps, then for each
one seek/capture, detect, filter and track. One frame is fully processed
before the next begins because the video source cannot be sought for two
timestamps at once.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from subjectscan.core.detectors.base import Detector
from subjectscan.core.errors import ConcurrentScanError, NotInitializedError, SeekTimeoutError
from subjectscan.core.sampler import sample_timestamps
from subjectscan.core.trackers.subject_tracker import SubjectTracker
from subjectscan.core.types import Detection, Frame, ScanOptions, ScanProgress, Subject
from subjectscan.core.video_sources.base import VideoSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], None]
FrameCallback = Callable[[float, list[Detection]], None]


def filter_detections(
    detections: Iterable[Detection], min_score: float, max_objects: int
) -> list[Detection]:
    """Keep detections scoring at least `min_score`, best first, at most `max_objects`."""

    kept = [d for d in detections if d.score >= min_score]
    kept.sort(key=lambda d: d.score, reverse=True)
    return kept[:max_objects]


def compute_progress(processed: int, total: int, elapsed: float) -> ScanProgress:
    remaining = (elapsed / processed) * (total - processed) if processed > 0 else 0.0
    percent = (processed / total) * 100.0 if total > 0 else 100.0
    return ScanProgress(
        current_frame=processed,
        total_frames=total,
        elapsed_seconds=elapsed,
        estimated_remaining_seconds=max(0.0, remaining),
        percent_complete=percent,
    )


class VideoScanner:
    """Scans a video for subjects.

    Each instance owns its running/cancellation state, so independent
    scanners over independent sources can run concurrently. A single
    instance rejects a second `scan()` while one is in progress.
    """

    def __init__(
        self,
        source: VideoSource | None = None,
        detector: Detector | None = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.detector = detector
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._running = False
        self._cancel_requested = threading.Event()

    def bind(self, source: VideoSource, detector: Detector) -> None:
        """Attach the frame acquisition and detection capabilities."""

        with self._lock:
            if self._running:
                raise ConcurrentScanError("Cannot rebind adapters while a scan is running")
            self.source = source
            self.detector = detector

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def cancel(self) -> None:
        """Request the running scan to stop before its next frame. No-op when idle."""

        with self._lock:
            if not self._running:
                return
            self._cancel_requested.set()
        logger.info("Scan cancellation requested")

    def scan(
        self,
        duration: float,
        options: ScanOptions | None = None,
        on_progress: ProgressCallback | None = None,
        on_frame: FrameCallback | None = None,
    ) -> list[Subject]:
        """Scan `duration` seconds of video and return the kept subjects.

        Args:
            duration: Video duration in seconds. A non-positive duration yields an
                empty result, even with segments.
            options: Scan configuration; defaults to `ScanOptions()`.
            on_progress: Called once per processed frame, in order.
            on_frame: Called once per processed frame with its filtered detections.

        Returns:
            Subjects with at least `min_detections` positions. A cancelled scan
            returns the subjects built from the frames processed so far.

        Raises:
            NotInitializedError: No video source or detector bound.
            ConcurrentScanError: Another scan is running on this instance.
            AcquisitionTimeoutError: The source never became ready.
        """

        opts = options or ScanOptions()
        with self._lock:
            if self.source is None or self.detector is None:
                raise NotInitializedError("Scanner not initialized; call bind() first")
            if self._running:
                raise ConcurrentScanError("A scan is already in progress")
            self._running = True
            self._cancel_requested.clear()
            source, detector = self.source, self.detector

        try:
            return self._run(source, detector, duration, opts, on_progress, on_frame)
        finally:
            with self._lock:
                self._running = False

    def _run(
        self,
        source: VideoSource,
        detector: Detector,
        duration: float,
        opts: ScanOptions,
        on_progress: ProgressCallback | None,
        on_frame: FrameCallback | None,
    ) -> list[Subject]:
        # Warm up before timing so per-frame timings reflect inference only.
        try:
            detector.warm_up()
        except Exception:
            logger.exception("Detector warm-up failed; frames will retry on demand")

        timestamps = sample_timestamps(duration, opts.segments, opts.interval, opts.max_samples)
        if not timestamps:
            logger.info("Nothing to scan (duration=%.3f, interval=%.3f)", duration, opts.interval)
            return []

        source.wait_ready(opts.ready_timeout)

        total = len(timestamps)
        logger.info("Starting scan over %d frames", total)
        tracker = SubjectTracker(opts.similarity_threshold, opts.max_time_gap_for_match)
        saved_state = source.save_state()
        started = self._clock()
        processed = 0
        try:
            for index, timestamp in enumerate(timestamps):
                if self._cancel_requested.is_set():
                    logger.info("Scan stopped after %d/%d frames", processed, total)
                    break

                detections = self._process_frame(source, detector, timestamp, index == 0, opts)
                tracker.update(detections, timestamp)
                if on_frame is not None:
                    on_frame(timestamp, detections)

                processed += 1
                if on_progress is not None:
                    on_progress(compute_progress(processed, total, self._clock() - started))

                # Let the host breathe between frames.
                if processed < total and opts.frame_yield_seconds > 0:
                    self._sleep(opts.frame_yield_seconds)
        finally:
            try:
                source.restore_state(saved_state)
            except Exception:
                logger.exception("Failed to restore playback state")

        subjects = [s for s in tracker.subjects() if len(s.positions) >= opts.min_detections]
        logger.info(
            "Scan finished: %d frames, %d subjects kept of %d",
            processed,
            len(subjects),
            len(tracker.subjects()),
        )
        return subjects

    def _acquire(
        self, source: VideoSource, timestamp: float, first: bool, opts: ScanOptions
    ) -> Frame | None:
        timeout = opts.first_seek_timeout if first else opts.seek_timeout
        frame: Frame | None = None
        try:
            frame = source.seek_and_capture(timestamp, timeout)
        except SeekTimeoutError:
            logger.warning("Seek timeout at %.3fs; using current frame", timestamp)
        except Exception:
            logger.exception("Seek failed at %.3fs; using current frame", timestamp)
        if frame is None:
            try:
                frame = source.capture()
            except Exception:
                logger.exception("Capture failed at %.3fs", timestamp)
                return None
        return frame

    def _process_frame(
        self,
        source: VideoSource,
        detector: Detector,
        timestamp: float,
        first: bool,
        opts: ScanOptions,
    ) -> list[Detection]:
        frame = self._acquire(source, timestamp, first, opts)
        if frame is None:
            logger.warning("No frame available at %.3fs; skipping", timestamp)
            return []
        try:
            raw = detector.detect(frame)
        except Exception:
            logger.exception("Detection failed at %.3fs; skipping frame", timestamp)
            return []
        detections = filter_detections(raw, opts.min_score, opts.max_objects_per_frame)
        logger.debug("Frame %.3fs: %d/%d detections kept", timestamp, len(detections), len(raw))
        return detections
