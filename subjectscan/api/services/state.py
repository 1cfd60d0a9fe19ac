"""In-process state for settings, the detector and the current scan job.

FastAPI routes use this module to access (and hot-reload) the singleton
settings and to start/cancel the single active `ScanJob`.
"""

from __future__ import annotations

from threading import RLock
from typing import Any

from subjectscan.api.services.jobs import ScanJob
from subjectscan.core.config.settings import (
    ScanSettings,
    load_settings,
    scan_options_from_settings,
    settings_to_dict,
)
from subjectscan.core.detectors.base import Detector
from subjectscan.core.detectors.yolo import YoloObjectDetector
from subjectscan.core.errors import ConcurrentScanError

_settings: ScanSettings | None = None
_detector: Detector | None = None
_job: ScanJob | None = None
_lock = RLock()


def get_settings() -> ScanSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def reload_settings(data: dict[str, Any] | None = None) -> ScanSettings:
    """Reload settings and drop the cached detector.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings, _detector
    with _lock:
        base = load_settings()
        if data:
            _settings = ScanSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        _detector = None
    return _settings


def get_detector() -> Detector:
    """Return the shared detector so the model is loaded once across jobs."""

    global _detector
    with _lock:
        if _detector is None:
            settings = get_settings()
            _detector = YoloObjectDetector(
                settings.model_name,
                conf=settings.confidence,
                classes=settings.classes,
                device=settings.device,
            )
    return _detector


def get_job() -> ScanJob | None:
    with _lock:
        return _job


def start_job(
    video_path: str,
    patch: dict[str, Any] | None = None,
    segments: list[tuple[float, float]] | None = None,
) -> ScanJob:
    """Start a new scan job; reject it while another one is running.

    Raises:
        ConcurrentScanError: A job is still running.
        ValueError: The patched settings are invalid.
    """

    global _job
    with _lock:
        if _job is not None and not _job.is_finished():
            raise ConcurrentScanError("A scan is already in progress")
        settings = get_settings()
        if patch:
            settings = ScanSettings(**{**settings_to_dict(settings), **patch})
        options = scan_options_from_settings(settings, segments)
        _job = ScanJob(video_path, options, get_detector())
        _job.start()
        return _job


def cancel_job() -> ScanJob | None:
    with _lock:
        job = _job
    if job is not None:
        job.cancel()
    return job


def stop_job() -> None:
    """Cancel and discard the current job (if present)."""

    global _job
    with _lock:
        job, _job = _job, None
    if job is not None:
        job.cancel()
        job.join(timeout=2)
