"""Error kinds surfaced by the scanner and its adapters.

Setup and startup errors reach the caller; per-frame adapter errors
(`SeekTimeoutError`, `DetectionError`) are caught inside the scan loop.
"""

from __future__ import annotations


class ScanError(RuntimeError):
    """Base class for scanner errors."""


class NotInitializedError(ScanError):
    """A scan was requested before a video source and detector were bound."""


class ConcurrentScanError(ScanError):
    """A scan was requested while another one is running on the same scanner."""


class AcquisitionTimeoutError(ScanError):
    """The video source never became ready within the startup timeout."""


class SeekTimeoutError(ScanError):
    """A single seek did not complete within its bounded wait."""

    def __init__(self, timestamp: float, timeout: float) -> None:
        super().__init__(f"Seek to {timestamp:.3f}s timed out after {timeout:.3f}s")
        self.timestamp = timestamp
        self.timeout = timeout


class DetectionError(ScanError):
    """The detector failed on one frame."""
