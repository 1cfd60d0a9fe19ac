"""Scanner configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `SUBJECTSCAN_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subjectscan.core.types import ScanOptions


class ScanSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `SUBJECTSCAN_` env overrides."""

    video_path: str | None = None
    # Nano by default: scans are latency-bound and the scanner samples few frames.
    model_name: str = Field("yolo11n.pt")
    # Ultralytics-side confidence floor; min_score below filters again per frame.
    confidence: float = 0.25
    classes: list[str] | None = Field(default=None, description="class-name allow-list")
    device: str = "cpu"

    interval: float = 1.0
    min_score: float = 0.35
    similarity_threshold: float = 0.5
    min_detections: int = 1
    max_samples: int = 15
    max_objects_per_frame: int = 3
    max_time_gap_for_match: float = 5.0

    first_seek_timeout: float = 2.0
    seek_timeout: float = 0.3
    ready_timeout: float = 10.0
    frame_yield_seconds: float = 0.01

    model_config = SettingsConfigDict(
        env_prefix="SUBJECTSCAN_", validate_assignment=True, protected_namespaces=()
    )

    @field_validator("confidence")
    @classmethod
    def _validate_confidence(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("confidence must be in (0, 1]")
        return v

    @field_validator("interval")
    @classmethod
    def _validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval must be > 0")
        return float(v)

    @field_validator("min_score", "similarity_threshold")
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("value must be in [0, 1]")
        return float(v)

    @field_validator("min_detections", "max_objects_per_frame")
    @classmethod
    def _validate_at_least_one(cls, v: int) -> int:
        if int(v) < 1:
            raise ValueError("value must be >= 1")
        return int(v)

    @field_validator("max_samples")
    @classmethod
    def _validate_max_samples(cls, v: int) -> int:
        # 0 disables the cap.
        if int(v) < 0:
            raise ValueError("max_samples must be >= 0")
        return int(v)

    @field_validator(
        "max_time_gap_for_match",
        "first_seek_timeout",
        "seek_timeout",
        "ready_timeout",
        "frame_yield_seconds",
    )
    @classmethod
    def _validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must be >= 0")
        return float(v)


def settings_to_dict(settings: ScanSettings) -> dict[str, Any]:
    return settings.model_dump()


def scan_options_from_settings(
    settings: ScanSettings, segments: list[tuple[float, float]] | None = None
) -> ScanOptions:
    """Build the per-scan `ScanOptions` from settings (plus optional segments)."""

    return ScanOptions(
        interval=settings.interval,
        min_score=settings.min_score,
        similarity_threshold=settings.similarity_threshold,
        min_detections=settings.min_detections,
        segments=tuple(segments or ()),
        max_samples=settings.max_samples,
        max_objects_per_frame=settings.max_objects_per_frame,
        max_time_gap_for_match=settings.max_time_gap_for_match,
        first_seek_timeout=settings.first_seek_timeout,
        seek_timeout=settings.seek_timeout,
        ready_timeout=settings.ready_timeout,
        frame_yield_seconds=settings.frame_yield_seconds,
    )


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/scan.config.yml)."""

    return Path(os.getenv("SUBJECTSCAN_CONFIG", "config/scan.config.yml"))


def load_settings() -> ScanSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = ScanSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return ScanSettings(**merged)
