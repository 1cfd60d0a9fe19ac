"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from subjectscan.core.types import FocusRegion, ScanProgress, Subject, validate_segments


class PositionSchema(BaseModel):
    time: float
    bbox: tuple[float, float, float, float]
    score: float


class SubjectSchema(BaseModel):
    """Tracked subject payload."""

    id: str
    label: str
    positions: list[PositionSchema]
    first_seen: float
    last_seen: float
    score: float

    @classmethod
    def from_subject(cls, subject: Subject) -> SubjectSchema:
        return cls(
            id=subject.id,
            label=subject.label,
            positions=[
                PositionSchema(time=p.time, bbox=p.bbox, score=p.score) for p in subject.positions
            ],
            first_seen=subject.first_seen,
            last_seen=subject.last_seen,
            score=subject.score,
        )


class FocusRegionSchema(BaseModel):
    subject_id: str
    time_start: float
    time_end: float
    center_x_percent: float
    center_y_percent: float
    width_percent: float
    height_percent: float
    label: str

    @classmethod
    def from_region(cls, region: FocusRegion) -> FocusRegionSchema:
        return cls(**vars(region))


class ProgressSchema(BaseModel):
    current_frame: int
    total_frames: int
    elapsed_seconds: float
    estimated_remaining_seconds: float
    percent_complete: float

    @classmethod
    def from_progress(cls, progress: ScanProgress) -> ProgressSchema:
        return cls(**vars(progress))


class ScanRequestSchema(BaseModel):
    """Request body for starting a scan."""

    video_path: str
    preset: str | None = None
    segments: list[tuple[float, float]] | None = None

    @field_validator("segments")
    @classmethod
    def _validate_segments(
        cls, v: list[tuple[float, float]] | None
    ) -> list[tuple[float, float]] | None:
        if v is None:
            return v
        validate_segments(v)
        return v


class ScanStatusSchema(BaseModel):
    state: str
    video_path: str | None = None
    progress: ProgressSchema | None = None
    error: str | None = None


class ScanResultSchema(BaseModel):
    state: str
    frame_size: tuple[int, int]
    subjects: list[SubjectSchema]
    focus_regions: list[FocusRegionSchema]


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    model_config = ConfigDict(protected_namespaces=())

    video_path: str | None = None
    model_name: str
    confidence: float = Field(gt=0.0, le=1.0)
    classes: list[str] | None = None
    device: str = "cpu"
    interval: float = Field(gt=0.0)
    min_score: float = Field(ge=0.0, le=1.0)
    similarity_threshold: float = Field(ge=0.0, le=1.0)
    min_detections: int = Field(ge=1)
    max_samples: int = Field(ge=0)
    max_objects_per_frame: int = Field(ge=1)
    max_time_gap_for_match: float = Field(ge=0.0)
    first_seek_timeout: float = Field(default=2.0, ge=0.0)
    seek_timeout: float = Field(default=0.3, ge=0.0)
    ready_timeout: float = Field(default=10.0, ge=0.0)
    frame_yield_seconds: float = Field(default=0.01, ge=0.0)
