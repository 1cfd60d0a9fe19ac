"""Scan job endpoints."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from subjectscan.api.schemas.models import (
    FocusRegionSchema,
    ProgressSchema,
    ScanRequestSchema,
    ScanResultSchema,
    ScanStatusSchema,
    SubjectSchema,
)
from subjectscan.api.services.jobs import ScanJob
from subjectscan.api.services.state import cancel_job, get_job, start_job
from subjectscan.core.config.presets import preset_patch
from subjectscan.core.errors import ConcurrentScanError

router = APIRouter(prefix="/scan", tags=["scan"])

logger = logging.getLogger(__name__)


def _status(job: ScanJob | None) -> ScanStatusSchema:
    if job is None:
        return ScanStatusSchema(state="idle")
    state, error = job.status()
    progress = job.latest_progress()
    return ScanStatusSchema(
        state=state,
        video_path=job.video_path,
        progress=ProgressSchema.from_progress(progress) if progress is not None else None,
        error=error,
    )


@router.post("", response_model=ScanStatusSchema, status_code=202)
def start_scan(req: ScanRequestSchema) -> ScanStatusSchema:
    """Start scanning a local video file in the background."""

    path = Path(req.video_path)
    if not path.exists() or not path.is_file():
        raise HTTPException(status_code=404, detail="Video not found")

    patch = None
    if req.preset:
        try:
            patch = preset_patch(req.preset)
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown preset") from None

    try:
        job = start_job(str(path), patch=patch, segments=req.segments)
    except ConcurrentScanError:
        raise HTTPException(status_code=409, detail="A scan is already in progress") from None
    except (ValidationError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    return _status(job)


@router.get("/status", response_model=ScanStatusSchema)
def scan_status() -> ScanStatusSchema:
    """Return the state and latest progress of the current scan job."""

    return _status(get_job())


@router.post("/cancel", response_model=ScanStatusSchema)
def cancel_scan() -> ScanStatusSchema:
    """Request cancellation; the job stops before its next frame."""

    return _status(cancel_job())


@router.get("/result", response_model=ScanResultSchema)
def scan_result() -> ScanResultSchema:
    """Return subjects and focus regions of the last finished scan."""

    job = get_job()
    if job is None:
        raise HTTPException(status_code=404, detail="No scan has been started")
    if not job.is_finished():
        raise HTTPException(status_code=409, detail="Scan still running")
    return ScanResultSchema(
        state=job.status()[0],
        frame_size=job.frame_size,
        subjects=[SubjectSchema.from_subject(s) for s in job.subjects()],
        focus_regions=[FocusRegionSchema.from_region(r) for r in job.focus_regions()],
    )


@router.websocket("/progress")
async def stream_progress(ws: WebSocket):
    """Stream one progress event per processed frame, then the final status."""

    await ws.accept()
    job = get_job()
    if job is None:
        await ws.send_json({"type": "status", **_status(None).model_dump()})
        await ws.close()
        return
    try:
        async for progress in job.progress_stream():
            await ws.send_json({"type": "progress", **ProgressSchema.from_progress(progress).model_dump()})
        await ws.send_json({"type": "status", **_status(job).model_dump()})
        await ws.close()
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Progress websocket crashed")
        try:
            await ws.close(code=1011)
        except RuntimeError:
            pass
