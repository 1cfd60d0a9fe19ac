"""Liveness endpoint for the scan service."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Report that the API process is up; does not touch the detector or any job."""

    return {"status": "ok"}
