"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subjectscan.api.routes import config, health, scan


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Ensures a running scan job is cancelled when the app shuts down.
    """

    from subjectscan.api.services.state import stop_job

    yield
    stop_job()


app = FastAPI(title="SubjectScan API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(config.router)
app.include_router(scan.router)


if __name__ == "__main__":
    uvicorn.run("subjectscan.api.main:app", host="0.0.0.0", port=8000, reload=True)
