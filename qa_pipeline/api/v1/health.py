"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health and queue snapshot."""
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy" if scheduler is not None else "starting",
        "queue_status": scheduler.snapshot().model_dump() if scheduler else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
