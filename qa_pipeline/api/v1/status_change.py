"""Spreadsheet status-change webhook.

The sheet's Apps Script posts here whenever an article's status column
changes. A "delivered" status is the signal that a model is ready for QA.
"""

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from qa_pipeline.api.deps import get_scheduler
from qa_pipeline.errors import AdmissionError
from qa_pipeline.jobs.scheduler import Scheduler

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_STORED_CHANGES = 100

_QA_TRIGGER_STATUSES = {"delivered by artist", "deliver"}


class StatusChangeEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    article_id: str = "Unknown"
    product_name: str = "Unknown Product"
    status: str = "Unknown Status"
    old_status: str = "Unknown"
    references: List[str] = Field(default_factory=list)
    sheet_id: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    timestamp: Optional[datetime] = None
    trigger_type: str = "unknown"


def should_start_qa(status: str) -> bool:
    normalized = status.strip().lower()
    return normalized in _QA_TRIGGER_STATUSES or "deliver" in normalized


def get_change_log(request: Request) -> Deque[dict]:
    log = getattr(request.app.state, "status_changes", None)
    if log is None:
        log = deque(maxlen=MAX_STORED_CHANGES)
        request.app.state.status_changes = log
    return log


@router.post("/status-change")
async def receive_status_change(
    event: StatusChangeEvent,
    scheduler: Scheduler = Depends(get_scheduler),
    changes: Deque[dict] = Depends(get_change_log),
):
    """Record a status change and admit a QA job when the model was delivered."""
    timestamp = event.timestamp or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    change = {
        "id": uuid.uuid4().hex,
        **event.model_dump(mode="json"),
        "timestamp": timestamp.isoformat(),
        "should_start_qa": should_start_qa(event.status),
    }
    changes.appendleft(change)

    logger.info(
        "Status change for article %s: %s -> %s (sheet %s, row %s, %d references)",
        event.article_id, event.old_status, event.status,
        event.sheet_name, event.row_index, len(event.references),
    )

    queue_job = None
    admission_error = None
    if change["should_start_qa"]:
        try:
            job = await scheduler.admit({
                "article_id": event.article_id,
                "product_name": event.product_name,
                "references": event.references,
                "sheet_id": event.sheet_id,
                "row_index": event.row_index,
            })
        except AdmissionError as e:
            # The change itself is still recorded
            logger.warning("Could not admit QA job for %s: %s", event.article_id, e)
            admission_error = str(e)
        else:
            queue_job = {
                "id": job.id,
                "status": job.status.value,
                "created_at": job.created_at.isoformat(),
            }

    return {
        "status": "success",
        "message": f"Status change logged for article {event.article_id}",
        "change_id": change["id"],
        "article_id": event.article_id,
        "received_status": event.status,
        "reference_count": len(event.references),
        "should_start_qa": change["should_start_qa"],
        "queue_job": queue_job,
        "admission_error": admission_error,
        "queue_status": scheduler.snapshot().model_dump(),
    }


@router.get("/status-change")
async def recent_status_changes(
    limit: int = Query(20, ge=1, le=MAX_STORED_CHANGES),
    since: Optional[datetime] = None,
    scheduler: Scheduler = Depends(get_scheduler),
    changes: Deque[dict] = Depends(get_change_log),
):
    """Recent status changes, newest first."""
    recent = list(changes)
    if since is not None:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        recent = [c for c in recent if datetime.fromisoformat(c["timestamp"]) > since]

    return {
        "recent_changes_count": len(changes),
        "recent_changes": recent[:limit],
        "has_more": len(recent) > limit,
        "queue_status": scheduler.snapshot().model_dump(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
