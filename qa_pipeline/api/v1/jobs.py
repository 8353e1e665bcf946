"""Job management API: admit QA jobs and poll their status."""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from qa_pipeline.api.deps import get_scheduler
from qa_pipeline.errors import AdmissionError
from qa_pipeline.jobs.models import JobStatus
from qa_pipeline.jobs.scheduler import Scheduler

router = APIRouter()


class JobSubmitRequest(BaseModel):
    """Loose shape so that missing fields surface as AdmissionError (400)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    article_id: str = ""
    product_name: str = ""
    references: List[str] = []
    sheet_id: Optional[str] = None
    row_index: Optional[int] = None


@router.post("/jobs")
async def submit_job(
    request: JobSubmitRequest,
    scheduler: Scheduler = Depends(get_scheduler),
):
    """Admit a QA job, or return the one already running for the article."""
    try:
        job = await scheduler.admit(request.model_dump())
    except AdmissionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "message": "Job added to queue. Poll GET /api/v1/jobs/{id} for status.",
        "job": {
            "id": job.id,
            "article_id": job.article_id,
            "status": job.status.value,
            "created_at": job.created_at.isoformat(),
        },
        "queue_status": scheduler.snapshot().model_dump(),
    }


@router.get("/jobs")
async def list_jobs(
    job_id: Optional[str] = None,
    article_id: Optional[str] = None,
    status: Optional[JobStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    scheduler: Scheduler = Depends(get_scheduler),
):
    """Look up one job by id or article, or list jobs newest first."""
    if job_id:
        job = await scheduler.get_status(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
        return {"job": job.model_dump(mode="json")}

    if article_id:
        job = await scheduler.get_by_article_id(article_id)
        if job is None:
            raise HTTPException(
                status_code=404, detail=f"No job found for article {article_id}"
            )
        return {"job": job.model_dump(mode="json")}

    jobs = await scheduler.list_jobs(status=status, limit=limit)
    return {
        "queue_status": scheduler.snapshot().model_dump(),
        "jobs": [j.model_dump(mode="json") for j in jobs],
        "total_jobs": len(jobs),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, scheduler: Scheduler = Depends(get_scheduler)):
    job = await scheduler.get_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"job": job.model_dump(mode="json")}
