"""Request dependencies for the API routers."""

from fastapi import HTTPException, Request

from qa_pipeline.jobs.scheduler import Scheduler


def get_scheduler(request: Request) -> Scheduler:
    """Scheduler created in the app lifespan."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Job scheduler not initialized")
    return scheduler
