"""3D model QA pipeline service - FastAPI application."""

import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from qa_pipeline.api.v1.health import router as health_root_router
from qa_pipeline.api.v1.router import v1_router
from qa_pipeline.api.v1.status_change import MAX_STORED_CHANGES
from qa_pipeline.collaborators.annotator import HttpAnnotator
from qa_pipeline.collaborators.render_service import HttpRenderService
from qa_pipeline.collaborators.report_layout import ReportLayout
from qa_pipeline.collaborators.sheets import SheetPublisher
from qa_pipeline.collaborators.vision import OpenAIVisionAnalyzer
from qa_pipeline.config import Settings, settings
from qa_pipeline.jobs.retry import RetryPolicy
from qa_pipeline.jobs.scheduler import Scheduler
from qa_pipeline.jobs.store import JobStore
from qa_pipeline.pipeline.orchestrator import PipelineOrchestrator
from qa_pipeline.pipeline.stages.analyze import AnalyzeStage
from qa_pipeline.pipeline.stages.publish import PublishStage
from qa_pipeline.pipeline.stages.render import RenderStage
from qa_pipeline.pipeline.stages.report import ReportStage
from qa_pipeline.storage.artifacts import (
    ArtifactStore,
    LocalArtifactStore,
    build_artifact_store,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the lifespan creates and later tears down."""
    scheduler: Scheduler
    artifacts: Optional[ArtifactStore] = None
    clients: List[Any] = field(default_factory=list)  # objects with async aclose()


def build_services(cfg: Settings) -> Services:
    """Wire collaborators, stages, orchestrator and scheduler."""
    render_service = HttpRenderService(cfg.render_service_url, cfg.render_timeout_seconds)
    analyzer = OpenAIVisionAnalyzer(
        api_key=cfg.openai_api_key,
        model=cfg.openai_model,
        timeout_seconds=cfg.analysis_timeout_seconds,
    )
    annotator = (
        HttpAnnotator(cfg.annotator_url, cfg.annotator_timeout_seconds)
        if cfg.annotator_url else None
    )
    layout = ReportLayout(cfg.image_fetch_timeout_seconds)
    artifacts = build_artifact_store(cfg)
    publisher = SheetPublisher(cfg.sheets_web_app_url, cfg.publish_timeout_seconds)

    orchestrator = PipelineOrchestrator(
        render=RenderStage(render_service, cfg.render_angles),
        analyze=AnalyzeStage(analyzer),
        report=ReportStage(layout, artifacts, annotator),
        publish=PublishStage(publisher),
        retry_policy=RetryPolicy(backoff_seconds=cfg.retry_backoff_seconds),
    )
    scheduler = Scheduler(
        store=JobStore(max_jobs=cfg.max_jobs, max_retries=cfg.max_retries),
        orchestrator=orchestrator,
        inter_job_delay=cfg.inter_job_delay_seconds,
    )

    clients = [c for c in (render_service, annotator, layout, publisher) if c is not None]
    return Services(scheduler=scheduler, artifacts=artifacts, clients=clients)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    services_factory: Callable[[Settings], Services] = build_services,
    cfg: Settings = settings,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        configure_logging(cfg.log_level)
        logger.info("Starting QA pipeline service on port %d", cfg.port)
        logger.info("Render service: %s", cfg.render_service_url)
        logger.info("Artifact store: %s", cfg.artifact_store_mode)

        services = services_factory(cfg)
        app.state.scheduler = services.scheduler
        app.state.artifacts = services.artifacts
        app.state.status_changes = deque(maxlen=MAX_STORED_CHANGES)
        logger.info("Job scheduler ready")

        yield

        logger.info("Shutting down QA pipeline service")
        await services.scheduler.stop()
        for client in services.clients:
            await client.aclose()
        if isinstance(services.artifacts, LocalArtifactStore):
            removed = services.artifacts.cleanup_expired()
            logger.info("Removed %d expired report(s)", removed)
        app.state.scheduler = None

    app = FastAPI(
        title="3D Model QA Pipeline",
        description="Renders delivered 3D models, compares them with reference photos and reports the result",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The spreadsheet webhook and the monitor page call from other origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("qa_pipeline.main:app", host="0.0.0.0", port=settings.port)
