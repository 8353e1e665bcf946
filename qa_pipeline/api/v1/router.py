"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from qa_pipeline.api.v1.health import router as health_router
from qa_pipeline.api.v1.jobs import router as jobs_router
from qa_pipeline.api.v1.reports import router as reports_router
from qa_pipeline.api.v1.status_change import router as status_change_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(status_change_router, tags=["status-change"])
v1_router.include_router(reports_router, tags=["reports"])
