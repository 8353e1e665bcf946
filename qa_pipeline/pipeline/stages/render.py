"""Render stage: capture the model from a fixed set of camera angles."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from qa_pipeline.collaborators.render_service import RenderService
from qa_pipeline.jobs.models import JobRecord, ModelStats
from qa_pipeline.pipeline.outcomes import Fail, Outcome, Success
from qa_pipeline.pipeline.stages.base import Stage, describe_error

logger = logging.getLogger(__name__)

DEFAULT_ANGLES = ("front", "back", "left", "right", "isometric")


@dataclass(frozen=True)
class RenderOutput:
    images: List[str]
    model_stats: Optional[ModelStats] = None


class RenderStage(Stage):
    """Required stage. Fails only when no angle could be captured."""

    name = "render"

    def __init__(self, service: RenderService, angles: Sequence[str] = DEFAULT_ANGLES):
        self._service = service
        self._angles = tuple(angles)

    async def run(self, job: JobRecord) -> Outcome:
        job.log(f"Starting image capture ({len(self._angles)} angles)...")

        model_stats = None
        try:
            model_stats = await self._service.model_stats(job.article_id)
            job.log(
                f"Model stats: {model_stats.triangles} triangles, "
                f"{model_stats.mesh_count} meshes, {model_stats.material_count} materials, "
                f"{model_stats.file_size_mb:.2f}MB"
            )
        except Exception as e:
            job.log(f"Failed to extract model stats: {describe_error(e)}")
            logger.warning("Model stats unavailable for %s: %s", job.article_id, e)

        images: List[str] = []
        for angle in self._angles:
            try:
                url = await self._service.capture(job.article_id, angle)
            except Exception as e:
                # A missing angle is tolerated; the next one may still render
                job.log(f"Failed to capture {angle} view: {describe_error(e)}")
                logger.warning("Capture of %s view failed for %s: %s", angle, job.article_id, e)
                continue
            images.append(url)
            job.log(f"Captured {angle} view: {url}")

        if not images:
            return Fail(f"No images were captured for article {job.article_id}")

        job.log(f"Image capture completed: {len(images)} images")
        return Success(RenderOutput(images=images, model_stats=model_stats))
