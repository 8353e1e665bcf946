"""Report stage: lay out the QA report and persist it as an artifact."""

import logging
from typing import List, Optional

from qa_pipeline.collaborators.annotator import Annotator
from qa_pipeline.collaborators.report_layout import ReportLayout
from qa_pipeline.jobs.models import AnalysisResult, JobRecord
from qa_pipeline.pipeline.outcomes import Degrade, Outcome, Success
from qa_pipeline.pipeline.stages.base import Stage, describe_error
from qa_pipeline.storage.artifacts import ArtifactStore

logger = logging.getLogger(__name__)


class ReportStage(Stage):
    """Builds a PDF from annotated images, falling back to the raw renders."""

    name = "report"

    def __init__(
        self,
        layout: ReportLayout,
        artifacts: ArtifactStore,
        annotator: Optional[Annotator] = None,
    ):
        self._layout = layout
        self._artifacts = artifacts
        self._annotator = annotator

    async def run(self, job: JobRecord) -> Outcome:
        analysis = job.analysis
        if analysis is None:
            return Degrade("no analysis to report on")

        job.log(f"Starting report generation for article {job.article_id}")
        try:
            images = await self._report_images(job, analysis)
            pdf_bytes = await self._layout.render(job, analysis, images)
            job.log(f"Report laid out: {len(images)} images, {len(pdf_bytes)} bytes")
            filename = f"qa-report-{job.article_id}-{job.id[:8]}.pdf"
            url = await self._artifacts.save(filename, pdf_bytes, "application/pdf")
        except Exception as e:
            return Degrade(f"report generation failed: {describe_error(e)}")

        job.log(f"Report generated: {url}")
        return Success(url)

    async def _report_images(self, job: JobRecord, analysis: AnalysisResult) -> List[bytes]:
        if not analysis.differences:
            job.log("No differences to annotate, using source images")
        elif self._annotator is None:
            job.log("Annotation service not configured, using source images")
        else:
            try:
                annotated = await self._annotator.annotate(
                    job.images, job.references, analysis.differences
                )
            except Exception as e:
                job.log(f"Annotation failed, using source images: {describe_error(e)}")
                logger.warning("Annotation failed for job %s: %s", job.id, e)
            else:
                if annotated:
                    job.log(f"Annotated {len(annotated)} images")
                    return annotated
                job.log("Annotation returned no images, using source images")

        return await self._layout.fetch_images(job.images)
