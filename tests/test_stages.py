"""Tests for the individual pipeline stages."""

import pytest

from fakes import (
    ANGLES,
    FakeAnalyzer,
    FakeAnnotator,
    FakeArtifacts,
    FakeLayout,
    FakePublisher,
    FakeRenderService,
    make_analysis,
)
from qa_pipeline.errors import AnalysisError, RenderServiceError
from qa_pipeline.jobs.models import JobRecord
from qa_pipeline.pipeline.outcomes import Degrade, Fail, Success
from qa_pipeline.pipeline.stages.analyze import AnalyzeStage
from qa_pipeline.pipeline.stages.base import describe_error
from qa_pipeline.pipeline.stages.publish import PublishStage
from qa_pipeline.pipeline.stages.render import RenderStage
from qa_pipeline.pipeline.stages.report import ReportStage

pytestmark = pytest.mark.asyncio


def _job(**overrides) -> JobRecord:
    data = {
        "article_id": "A1",
        "product_name": "Chair",
        "references": ["https://ref.test/ref1.jpg"],
        "images": [f"https://cdn.test/A1/{a}.png" for a in ANGLES],
    }
    data.update(overrides)
    return JobRecord(**data)


class TestRenderStage:
    async def test_captures_every_angle_in_order(self):
        service = FakeRenderService()
        outcome = await RenderStage(service, ANGLES).run(_job(images=[]))

        assert isinstance(outcome, Success)
        assert outcome.value.images == [f"https://cdn.test/A1/{a}.png" for a in ANGLES]
        assert outcome.value.model_stats.mesh_count == 2
        assert [angle for _, angle in service.capture_calls] == list(ANGLES)

    async def test_stats_failure_is_tolerated(self):
        job = _job(images=[])
        service = FakeRenderService(stats_error=RenderServiceError("stats endpoint down"))

        outcome = await RenderStage(service, ANGLES).run(job)

        assert isinstance(outcome, Success)
        assert outcome.value.model_stats is None
        assert len(outcome.value.images) == 5
        assert any(line.startswith("Failed to extract model stats") for line in job.processing_logs)

    async def test_no_images_is_fatal(self):
        job = _job(images=[])
        outcome = await RenderStage(FakeRenderService(fail_all=True), ANGLES).run(job)

        assert isinstance(outcome, Fail)
        assert outcome.error == "No images were captured for article A1"
        assert job.status.value == "pending"


class TestAnalyzeStage:
    async def test_success_logs_verdict_and_scores(self):
        job = _job()
        analyzer = FakeAnalyzer()

        outcome = await AnalyzeStage(analyzer).run(job)

        assert isinstance(outcome, Success)
        assert analyzer.calls[0]["article_id"] == "A1"
        assert "Analysis verdict: Approved" in job.processing_logs
        assert "Found 1 differences" in job.processing_logs
        assert any("overall: 91%" in line for line in job.processing_logs)

    async def test_analyzer_error_degrades(self):
        outcome = await AnalyzeStage(FakeAnalyzer(error=AnalysisError("bad json"))).run(_job())

        assert isinstance(outcome, Degrade)
        assert outcome.reason == "analysis failed: AnalysisError: bad json"


class TestReportStage:
    async def test_saves_pdf_under_article_and_job_prefix(self):
        job = _job(analysis=make_analysis())
        artifacts = FakeArtifacts()

        outcome = await ReportStage(FakeLayout(), artifacts, FakeAnnotator()).run(job)

        filename = f"qa-report-A1-{job.id[:8]}.pdf"
        assert isinstance(outcome, Success)
        assert outcome.value == f"https://reports.test/{filename}"
        assert artifacts.saved == {filename: b"%PDF-fake"}

    async def test_without_annotator_uses_source_images(self):
        job = _job(analysis=make_analysis())
        layout = FakeLayout()

        outcome = await ReportStage(layout, FakeArtifacts()).run(job)

        assert isinstance(outcome, Success)
        assert layout.fetched == [job.images]
        assert "Annotation service not configured, using source images" in job.processing_logs

    async def test_empty_annotation_uses_source_images(self):
        job = _job(analysis=make_analysis())
        layout = FakeLayout()

        await ReportStage(layout, FakeArtifacts(), FakeAnnotator(images=[])).run(job)

        assert layout.fetched == [job.images]
        assert "Annotation returned no images, using source images" in job.processing_logs

    async def test_missing_analysis_degrades(self):
        outcome = await ReportStage(FakeLayout(), FakeArtifacts()).run(_job())
        assert isinstance(outcome, Degrade)


class TestPublishStage:
    async def test_success(self):
        job = _job(sheet_id="s", row_index=3, report_url="https://reports.test/r.pdf")
        publisher = FakePublisher()

        outcome = await PublishStage(publisher).run(job)

        assert isinstance(outcome, Success)
        assert publisher.published == [job.id]
        assert job.processing_logs[-1] == "Sheet updated successfully"

    async def test_failure_degrades(self):
        job = _job(sheet_id="s", row_index=3)
        outcome = await PublishStage(FakePublisher(error=RuntimeError("503"))).run(job)

        assert isinstance(outcome, Degrade)
        assert outcome.reason == "sheet update failed: RuntimeError: 503"


async def test_describe_error_without_message():
    assert describe_error(TimeoutError()) == "TimeoutError"
    assert describe_error(ValueError("bad")) == "ValueError: bad"
