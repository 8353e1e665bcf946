"""Tests for PDF report composition."""

import io
import re
from datetime import datetime, timezone

import httpx
import pytest
from PIL import Image

from fakes import make_analysis
from qa_pipeline.collaborators.report_layout import ReportLayout, compose_report_pdf
from qa_pipeline.errors import ReportError
from qa_pipeline.jobs.models import JobRecord, ModelStats, Verdict

_PAGE = re.compile(rb"/Type\s*/Page(?!s)")


def _png(color=(200, 50, 50), size=(320, 240)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def _job() -> JobRecord:
    return JobRecord(
        article_id="A1",
        product_name="Chair",
        model_stats=ModelStats(mesh_count=2, material_count=3, vertices=12000, triangles=24000),
    )


def test_summary_and_one_page_per_view():
    pdf = compose_report_pdf(
        _job(),
        make_analysis(Verdict.NOT_APPROVED),
        [_png(), _png((20, 90, 200), (240, 480))],
        generated_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    )

    assert pdf.startswith(b"%PDF")
    assert len(_PAGE.findall(pdf)) == 3


def test_unreadable_images_are_skipped():
    pdf = compose_report_pdf(_job(), make_analysis(), [b"not an image", _png()])

    assert pdf.startswith(b"%PDF")
    assert len(_PAGE.findall(pdf)) == 2


def test_summary_only_without_images():
    analysis = make_analysis(with_differences=False).model_copy(update={"scores": None})
    job = _job()
    job.model_stats = None

    pdf = compose_report_pdf(job, analysis, [])

    assert len(_PAGE.findall(pdf)) == 1


@pytest.mark.asyncio
class TestReportLayout:
    async def test_fetches_images_in_order(self):
        def handler(request):
            return httpx.Response(200, content=request.url.path.encode())

        layout = ReportLayout(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        images = await layout.fetch_images(["https://cdn.test/front.png", "https://cdn.test/back.png"])

        assert images == [b"/front.png", b"/back.png"]
        await layout.aclose()

    async def test_failed_download_raises(self):
        layout = ReportLayout(
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        )
        with pytest.raises(ReportError, match="HTTP 404"):
            await layout.fetch_images(["https://cdn.test/front.png"])

    async def test_render_runs_off_loop(self):
        layout = ReportLayout(
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        )
        pdf = await layout.render(_job(), make_analysis(), [_png()])
        assert pdf.startswith(b"%PDF")
