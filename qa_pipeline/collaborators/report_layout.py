"""QA report layout: a summary page plus one page per view, saved as PDF."""

import asyncio
import io
import logging
import textwrap
from datetime import datetime
from typing import List, Optional, Tuple

import httpx
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from qa_pipeline.errors import ReportError
from qa_pipeline.jobs.models import AnalysisResult, JobRecord, Severity, Verdict, utcnow

logger = logging.getLogger(__name__)

# A4 at 150 dpi
PAGE_SIZE = (1240, 1754)
PAGE_DPI = 150
MARGIN = 90

_SEVERITY_COLORS = {
    Severity.HIGH: (200, 30, 30),
    Severity.MEDIUM: (220, 130, 0),
    Severity.LOW: (60, 120, 60),
}


class ReportLayout:
    """Fetches report images and composes the PDF off the event loop."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            follow_redirects=True,
        )

    async def fetch_images(self, urls: List[str]) -> List[bytes]:
        images = []
        for url in urls:
            try:
                response = await self._client.get(url)
            except httpx.HTTPError as e:
                raise ReportError(f"Could not download {url}: {e}") from e
            if not response.is_success:
                raise ReportError(f"Could not download {url}: HTTP {response.status_code}")
            images.append(response.content)
        return images

    async def render(
        self, job: JobRecord, analysis: AnalysisResult, images: List[bytes]
    ) -> bytes:
        # Pillow work is CPU bound, keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, compose_report_pdf, job, analysis, images
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def compose_report_pdf(
    job: JobRecord,
    analysis: AnalysisResult,
    images: List[bytes],
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Lay out the report and return the PDF bytes."""
    pages = [_summary_page(job, analysis, generated_at or utcnow())]

    for i, data in enumerate(images):
        try:
            view = Image.open(io.BytesIO(data)).convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Skipping unreadable report image %d: %s", i, e)
            continue
        pages.append(_image_page(view, f"View {i + 1} of {len(images)}", job.article_id))

    buffer = io.BytesIO()
    pages[0].save(
        buffer,
        format="PDF",
        save_all=True,
        append_images=pages[1:],
        resolution=PAGE_DPI,
    )
    return buffer.getvalue()


def _summary_page(
    job: JobRecord, analysis: AnalysisResult, generated_at: datetime
) -> Image.Image:
    page = Image.new("RGB", PAGE_SIZE, (255, 255, 255))
    draw = ImageDraw.Draw(page)
    title_font = _get_font(48)
    heading_font = _get_font(30)
    body_font = _get_font(24)

    y = MARGIN
    draw.text((MARGIN, y), "3D Model QA Report", fill=(20, 20, 20), font=title_font)
    y += 80
    for line in (
        f"Article ID: {job.article_id}",
        f"Product: {job.product_name}",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}",
    ):
        draw.text((MARGIN, y), line, fill=(60, 60, 60), font=body_font)
        y += 36

    y += 24
    approved = analysis.verdict == Verdict.APPROVED
    verdict_color = (30, 140, 60) if approved else (200, 30, 30)
    draw.text((MARGIN, y), f"Status: {analysis.verdict.value}", fill=verdict_color, font=heading_font)
    y += 56

    if analysis.scores is not None:
        s = analysis.scores
        draw.text((MARGIN, y), "Similarity scores", fill=(20, 20, 20), font=heading_font)
        y += 44
        for label, value in (
            ("Silhouette", s.silhouette),
            ("Proportion", s.proportion),
            ("Color / material", s.color_material),
            ("Overall", s.overall),
        ):
            draw.text((MARGIN, y), f"{label}: {value}%", fill=(60, 60, 60), font=body_font)
            y += 34
        y += 16

    if job.model_stats is not None:
        m = job.model_stats
        draw.text((MARGIN, y), "Model statistics", fill=(20, 20, 20), font=heading_font)
        y += 44
        for line in (
            f"Triangles: {m.triangles:,}   Vertices: {m.vertices:,}",
            f"Meshes: {m.mesh_count}   Materials: {m.material_count}",
            f"Double-sided materials: {m.double_sided_count}   File size: {m.file_size_mb:.2f}MB",
        ):
            draw.text((MARGIN, y), line, fill=(60, 60, 60), font=body_font)
            y += 34
        y += 16

    draw.text((MARGIN, y), "Summary", fill=(20, 20, 20), font=heading_font)
    y += 44
    y = _draw_wrapped(draw, analysis.summary, (MARGIN, y), body_font, (60, 60, 60))

    if analysis.differences:
        y += 24
        draw.text((MARGIN, y), f"Differences ({len(analysis.differences)})", fill=(20, 20, 20), font=heading_font)
        y += 44
        for d in analysis.differences:
            if y > PAGE_SIZE[1] - MARGIN * 2:
                draw.text((MARGIN, y), "...", fill=(60, 60, 60), font=body_font)
                break
            header = (
                f"[{d.severity.value.upper()}] view {d.render_index + 1} "
                f"vs reference {d.reference_index + 1}"
            )
            draw.text((MARGIN, y), header, fill=_SEVERITY_COLORS[d.severity], font=body_font)
            y += 34
            for issue in d.issues:
                y = _draw_wrapped(draw, f"- {issue}", (MARGIN + 30, y), body_font, (60, 60, 60))
    return page


def _image_page(view: Image.Image, caption: str, article_id: str) -> Image.Image:
    page = Image.new("RGB", PAGE_SIZE, (255, 255, 255))
    draw = ImageDraw.Draw(page)
    draw.text((MARGIN, MARGIN), caption, fill=(20, 20, 20), font=_get_font(30))

    box_w = PAGE_SIZE[0] - 2 * MARGIN
    box_h = PAGE_SIZE[1] - 3 * MARGIN - 40
    scale = min(box_w / view.width, box_h / view.height)
    size = (max(1, int(view.width * scale)), max(1, int(view.height * scale)))
    view = view.resize(size, Image.LANCZOS)
    x = MARGIN + (box_w - size[0]) // 2
    page.paste(view, (x, MARGIN + 60))

    draw.text(
        (MARGIN, PAGE_SIZE[1] - MARGIN),
        f"Article {article_id}",
        fill=(120, 120, 120),
        font=_get_font(20),
    )
    return page


def _draw_wrapped(
    draw: ImageDraw.ImageDraw,
    text: str,
    origin: Tuple[int, int],
    font,
    fill: Tuple[int, int, int],
    width: int = 80,
) -> int:
    x, y = origin
    for line in textwrap.wrap(text, width=width) or [""]:
        draw.text((x, y), line, fill=fill, font=font)
        y += 32
    return y


def _get_font(size: int):
    """Try to load a TrueType font, falling back to Pillow's default."""
    try:
        return ImageFont.truetype("arial.ttf", size)
    except OSError:
        try:
            return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size)
        except OSError:
            return ImageFont.load_default()
