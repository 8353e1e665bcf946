"""Publishes QA results to the tracking spreadsheet via its Apps Script web app."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from qa_pipeline.errors import PublishError
from qa_pipeline.jobs.models import JobRecord, Verdict


class Publisher(ABC):
    @abstractmethod
    async def update(self, job: JobRecord) -> Dict[str, Any]:
        """Write the job's outcome to its sheet row. Returns the service ack."""
        ...


def qa_message(job: JobRecord) -> str:
    """Text written to the QA column of the article's row."""
    verdict = job.analysis.verdict if job.analysis else None
    if job.report_url:
        label = "✅ APPROVED" if verdict == Verdict.APPROVED else "❌ NEEDS REVIEW"
        return f"{label} - QA Report: {job.report_url}"
    if verdict is not None:
        return f"QA Completed: {verdict.value}"
    completed = job.completed_at.strftime("%Y-%m-%d %H:%M") if job.completed_at else "unknown"
    return f"QA Processed - {completed}"


class SheetPublisher(Publisher):
    def __init__(
        self,
        web_app_url: Optional[str],
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._web_app_url = web_app_url
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            follow_redirects=True,
        )

    async def update(self, job: JobRecord) -> Dict[str, Any]:
        if not self._web_app_url:
            raise PublishError("SHEETS_WEB_APP_URL is not configured")
        if not job.has_publish_target:
            raise PublishError(f"Job {job.id} has no sheet row to update")

        payload = {
            "action": "updateQAColumn",
            "sheetId": job.sheet_id,
            "rowIndex": job.row_index,
            "message": qa_message(job),
            "articleId": job.article_id,
        }
        try:
            response = await self._client.post(self._web_app_url, json=payload)
        except httpx.HTTPError as e:
            raise PublishError(f"Sheet web app unreachable: {e}") from e

        if not response.is_success:
            raise PublishError(
                f"Sheet update failed: {response.status_code} - {response.text[:200]}"
            )
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()
