"""Client for the headless render service.

The service loads the article's GLB into a model viewer, captures one
screenshot per camera angle and uploads it, returning a public URL.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from qa_pipeline.errors import RenderServiceError
from qa_pipeline.jobs.models import ModelStats


class RenderService(ABC):
    """Capture contract consumed by the render stage."""

    @abstractmethod
    async def capture(self, article_id: str, angle: str) -> str:
        """Render one camera angle. Returns the image URL."""
        ...

    @abstractmethod
    async def model_stats(self, article_id: str) -> ModelStats:
        ...


class HttpRenderService(RenderService):
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0)
        )

    async def capture(self, article_id: str, angle: str) -> str:
        data = await self._post("/capture", {"articleId": article_id, "angle": angle})
        url = data.get("url")
        if not url:
            raise RenderServiceError(f"Render service returned no URL for {angle} view")
        return url

    async def model_stats(self, article_id: str) -> ModelStats:
        data = await self._post("/stats", {"articleId": article_id})
        return ModelStats.model_validate(data)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(f"{self._base_url}{path}", json=payload)
        except httpx.HTTPError as e:
            raise RenderServiceError(f"Render service unreachable: {e}") from e

        if not response.is_success:
            raise RenderServiceError(
                f"Render service error: {response.status_code} - {response.text[:200]}"
            )
        return response.json()
