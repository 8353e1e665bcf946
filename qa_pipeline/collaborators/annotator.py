"""Client for the annotation overlay service.

The service draws the reported difference boxes onto the rendered views and
returns them as base64 PNGs.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from qa_pipeline.errors import AnnotationError
from qa_pipeline.jobs.models import Difference

# The overlay service only lays out the first four renders
MAX_ANNOTATED_RENDERS = 4


class Annotator(ABC):
    @abstractmethod
    async def annotate(
        self,
        images: List[str],
        references: List[str],
        differences: List[Difference],
    ) -> List[bytes]:
        """Return annotated image bytes."""
        ...


class HttpAnnotator(Annotator):
    def __init__(
        self,
        url: str,
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0)
        )

    async def annotate(
        self,
        images: List[str],
        references: List[str],
        differences: List[Difference],
    ) -> List[bytes]:
        payload = {
            "renders": images[:MAX_ANNOTATED_RENDERS],
            "references": references,
            "differences": [
                d.model_dump(mode="json", by_alias=True)
                for d in differences
                if d.render_index < MAX_ANNOTATED_RENDERS
            ],
        }
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise AnnotationError(f"Annotation service unreachable: {e}") from e

        if not response.is_success:
            raise AnnotationError(
                f"Annotation service error: {response.status_code} - {response.text[:200]}"
            )

        encoded = response.json().get("images") or []
        try:
            return [base64.b64decode(item, validate=True) for item in encoded]
        except (binascii.Error, TypeError, ValueError) as e:
            raise AnnotationError(f"Annotation service returned invalid image data: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
