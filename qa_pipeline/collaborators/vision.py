"""Vision comparison of rendered views against reference photos.

The model is asked for one JSON object matching AnalysisResult. The reply is
validated against that schema; anything that does not conform is rejected
instead of being scraped for numbers.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from qa_pipeline.errors import AnalysisError
from qa_pipeline.jobs.models import AnalysisResult, ModelStats, Verdict

logger = logging.getLogger(__name__)

# Web delivery limits; exceeding any of them means the model is not approved
TECHNICAL_LIMITS = {
    "triangles": 150_000,
    "mesh_count": 5,
    "material_count": 5,
    "double_sided_count": 0,
    "file_size": 15 * 1024 * 1024,
}

APPROVAL_THRESHOLD = 90

SYSTEM_PROMPT = f"""You are a 3D e-commerce QA specialist. Compare rendered screenshots of a 3D \
product model with reference photos of the real product and report only differences that \
would confuse or disappoint a customer.

Severity:
- high: wrong product, wrong or missing brand elements, proportions off by more than 15%, \
missing features (buttons, pockets, handles)
- medium: wrong primary colour, wrong material type, clearly different pattern or texture
- low: secondary colour or finish variations that do not change product identity

Ignore rendering artefacts: lighting, shadows, reflections, anti-aliasing, background, \
slight saturation shifts. Compare only views with a similar orientation and only features \
visible in both images. Report only issues you are confident about and do not repeat the \
same issue across view pairs.

Technical limits: triangles <= {TECHNICAL_LIMITS['triangles']}, meshes <= \
{TECHNICAL_LIMITS['mesh_count']}, materials <= {TECHNICAL_LIMITS['material_count']}, \
double-sided materials = 0, file size <= 15MB. Mention the technical check in the summary.

Verdict is "Approved" only if every similarity score is above {APPROVAL_THRESHOLD} and all \
technical limits hold, otherwise "Not Approved".

Reply with a single JSON object and nothing else:
{{
  "differences": [
    {{"renderIndex": 0, "referenceIndex": 1, "issues": ["..."],
      "bbox": [x, y, width, height], "severity": "low|medium|high"}}
  ],
  "summary": "short description of visual issues and technical validation",
  "verdict": "Approved" or "Not Approved",
  "scores": {{"silhouette": 0-100, "proportion": 0-100, "colorMaterial": 0-100, "overall": 0-100}}
}}
bbox is in pixels relative to the rendered image given by renderIndex."""


class Analyzer(ABC):
    @abstractmethod
    async def analyze(
        self,
        images: List[str],
        references: List[str],
        model_stats: Optional[ModelStats],
        article_id: str,
        product_name: str,
    ) -> AnalysisResult:
        ...


class OpenAIVisionAnalyzer(Analyzer):
    """Analyzer backed by an OpenAI vision chat model."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        timeout_seconds: float = 90.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._timeout = timeout_seconds
        self._client = client

    async def analyze(
        self,
        images: List[str],
        references: List[str],
        model_stats: Optional[ModelStats],
        article_id: str,
        product_name: str,
    ) -> AnalysisResult:
        client = self._get_client()
        messages = build_messages(images, references, model_stats, article_id, product_name)

        logger.info("Calling vision model %s for article %s", self._model, article_id)
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=4000,
                temperature=0.1,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise AnalysisError(f"Vision API call failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise AnalysisError("Vision API returned an empty response")

        result = parse_analysis(response.choices[0].message.content)
        return enforce_technical_limits(result, model_stats)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise AnalysisError("OPENAI_API_KEY must be set for image analysis")
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client


def build_messages(
    images: List[str],
    references: List[str],
    model_stats: Optional[ModelStats],
    article_id: str,
    product_name: str,
) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Product: {product_name} (article {article_id})"},
    ]

    if model_stats is not None:
        messages.append({
            "role": "user",
            "content": (
                "Technical specifications:\n"
                f"- Triangles: {model_stats.triangles:,}\n"
                f"- Vertices: {model_stats.vertices:,}\n"
                f"- Meshes: {model_stats.mesh_count}\n"
                f"- Materials: {model_stats.material_count}\n"
                f"- Double-sided materials: {model_stats.double_sided_count}\n"
                f"- File size: {model_stats.file_size_mb:.2f}MB"
            ),
        })

    for i, url in enumerate(images):
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": f"Rendered screenshot {i}:"},
                {"type": "image_url", "image_url": {"url": url}},
            ],
        })
    for i, url in enumerate(references):
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": f"Reference image {i}:"},
                {"type": "image_url", "image_url": {"url": url}},
            ],
        })
    return messages


def parse_analysis(content: str) -> AnalysisResult:
    """Validate the model's reply against the AnalysisResult schema."""
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`").strip()
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:].strip()

    try:
        return AnalysisResult.model_validate_json(cleaned)
    except ValidationError as e:
        logger.warning("Rejected non-conforming analysis payload: %s", cleaned[:500])
        raise AnalysisError(
            f"Analysis response does not match schema ({e.error_count()} errors)"
        ) from e


def technical_violations(model_stats: Optional[ModelStats]) -> List[str]:
    if model_stats is None:
        return []
    violations = []
    for field, limit in TECHNICAL_LIMITS.items():
        value = getattr(model_stats, field)
        if value > limit:
            violations.append(f"{field}={value} exceeds {limit}")
    return violations


def enforce_technical_limits(
    result: AnalysisResult, model_stats: Optional[ModelStats]
) -> AnalysisResult:
    """Force a Not Approved verdict when the model breaks a technical limit."""
    violations = technical_violations(model_stats)
    if not violations or result.verdict == Verdict.NOT_APPROVED:
        return result
    return result.model_copy(update={
        "verdict": Verdict.NOT_APPROVED,
        "summary": f"{result.summary} Technical limits exceeded: {'; '.join(violations)}.",
    })
