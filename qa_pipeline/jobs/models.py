"""Job record and stage payload models."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Verdict(str, Enum):
    APPROVED = "Approved"
    NOT_APPROVED = "Not Approved"


class ModelStats(BaseModel):
    """Geometry statistics extracted from the GLB while rendering."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mesh_count: int = 0
    material_count: int = 0
    vertices: int = 0
    triangles: int = 0
    double_sided_count: int = 0
    double_sided_materials: List[str] = Field(default_factory=list)
    file_size: int = 0

    @property
    def file_size_mb(self) -> float:
        return self.file_size / (1024 * 1024)


class Difference(BaseModel):
    """One discrepancy between a rendered view and a reference image."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    render_index: int = Field(ge=0)
    reference_index: int = Field(ge=0)
    issues: List[str] = Field(min_length=1)
    bbox: Tuple[float, float, float, float]  # x, y, width, height on the render
    severity: Severity


class SimilarityScores(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    silhouette: int = Field(ge=0, le=100)
    proportion: int = Field(ge=0, le=100)
    color_material: int = Field(ge=0, le=100)
    overall: int = Field(ge=0, le=100)


class AnalysisResult(BaseModel):
    """Validated response of the vision comparison."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    differences: List[Difference] = Field(default_factory=list)
    summary: str
    verdict: Verdict
    scores: Optional[SimilarityScores] = None


class JobInput(BaseModel):
    """Admission payload. Accepts camelCase keys from the spreadsheet webhook."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    article_id: str
    product_name: str
    references: List[str] = Field(default_factory=list)
    sheet_id: Optional[str] = None
    row_index: Optional[int] = None

    @field_validator("article_id", "product_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("references")
    @classmethod
    def _drop_blank_references(cls, value: List[str]) -> List[str]:
        return [ref.strip() for ref in value if ref and ref.strip()]


class JobRecord(BaseModel):
    """Tracks the lifecycle of one QA job."""
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    article_id: str
    product_name: str
    references: List[str] = Field(default_factory=list)
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    retries: int = 0
    max_retries: int = 3
    error: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    model_stats: Optional[ModelStats] = None
    analysis: Optional[AnalysisResult] = None
    report_url: Optional[str] = None
    sheet_id: Optional[str] = None
    row_index: Optional[int] = None
    processing_logs: List[str] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.PROCESSING)

    @property
    def has_publish_target(self) -> bool:
        return bool(self.sheet_id) and self.row_index is not None

    def log(self, message: str) -> None:
        self.processing_logs.append(message)


class QueueSnapshot(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
    worker_active: bool = False
