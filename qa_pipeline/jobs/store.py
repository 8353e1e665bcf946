"""Bounded in-memory job table with article de-duplication."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from qa_pipeline.errors import AdmissionError
from qa_pipeline.jobs.models import JobInput, JobRecord, JobStatus, QueueSnapshot

logger = logging.getLogger(__name__)


class JobStore:
    """Holds every job record the process knows about.

    - At most one pending/processing record per article id
    - Oldest non-processing records are evicted once the table exceeds max_jobs
    - All reads return newest first
    """

    def __init__(self, max_jobs: int = 100, max_retries: int = 3):
        # Insertion order doubles as creation order for records with equal timestamps
        self._jobs: Dict[str, JobRecord] = {}
        self._max_jobs = max_jobs
        self._max_retries = max_retries

    def admit(
        self, data: Union[JobInput, Mapping[str, Any]]
    ) -> Tuple[JobRecord, bool]:
        """Create a pending job, or return the active one for the same article.

        Returns (record, created). Raises AdmissionError on invalid input.
        """
        job_input = _coerce_input(data)

        existing = self._find_active(job_input.article_id)
        if existing is not None:
            logger.info(
                "Job for article %s already %s (%s)",
                job_input.article_id, existing.status.value, existing.id,
            )
            return existing, False

        job = JobRecord(
            article_id=job_input.article_id,
            product_name=job_input.product_name,
            references=list(job_input.references),
            sheet_id=job_input.sheet_id,
            row_index=job_input.row_index,
            max_retries=self._max_retries,
        )
        job.log(f"Job created for article {job.article_id}")
        self._jobs[job.id] = job
        logger.info("Admitted job %s (article %s)", job.id, job.article_id)

        self._evict_overflow()
        return job, True

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def get_by_article_id(self, article_id: str) -> Optional[JobRecord]:
        """Active job for the article if any, otherwise its most recent one."""
        active = self._find_active(article_id)
        if active is not None:
            return active
        for job in self._newest_first():
            if job.article_id == article_id:
                return job
        return None

    def list(
        self,
        status: Optional[JobStatus] = None,
        limit: Optional[int] = None,
    ) -> List[JobRecord]:
        jobs = self._newest_first()
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        if limit is not None:
            jobs = jobs[: max(limit, 0)]
        return jobs

    def snapshot(self, worker_active: bool = False) -> QueueSnapshot:
        counts = {s: 0 for s in JobStatus}
        for job in self._jobs.values():
            counts[job.status] += 1
        return QueueSnapshot(
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            total=len(self._jobs),
            worker_active=worker_active,
        )

    def __len__(self) -> int:
        return len(self._jobs)

    def _find_active(self, article_id: str) -> Optional[JobRecord]:
        for job in self._jobs.values():
            if job.article_id == article_id and job.is_active:
                return job
        return None

    def _newest_first(self) -> List[JobRecord]:
        # reversed() first so that equal timestamps keep newest-admitted first
        return sorted(
            reversed(list(self._jobs.values())),
            key=lambda j: j.created_at,
            reverse=True,
        )

    def _evict_overflow(self) -> None:
        if len(self._jobs) <= self._max_jobs:
            return

        oldest_first = sorted(self._jobs.values(), key=lambda j: j.created_at)
        removed = 0
        for job in oldest_first:
            if len(self._jobs) <= self._max_jobs:
                break
            if job.status == JobStatus.PROCESSING:
                continue
            del self._jobs[job.id]
            removed += 1
        logger.info("Evicted %d old job(s), %d remain", removed, len(self._jobs))


def _coerce_input(data: Union[JobInput, Mapping[str, Any]]) -> JobInput:
    if isinstance(data, JobInput):
        return data
    try:
        return JobInput.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) or "input" for err in e.errors()
        )
        raise AdmissionError(f"Invalid job input ({fields})") from e
