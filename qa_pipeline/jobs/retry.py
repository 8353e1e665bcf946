"""Retry decision for jobs whose required stage failed."""

import logging
from dataclasses import dataclass

from qa_pipeline.jobs.models import JobRecord, JobStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    requeue: bool
    delay_seconds: float = 0.0


class RetryPolicy:
    """Requeue a failed job until it has used up max_retries attempts.

    backoff_seconds > 0 delays each re-queue by backoff * 2 ** (retries - 1).
    """

    def __init__(self, backoff_seconds: float = 0.0):
        self._backoff_seconds = backoff_seconds

    def handle(self, job: JobRecord, error: str) -> RetryDecision:
        job.retries += 1
        job.error = error
        job.log(f"Error (attempt {job.retries}): {error}")

        if job.retries < job.max_retries:
            job.status = JobStatus.PENDING
            delay = self.backoff_delay(job.retries)
            job.log(f"Retry scheduled ({job.retries}/{job.max_retries})")
            logger.warning(
                "Job %s will be retried (%d/%d): %s",
                job.id, job.retries, job.max_retries, error,
            )
            return RetryDecision(requeue=True, delay_seconds=delay)

        job.status = JobStatus.FAILED
        job.completed_at = utcnow()
        job.log(f"Failed permanently after {job.retries} attempts")
        logger.error(
            "Job %s failed permanently after %d attempts: %s",
            job.id, job.retries, error,
        )
        return RetryDecision(requeue=False)

    def backoff_delay(self, retries: int) -> float:
        if self._backoff_seconds <= 0 or retries <= 0:
            return 0.0
        return self._backoff_seconds * 2 ** (retries - 1)
