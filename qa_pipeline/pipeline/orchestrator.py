"""QA pipeline orchestrator.

Runs the stage sequence for one job and decides its next state:

1. Render   - required; zero images fails the attempt
2. Analyze  - only with references; failure degrades
3. Report   - only after a successful analysis; failure degrades
4. Publish  - only with a report URL and a sheet target; failure degrades

A failed attempt goes to the retry policy. Everything else ends in
COMPLETED, however many optional stages degraded.
"""

import logging
from typing import Any, Optional

from qa_pipeline.errors import StageFatal
from qa_pipeline.jobs.models import JobRecord, JobStatus, utcnow
from qa_pipeline.jobs.retry import RetryDecision, RetryPolicy
from qa_pipeline.pipeline.outcomes import Degrade, Fail, Success
from qa_pipeline.pipeline.stages.base import Stage, describe_error

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    def __init__(
        self,
        render: Stage,
        analyze: Stage,
        report: Stage,
        publish: Optional[Stage] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self._render = render
        self._analyze = analyze
        self._report = report
        self._publish = publish
        self._retry_policy = retry_policy or RetryPolicy()

    async def run(self, job: JobRecord) -> RetryDecision:
        """Process one attempt of a job. Never raises."""
        logger.info("Processing job %s (article %s)", job.id, job.article_id)
        self._start(job)

        try:
            await self._execute(job)
        except StageFatal as e:
            return self._retry_policy.handle(job, str(e))
        except Exception as e:
            logger.exception("Unexpected error processing job %s", job.id)
            return self._retry_policy.handle(job, describe_error(e))

        self._complete(job)
        return RetryDecision(requeue=False)

    async def _execute(self, job: JobRecord) -> None:
        outcome = await self._render.run(job)
        if isinstance(outcome, Fail):
            raise StageFatal(outcome.error)
        if isinstance(outcome, Degrade):
            raise StageFatal(outcome.reason)
        job.images = list(outcome.value.images)
        job.model_stats = outcome.value.model_stats

        if not job.references:
            job.log("Skipping analysis and report: no reference images supplied")
            return

        analysis = await self._run_optional(
            self._analyze, job, "continuing without analysis or report"
        )
        if analysis is None:
            return
        job.analysis = analysis

        report_url = await self._run_optional(
            self._report, job, "continuing without report"
        )
        if report_url is None:
            return
        job.report_url = report_url

        if self._publish is None or not job.has_publish_target:
            job.log("No sheet target for this job, results not published")
            return
        await self._run_optional(self._publish, job, "results not published")

    async def _run_optional(self, stage: Stage, job: JobRecord, consequence: str) -> Any:
        try:
            outcome = await stage.run(job)
        except Exception as e:
            outcome = Degrade(describe_error(e))

        if isinstance(outcome, Success):
            return outcome.value

        reason = outcome.reason if isinstance(outcome, Degrade) else outcome.error
        job.log(f"{stage.name.capitalize()} stage degraded, {consequence}: {reason}")
        logger.warning("Job %s: %s stage degraded: %s", job.id, stage.name, reason)
        return None

    def _start(self, job: JobRecord) -> None:
        job.status = JobStatus.PROCESSING
        job.started_at = utcnow()
        # Outputs are rebuilt on every attempt
        job.images = []
        job.model_stats = None
        job.analysis = None
        job.report_url = None
        job.log(f"Started processing at {job.started_at.isoformat()}")

    def _complete(self, job: JobRecord) -> None:
        job.status = JobStatus.COMPLETED
        job.completed_at = utcnow()
        job.log(f"Completed at {job.completed_at.isoformat()}")
        job.log(f"Generated {len(job.images)} images")
        if job.analysis is not None:
            job.log(f"Verdict: {job.analysis.verdict.value}")
        if job.report_url:
            job.log(f"Report: {job.report_url}")
        logger.info("Job %s completed", job.id)
