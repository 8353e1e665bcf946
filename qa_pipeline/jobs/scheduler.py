"""Single-worker FIFO job queue running on the asyncio event loop.

One job is inside the orchestrator at a time. The worker task is started on
demand when a job is enqueued and exits once the queue is drained; a retried
job goes back to the tail of the queue.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional, Union

from qa_pipeline.jobs.dispatcher import JobDispatcher
from qa_pipeline.jobs.models import JobInput, JobRecord, JobStatus, QueueSnapshot
from qa_pipeline.jobs.retry import RetryDecision
from qa_pipeline.jobs.store import JobStore
from qa_pipeline.pipeline.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


class Scheduler(JobDispatcher):
    """Local async job queue. Processes jobs one at a time."""

    def __init__(
        self,
        store: JobStore,
        orchestrator: PipelineOrchestrator,
        inter_job_delay: float = 1.0,
    ):
        self._store = store
        self._orchestrator = orchestrator
        self._inter_job_delay = inter_job_delay
        self._queue: Deque[str] = deque()
        self._task: Optional[asyncio.Task] = None
        self._worker_active = False
        self._retry_timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def worker_active(self) -> bool:
        return self._worker_active

    @property
    def queued_ids(self) -> List[str]:
        return list(self._queue)

    async def admit(self, data: Union[JobInput, Mapping[str, Any]]) -> JobRecord:
        job, created = self._store.admit(data)
        if created:
            self.enqueue(job.id)
            logger.info("Queue status: %d pending job(s)", len(self._queue))
        return job

    async def get_status(self, job_id: str) -> Optional[JobRecord]:
        return self._store.get(job_id)

    async def get_by_article_id(self, article_id: str) -> Optional[JobRecord]:
        return self._store.get_by_article_id(article_id)

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        limit: Optional[int] = None,
    ) -> List[JobRecord]:
        return self._store.list(status=status, limit=limit)

    def snapshot(self) -> QueueSnapshot:
        return self._store.snapshot(worker_active=self._worker_active)

    def enqueue(self, job_id: str) -> None:
        self._queue.append(job_id)
        self._start_worker()

    async def wait_idle(self) -> None:
        """Block until the queue is drained and no retry is waiting on backoff."""
        while True:
            if self._worker_active and self._task is not None:
                await asyncio.wait({self._task})
            elif self._retry_timers:
                await asyncio.sleep(0.05)
            else:
                return

    async def stop(self) -> None:
        for handle in self._retry_timers.values():
            handle.cancel()
        self._retry_timers.clear()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._worker_active = False

    def _start_worker(self) -> None:
        if self._worker_active:
            return
        self._worker_active = True
        self._task = asyncio.get_running_loop().create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        logger.info("Starting job queue worker")
        try:
            while self._queue:
                job_id = self._queue.popleft()
                job = self._store.get(job_id)
                if job is None:
                    logger.warning("Job %s no longer in store, skipping", job_id)
                    continue

                decision = await self._orchestrator.run(job)
                if decision.requeue:
                    self._schedule_retry(job.id, decision)

                # Pause between jobs so downstream services are not hammered
                await asyncio.sleep(self._inter_job_delay)
        finally:
            self._worker_active = False
        logger.info("Job queue worker finished")

    def _schedule_retry(self, job_id: str, decision: RetryDecision) -> None:
        if decision.delay_seconds <= 0:
            self._queue.append(job_id)
            return
        loop = asyncio.get_running_loop()
        self._retry_timers[job_id] = loop.call_later(
            decision.delay_seconds, self._fire_retry, job_id
        )
        logger.info("Job %s re-queued in %.1fs", job_id, decision.delay_seconds)

    def _fire_retry(self, job_id: str) -> None:
        self._retry_timers.pop(job_id, None)
        if self._store.get(job_id) is not None:
            self.enqueue(job_id)
