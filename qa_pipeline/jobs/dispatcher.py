"""Job dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Union

from qa_pipeline.jobs.models import JobInput, JobRecord, JobStatus, QueueSnapshot


class JobDispatcher(ABC):
    """What the ingress layer needs from a job queue."""

    @abstractmethod
    async def admit(self, data: Union[JobInput, Mapping[str, Any]]) -> JobRecord:
        """Admit a job (or return the active one for its article)."""
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> Optional[JobRecord]:
        """Get current state of a job."""
        ...

    @abstractmethod
    async def get_by_article_id(self, article_id: str) -> Optional[JobRecord]:
        ...

    @abstractmethod
    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        limit: Optional[int] = None,
    ) -> List[JobRecord]:
        ...

    @abstractmethod
    def snapshot(self) -> QueueSnapshot:
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...
