"""Stage interface shared by render, analyze, report and publish."""

from abc import ABC, abstractmethod

from qa_pipeline.jobs.models import JobRecord
from qa_pipeline.pipeline.outcomes import Outcome


class Stage(ABC):
    """One bounded unit of pipeline work.

    To add a stage:
    1. Subclass Stage and set `name`
    2. Implement run(), returning Success, Degrade or Fail
    3. Hand the instance to PipelineOrchestrator

    Stages read the job but never change its status; the orchestrator
    applies the outcome.
    """

    name: str = "stage"

    @abstractmethod
    async def run(self, job: JobRecord) -> Outcome:
        ...


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__
