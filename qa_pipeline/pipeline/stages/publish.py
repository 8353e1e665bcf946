"""Publish stage: write the QA outcome back to the tracking spreadsheet."""

from qa_pipeline.collaborators.sheets import Publisher
from qa_pipeline.jobs.models import JobRecord
from qa_pipeline.pipeline.outcomes import Degrade, Outcome, Success
from qa_pipeline.pipeline.stages.base import Stage, describe_error


class PublishStage(Stage):
    name = "publish"

    def __init__(self, publisher: Publisher):
        self._publisher = publisher

    async def run(self, job: JobRecord) -> Outcome:
        job.log(f"Updating sheet {job.sheet_id} row {job.row_index} with report link...")
        try:
            ack = await self._publisher.update(job)
        except Exception as e:
            return Degrade(f"sheet update failed: {describe_error(e)}")
        job.log("Sheet updated successfully")
        return Success(ack)
