"""Error taxonomy for the QA pipeline.

AdmissionError is raised synchronously to whoever admits a job. Everything
else is raised inside the worker and never reaches an ingress caller: stages
convert collaborator errors into outcomes, and the retry policy turns fatal
ones into a re-queued or failed job.
"""


class QAPipelineError(Exception):
    """Base class for all pipeline errors."""


class AdmissionError(QAPipelineError):
    """Job input was rejected at admission. Never retried."""


class StageDegrade(QAPipelineError):
    """An optional stage failed; the job can still complete without its output."""


class StageFatal(QAPipelineError):
    """A required stage failed for the whole job. Routed to the retry policy."""


class RenderServiceError(QAPipelineError):
    """The render service rejected a capture or stats request."""


class AnalysisError(StageDegrade):
    """The vision comparison could not produce a valid result."""


class AnnotationError(StageDegrade):
    """The annotation overlay service failed."""


class ReportError(StageDegrade):
    """Report layout or artifact upload failed."""


class PublishError(StageDegrade):
    """The spreadsheet update was rejected or could not be sent."""
