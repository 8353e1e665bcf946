"""Analyze stage: compare rendered views against the reference images."""

from qa_pipeline.collaborators.vision import Analyzer
from qa_pipeline.jobs.models import JobRecord
from qa_pipeline.pipeline.outcomes import Degrade, Outcome, Success
from qa_pipeline.pipeline.stages.base import Stage, describe_error


class AnalyzeStage(Stage):
    name = "analyze"

    def __init__(self, analyzer: Analyzer):
        self._analyzer = analyzer

    async def run(self, job: JobRecord) -> Outcome:
        job.log(
            f"Starting analysis with {len(job.images)} images "
            f"and {len(job.references)} references..."
        )
        try:
            result = await self._analyzer.analyze(
                images=job.images,
                references=job.references,
                model_stats=job.model_stats,
                article_id=job.article_id,
                product_name=job.product_name,
            )
        except Exception as e:
            return Degrade(f"analysis failed: {describe_error(e)}")

        job.log(f"Analysis verdict: {result.verdict.value}")
        job.log(f"Found {len(result.differences)} differences")
        if result.scores:
            s = result.scores
            job.log(
                f"Similarity scores - silhouette: {s.silhouette}%, proportion: {s.proportion}%, "
                f"color/material: {s.color_material}%, overall: {s.overall}%"
            )
        return Success(result)
