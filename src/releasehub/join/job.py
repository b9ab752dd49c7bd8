"""Join job script."""

from __future__ import annotations

from releasehub.config import FileType, JobType
from releasehub.job.base import GenericJob
from releasehub.job.context import JobContext
from releasehub.join.export import ObservationExportTask
from releasehub.join.summary import ProjectSummarizeTask, ResolveProjectSummaryTask
from releasehub.join.tasks import ObservationJoinTask


class JoinJob(GenericJob):
    """Join ssm streams into occurrences, then summarize them per project."""

    job_type = JobType.JOIN
    output_file_types = (
        FileType.OBSERVATION,
        FileType.PROJECT_SUMMARY,
        FileType.OBSERVATION_PARQUET,
    )

    def execute(self, job_context: JobContext) -> None:
        join_task = ObservationJoinTask()
        job_context.execute(join_task)

        if join_task.occurrence_count == 0:
            skipped = [ResolveProjectSummaryTask.__name__, ProjectSummarizeTask.__name__]
            if job_context.settings.export_parquet:
                skipped.append(ObservationExportTask.__name__)
            job_context.skip(*skipped, reason="no occurrences were produced")
            return

        resolve_task = ResolveProjectSummaryTask()
        step = [resolve_task]
        if job_context.settings.export_parquet:
            step.append(ObservationExportTask())
        job_context.execute(*step)

        summaries = job_context.broadcast(resolve_task.project_summaries, "project_summaries")
        job_context.execute(ProjectSummarizeTask(summaries))
