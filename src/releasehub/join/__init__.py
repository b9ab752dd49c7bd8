"""Observation join pipeline and the job that runs it."""

from releasehub.join.engine import join_observations, transform_to_occurrence
from releasehub.join.export import ObservationExportTask
from releasehub.join.job import JoinJob
from releasehub.join.lookups import resolve_donor_lookup, resolve_sample_surrogate_lookup
from releasehub.join.summary import ProjectSummarizeTask, ResolveProjectSummaryTask
from releasehub.join.tasks import ObservationJoinTask

__all__ = [
    "JoinJob",
    "ObservationExportTask",
    "ObservationJoinTask",
    "ProjectSummarizeTask",
    "ResolveProjectSummaryTask",
    "join_observations",
    "resolve_donor_lookup",
    "resolve_sample_surrogate_lookup",
    "transform_to_occurrence",
]
