"""Per-project summary of the occurrence output."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from operator import itemgetter
from typing import Any

import dask
import dask.bag as db
import pandas as pd

from releasehub.config import DONOR_ID, MUTATION_ID, PROJECT_ID, FileType
from releasehub.distributed import Broadcast
from releasehub.job.context import TaskContext
from releasehub.job.task import Task
from releasehub.models import ProjectSummary

logger = logging.getLogger("releasehub.join.summary")

_COUNT_COLUMNS = ("donor_count", "mutation_count", "occurrence_count")


def _project_donor(occurrence: Mapping[str, Any]) -> tuple[str, str]:
    return occurrence[PROJECT_ID], occurrence[DONOR_ID]


def _project_mutation(occurrence: Mapping[str, Any]) -> tuple[str, str]:
    return occurrence[PROJECT_ID], occurrence[MUTATION_ID]


def summarize_occurrences(
    occurrences: db.Bag,
    project_names: Sequence[str] = (),
) -> dict[str, ProjectSummary]:
    """Count distinct donors, distinct mutations and occurrences per project.

    Projects listed in ``project_names`` without any occurrence get zero counts.
    """

    donors, mutations, totals = dask.compute(
        occurrences.map(_project_donor).distinct().map(itemgetter(0)).frequencies(),
        occurrences.map(_project_mutation).distinct().map(itemgetter(0)).frequencies(),
        occurrences.pluck(PROJECT_ID).frequencies(),
    )
    frame = pd.DataFrame(
        {
            "donor_count": pd.Series(dict(donors), dtype="int64"),
            "mutation_count": pd.Series(dict(mutations), dtype="int64"),
            "occurrence_count": pd.Series(dict(totals), dtype="int64"),
        },
        columns=list(_COUNT_COLUMNS),
    )
    projects = sorted(set(frame.index) | set(project_names))
    frame = frame.reindex(projects).fillna(0).astype("int64")

    return {
        project: ProjectSummary(
            project_id=project,
            donor_count=int(row["donor_count"]),
            mutation_count=int(row["mutation_count"]),
            occurrence_count=int(row["occurrence_count"]),
        )
        for project, row in frame.iterrows()
    }


class ResolveProjectSummaryTask(Task):
    """Compute project summaries from OBSERVATION and expose them."""

    inputs = (FileType.OBSERVATION,)

    def __init__(self) -> None:
        self.project_summaries: dict[str, ProjectSummary] = {}

    def execute(self, task_context: TaskContext) -> None:
        self.project_summaries = summarize_occurrences(
            task_context.read_input(FileType.OBSERVATION),
            task_context.job_context.project_names,
        )
        logger.info("Resolved summaries for %d projects", len(self.project_summaries))


class ProjectSummarizeTask(Task):
    """Write one PROJECT_SUMMARY record per project from a broadcast."""

    outputs = (FileType.PROJECT_SUMMARY,)

    def __init__(self, project_summaries: Broadcast[Mapping[str, ProjectSummary]]) -> None:
        self.project_summaries = project_summaries

    def consumes(self) -> tuple[Broadcast, ...]:
        return (self.project_summaries,)

    def execute(self, task_context: TaskContext) -> None:
        summaries = self.project_summaries.value
        rows = [summaries[project].to_row() for project in sorted(summaries)]
        task_context.write_output(db.from_sequence(rows, npartitions=1), FileType.PROJECT_SUMMARY)
