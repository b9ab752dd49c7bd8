"""Task joining the ssm streams of one project into occurrences."""

from __future__ import annotations

import threading

from releasehub.config import FileType
from releasehub.job.context import TaskContext
from releasehub.job.task import Task, TaskType
from releasehub.join.engine import join_observations
from releasehub.join.lookups import resolve_donor_lookup, resolve_sample_surrogate_lookup


class ObservationJoinTask(Task):
    """Denormalize meta, primary and secondary ssm records into occurrences.

    Runs once per project. The per-project occurrence counts are exposed after
    execution so the job script can decide whether later steps run.
    """

    task_type = TaskType.FILE_TYPE_PROJECT
    inputs = (
        FileType.CLINICAL,
        FileType.SAMPLE_SURROGATE_KEY,
        FileType.SSM_M,
        FileType.SSM_P_MASKED_SURROGATE_KEY,
    )
    optional_inputs = (FileType.SSM_S,)
    outputs = (FileType.OBSERVATION,)

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}

    @property
    def occurrence_count(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    @property
    def project_occurrence_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def execute(self, task_context: TaskContext) -> None:
        settings = task_context.settings

        donors = resolve_donor_lookup(
            task_context.read_input(FileType.CLINICAL),
            max_records=settings.max_donor_lookup_records,
            duplicate_policy=settings.duplicate_sample_policy,
        )
        samples = resolve_sample_surrogate_lookup(
            task_context.read_input(FileType.SAMPLE_SURROGATE_KEY),
            duplicate_policy=settings.duplicate_sample_policy,
        )

        output = join_observations(
            ssm_m=task_context.read_input(FileType.SSM_M),
            ssm_p=task_context.read_input(FileType.SSM_P_MASKED_SURROGATE_KEY),
            ssm_s=task_context.read_input(FileType.SSM_S),
            donors=task_context.broadcast(donors, "donor_lookup"),
            samples=task_context.broadcast(samples, "sample_surrogate_lookup"),
            project_name=task_context.project_name,
        )
        count = task_context.write_output(output, FileType.OBSERVATION)

        with self._lock:
            self._counts[task_context.project_name or ""] = count
