"""Base class for release jobs and their run state machine."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import dask

from releasehub.config import FileType, JobType
from releasehub.exception import JobStateError
from releasehub.job.context import JobContext
from releasehub.models import StepRecord

logger = logging.getLogger("releasehub.job")


class JobState(str, Enum):
    INITIALIZED = "initialized"
    CLEANING = "cleaning"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.INITIALIZED: frozenset({JobState.CLEANING}),
    JobState.CLEANING: frozenset({JobState.RUNNING, JobState.FAILED}),
    JobState.RUNNING: frozenset({JobState.COMPLETED, JobState.FAILED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}


@dataclass
class JobRunReport:
    """Execution summary for a job run."""

    job_type: str
    state: JobState
    elapsed_seconds: float = 0.0
    steps: list[StepRecord] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_type": self.job_type,
            "state": self.state.value,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "steps": [
                {**asdict(step), "tasks": list(step.tasks), "projects": list(step.projects)}
                for step in self.steps
            ],
            "error": self.error,
        }


class GenericJob(ABC):
    """A fixed script of task executions that owns a set of output file types.

    ``run`` deletes every owned output before the script starts, so a re-run
    never merges with stale data. A job instance runs once; a failed run is
    retried by running a new instance.
    """

    job_type: JobType
    output_file_types: tuple[FileType, ...] = ()

    def __init__(self) -> None:
        self.state = JobState.INITIALIZED
        self.report: JobRunReport | None = None

    def run(self, job_context: JobContext) -> JobRunReport:
        if self.state is not JobState.INITIALIZED:
            raise JobStateError(f"{type(self).__name__} already ran (state={self.state.value})")

        job_context.claim(self.output_file_types)
        started = time.perf_counter()
        logger.info(
            "Executing %s job: release=%s projects=%s",
            self.job_type.value,
            job_context.release_name,
            list(job_context.project_names),
        )

        try:
            with dask.config.set(scheduler=job_context.settings.scheduler.value):
                self._transition(JobState.CLEANING)
                self.clean(job_context)
                self._transition(JobState.RUNNING)
                self.execute(job_context)
        except Exception as exc:
            self._transition(JobState.FAILED)
            self.report = self._report(job_context, started, error=f"{type(exc).__name__}: {exc}")
            logger.exception(
                "%s job failed at step %d",
                self.job_type.value,
                job_context.current_step + 1,
            )
            raise

        self._transition(JobState.COMPLETED)
        self.report = self._report(job_context, started)
        logger.info(
            "Finished %s job in %.2fs",
            self.job_type.value,
            self.report.elapsed_seconds,
        )
        return self.report

    def clean(self, job_context: JobContext) -> None:
        """Delete every output file type owned by this job."""

        job_context.store.delete(self.output_file_types)

    @abstractmethod
    def execute(self, job_context: JobContext) -> None:
        """Run the job script."""

    def _transition(self, target: JobState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise JobStateError(f"Illegal job transition {self.state.value} -> {target.value}")
        logger.debug("%s job: %s -> %s", self.job_type.value, self.state.value, target.value)
        self.state = target

    def _report(self, job_context: JobContext, started: float, error: str | None = None) -> JobRunReport:
        return JobRunReport(
            job_type=self.job_type.value,
            state=self.state,
            elapsed_seconds=time.perf_counter() - started,
            steps=list(job_context.steps),
            error=error,
        )
