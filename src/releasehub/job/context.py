"""Job and task execution contexts."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import dask.bag as db

from releasehub.config import FileType, JobType, ReleaseSettings
from releasehub.distributed import Broadcast
from releasehub.exception import TaskDeclarationError, TaskOrderError
from releasehub.job.executor import TaskExecutor
from releasehub.job.task import Task, TaskType
from releasehub.models import StepRecord
from releasehub.storage.base import RecordStore
from releasehub.storage.partitioned_json import PartitionedJsonStore

T = TypeVar("T")

logger = logging.getLogger("releasehub.job")


@dataclass(frozen=True)
class TaskContext:
    """View of the job context for one task, optionally scoped to a project."""

    job_context: JobContext
    task: Task
    project_name: str | None = None

    @property
    def settings(self) -> ReleaseSettings:
        return self.job_context.settings

    @property
    def compressed(self) -> bool:
        return self.job_context.settings.compressed

    def read_input(self, file_type: FileType) -> db.Bag:
        if file_type in self.task.inputs:
            required = True
        elif file_type in self.task.optional_inputs:
            required = False
        else:
            raise TaskDeclarationError(f"{self.task.name} reads undeclared input {file_type.value}")
        return self.job_context.store.read_input(self, file_type, required=required)

    def write_output(self, bag: db.Bag, file_type: FileType) -> int:
        self._check_output(file_type)
        return self.job_context.store.write_output(self, bag, file_type)

    def output_location(self, file_type: FileType) -> Path:
        self._check_output(file_type)
        return self.job_context.store.location(file_type, self.project_name)

    def broadcast(self, value: T, name: str) -> Broadcast[T]:
        label = name if self.project_name is None else f"{name}[{self.project_name}]"
        return self.job_context.broadcast(value, label)

    def _check_output(self, file_type: FileType) -> None:
        if file_type not in self.task.outputs:
            raise TaskDeclarationError(f"{self.task.name} writes undeclared output {file_type.value}")


class JobContext:
    """State shared by every step of one job run.

    Tracks which owned file types completed steps have produced and which
    broadcasts were published, and validates each step against them before
    handing it to the executor.
    """

    def __init__(
        self,
        *,
        job_type: JobType,
        working_dir: str | Path,
        project_names: Sequence[str] = (),
        release_name: str = "",
        settings: ReleaseSettings | None = None,
        store: RecordStore | None = None,
        executor: TaskExecutor | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.job_type = job_type
        self.working_dir = Path(working_dir)
        self.project_names = tuple(project_names)
        self.release_name = release_name
        self.settings = settings or ReleaseSettings()
        self.store = store or PartitionedJsonStore(self.working_dir)
        self.executor = executor or TaskExecutor(max_workers=self.settings.max_workers)
        self.steps: list[StepRecord] = []
        self._owned: frozenset[FileType] = frozenset()
        self._produced: set[FileType] = set()
        self._broadcast_names: list[str] = []
        self._lock = threading.Lock()

    @property
    def current_step(self) -> int:
        return len(self.steps)

    @property
    def produced_file_types(self) -> frozenset[FileType]:
        return frozenset(self._produced)

    @property
    def broadcast_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._broadcast_names)

    def claim(self, file_types: Iterable[FileType]) -> None:
        """Declare the file types this job run owns and regenerates."""

        self._owned = frozenset(file_types)

    def task_contexts(self, task: Task) -> list[TaskContext]:
        if task.task_type is TaskType.FILE_TYPE_PROJECT:
            return [TaskContext(self, task, project_name) for project_name in self.project_names]
        return [TaskContext(self, task)]

    def broadcast(self, value: T, name: str) -> Broadcast[T]:
        """Publish a read-only snapshot of ``value`` for downstream tasks."""

        handle = Broadcast(value, name=name, owner=self.id)
        with self._lock:
            self._broadcast_names.append(name)
        logger.debug("Published broadcast %s", name)
        return handle

    def execute(self, *tasks: Task) -> None:
        """Run one task, or several independent tasks concurrently, and block until done."""

        if not tasks:
            raise ValueError("execute() needs at least one task")

        self.validate_step(tasks)
        names = tuple(task.name for task in tasks)
        step_number = self.current_step + 1
        logger.info("Running step %d: %s", step_number, ", ".join(names))
        started = time.perf_counter()

        self.executor.execute(self, tasks)

        elapsed = time.perf_counter() - started
        for task in tasks:
            self._produced.update(task.outputs)
        projects = self.project_names if any(
            task.task_type is TaskType.FILE_TYPE_PROJECT for task in tasks
        ) else ()
        self.steps.append(StepRecord(tasks=names, elapsed_seconds=elapsed, projects=projects))
        logger.info("Finished step %d in %.2fs", step_number, elapsed)

    def skip(self, *task_names: str, reason: str) -> None:
        """Record steps the job script decided not to run."""

        logger.info("Skipping %s: %s", ", ".join(task_names), reason)
        self.steps.append(StepRecord(tasks=tuple(task_names), skipped=True))

    def validate_step(self, tasks: Sequence[Task]) -> None:
        for task in tasks:
            pending = (task.reads() & self._owned) - self._produced
            if pending:
                raise TaskOrderError(
                    f"{task.name} reads {_names(pending)} before any step produced them"
                )
            for handle in task.consumes():
                if handle.owner != self.id:
                    raise TaskOrderError(
                        f"{task.name} consumes broadcast {handle.name!r} not published by this job"
                    )

        if len(tasks) < 2:
            return
        for task in tasks:
            for other in tasks:
                if other is task:
                    continue
                shared = task.reads() & frozenset(other.outputs)
                if shared:
                    raise TaskOrderError(
                        f"{task.name} reads {_names(shared)} written by {other.name}; "
                        "they cannot run in the same concurrent step"
                    )
                clobbered = frozenset(task.outputs) & frozenset(other.outputs)
                if clobbered:
                    raise TaskOrderError(
                        f"{task.name} and {other.name} both write {_names(clobbered)}"
                    )

    def describe(self) -> dict[str, Any]:
        return {
            "job_type": self.job_type.value,
            "release_name": self.release_name,
            "working_dir": str(self.working_dir),
            "projects": list(self.project_names),
            "settings": self.settings.to_mapping(),
        }


def _names(file_types: Iterable[FileType]) -> str:
    return ", ".join(sorted(file_type.value for file_type in file_types))
