"""Base interface for units of work executed by a job."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from releasehub.config import FileType
from releasehub.distributed import Broadcast

if TYPE_CHECKING:
    from releasehub.job.context import TaskContext


class TaskType(str, Enum):
    """Whether a task runs once per job or once per project."""

    FILE_TYPE = "file_type"
    FILE_TYPE_PROJECT = "file_type_project"


class Task(ABC):
    """Pure transformation from declared input file types to output file types.

    Tasks keep no cross-task state except values they expose after
    ``execute`` returns. Downstream tasks receive such values as broadcasts
    passed to their constructor and report them from ``consumes``.
    """

    task_type: TaskType = TaskType.FILE_TYPE
    inputs: tuple[FileType, ...] = ()
    optional_inputs: tuple[FileType, ...] = ()
    outputs: tuple[FileType, ...] = ()

    @property
    def name(self) -> str:
        return type(self).__name__

    def reads(self) -> frozenset[FileType]:
        return frozenset(self.inputs) | frozenset(self.optional_inputs)

    def consumes(self) -> tuple[Broadcast, ...]:
        """Broadcast handles this task reads."""

        return ()

    @abstractmethod
    def execute(self, task_context: TaskContext) -> None:
        """Run the task for one task context."""

    def __repr__(self) -> str:
        return f"{self.name}(type={self.task_type.value})"
