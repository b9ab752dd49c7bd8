"""Task orchestration for release jobs."""

from releasehub.job.base import GenericJob, JobRunReport, JobState
from releasehub.job.context import JobContext, TaskContext
from releasehub.job.executor import TaskExecutor
from releasehub.job.task import Task, TaskType

__all__ = [
    "GenericJob",
    "JobContext",
    "JobRunReport",
    "JobState",
    "Task",
    "TaskContext",
    "TaskExecutor",
    "TaskType",
]
