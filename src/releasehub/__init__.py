"""Release ETL primitives.

This package provides the join pipeline that denormalizes ssm submissions
into occurrence documents, and the task/job orchestration that runs it.
"""

from .config import (
    DuplicateSamplePolicy,
    FileType,
    JobType,
    ReleaseSettings,
    Scheduler,
)
from .exception import (
    DuplicateSampleIdError,
    InputReadError,
    InvalidProfileError,
    JobStateError,
    LookupBudgetExceeded,
    MalformedRecordError,
    ReleaseHubError,
    ResourceExhaustedError,
    TaskDeclarationError,
    TaskOrderError,
)
from .job import GenericJob, JobContext, JobRunReport, JobState, Task, TaskContext, TaskType
from .join import JoinJob
from .models import Donor, ProjectSummary
from .profiles import JobProfile, JobProfileLoader
from .registry import JobRegistry, build_default_job_registry
from .storage import PartitionedJsonStore, RecordStore

__all__ = [
    "Donor",
    "DuplicateSampleIdError",
    "DuplicateSamplePolicy",
    "FileType",
    "GenericJob",
    "InputReadError",
    "InvalidProfileError",
    "JobContext",
    "JobProfile",
    "JobProfileLoader",
    "JobRegistry",
    "JobRunReport",
    "JobState",
    "JobStateError",
    "JobType",
    "JoinJob",
    "LookupBudgetExceeded",
    "MalformedRecordError",
    "PartitionedJsonStore",
    "ProjectSummary",
    "RecordStore",
    "ReleaseHubError",
    "ReleaseSettings",
    "ResourceExhaustedError",
    "Scheduler",
    "Task",
    "TaskContext",
    "TaskDeclarationError",
    "TaskOrderError",
    "TaskType",
    "build_default_job_registry",
]
