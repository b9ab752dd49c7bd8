"""Job registry keyed on the release job type."""

from __future__ import annotations

from typing import Any

from releasehub.config import JobType
from releasehub.job.base import GenericJob
from releasehub.join.job import JoinJob


def _job_type(name: str | JobType) -> JobType:
    if isinstance(name, JobType):
        return name
    key = name.strip().lower()
    if not key:
        raise ValueError("Job name cannot be empty")
    return JobType(key)


class JobRegistry:
    """Map each ``JobType`` to the job class that runs it.

    A job class declares the type it runs through its ``job_type`` attribute;
    registration under any other type is rejected, so the job a name resolves
    to always reports that same type in its run summary and output claims.
    """

    def __init__(self) -> None:
        self._jobs: dict[JobType, type[GenericJob]] = {}

    def register(self, job_cls: type[GenericJob], job_type: str | JobType | None = None) -> None:
        declared = getattr(job_cls, "job_type", None)
        if not isinstance(declared, JobType):
            raise ValueError(f"{job_cls.__name__} does not declare a job_type")
        if job_type is not None and _job_type(job_type) is not declared:
            raise ValueError(
                f"{job_cls.__name__} runs job type '{declared.value}', not '{_job_type(job_type).value}'"
            )
        if declared in self._jobs:
            raise ValueError(f"Job already registered: {declared.value} ({self._jobs[declared].__name__})")
        self._jobs[declared] = job_cls

    def create(self, name: str | JobType, **kwargs: Any) -> GenericJob:
        """Instantiate a fresh job for one run."""

        try:
            job_type = _job_type(name)
        except ValueError:
            job_type = None
        if job_type not in self._jobs:
            raise KeyError(f"Unknown job '{name}'. Available: {', '.join(self.available())}")
        return self._jobs[job_type](**kwargs)

    def available(self) -> list[str]:
        return sorted(job_type.value for job_type in self._jobs)


def build_default_job_registry() -> JobRegistry:
    """Create a registry preloaded with the built-in release jobs."""

    registry = JobRegistry()
    registry.register(JoinJob)
    return registry
