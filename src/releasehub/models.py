"""Canonical in-memory data models used by release jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from releasehub.config import DONOR_ID, PROJECT_ID, SAMPLE_ID, SPECIMEN_ID


@dataclass(frozen=True)
class Donor:
    """Donor identity resolved for one analyzed sample.

    Built once per run from the clinical stream and shared read-only with
    workers through a broadcast.
    """

    donor_id: str
    specimen_id: str | None
    sample_id: str | None

    def to_row(self) -> dict[str, Any]:
        return {
            DONOR_ID: self.donor_id,
            SPECIMEN_ID: self.specimen_id,
            SAMPLE_ID: self.sample_id,
        }


@dataclass(frozen=True)
class ProjectSummary:
    """Per-project counts derived from the occurrence output."""

    project_id: str
    donor_count: int
    mutation_count: int
    occurrence_count: int

    def to_row(self) -> dict[str, Any]:
        return {
            PROJECT_ID: self.project_id,
            "donor_count": self.donor_count,
            "mutation_count": self.mutation_count,
            "occurrence_count": self.occurrence_count,
        }


@dataclass
class StepRecord:
    """One executed (or skipped) step of a job script."""

    tasks: tuple[str, ...]
    elapsed_seconds: float = 0.0
    skipped: bool = False
    projects: tuple[str, ...] = field(default_factory=tuple)
