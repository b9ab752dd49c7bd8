"""Configuration contracts for release jobs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class FileType(str, Enum):
    """Named record streams exchanged between release jobs.

    The value is the directory name under the working directory. Partitioned
    file types hold one ``project_name=<project>`` subdirectory per project.
    """

    CLINICAL = "clinical"
    SAMPLE_SURROGATE_KEY = "sample_surrogate_key"
    SSM_M = "ssm_m"
    SSM_P_MASKED_SURROGATE_KEY = "ssm_p_masked_surrogate_key"
    SSM_S = "ssm_s"
    OBSERVATION = "observation"
    PROJECT_SUMMARY = "project_summary"
    OBSERVATION_PARQUET = "observation_parquet"

    @property
    def dir_name(self) -> str:
        return self.value

    @property
    def partitioned(self) -> bool:
        return self not in _UNPARTITIONED


_UNPARTITIONED = frozenset({FileType.PROJECT_SUMMARY, FileType.OBSERVATION_PARQUET})


class JobType(str, Enum):
    """Release jobs known to the job registry."""

    JOIN = "join"


class DuplicateSamplePolicy(str, Enum):
    """How lookup builders handle an analyzed sample id seen more than once."""

    LAST_WRITE_WINS = "last_write_wins"
    FAIL = "fail"


class Scheduler(str, Enum):
    """Dask schedulers a job may run under."""

    SYNCHRONOUS = "synchronous"
    THREADS = "threads"


# Submission and surrogate key field names.
DONOR_ID = "_donor_id"
SPECIMEN_ID = "_specimen_id"
SAMPLE_ID = "_sample_id"
PROJECT_ID = "_project_id"
MUTATION_ID = "_mutation_id"
OBSERVATION_ID = "observation_id"
ANALYSIS_ID = "analysis_id"
ANALYZED_SAMPLE_ID = "analyzed_sample_id"
SPECIMEN = "specimen"
SAMPLE = "sample"

# Occurrence document sections.
OBSERVATION = "observation"
CONSEQUENCE = "consequence"

MUTATION_FIELDS: tuple[str, ...] = (
    "chromosome",
    "chromosome_start",
    "chromosome_end",
    "chromosome_strand",
    "mutation_type",
    "mutation",
    "reference_genome_allele",
    "mutated_from_allele",
    "mutated_to_allele",
    "assembly_version",
)

DEFAULT_MAX_DONOR_LOOKUP_RECORDS = 1_000_000


@dataclass(frozen=True)
class ReleaseSettings:
    """Runtime knobs shared by every task of a job run."""

    compressed: bool = False
    scheduler: Scheduler = Scheduler.THREADS
    max_workers: int = 4
    max_donor_lookup_records: int = DEFAULT_MAX_DONOR_LOOKUP_RECORDS
    duplicate_sample_policy: DuplicateSamplePolicy = DuplicateSamplePolicy.LAST_WRITE_WINS
    export_parquet: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ReleaseSettings":
        """Build settings from a profile ``settings`` object, ignoring unknown keys."""

        defaults = cls()
        return cls(
            compressed=bool(payload.get("compressed", defaults.compressed)),
            scheduler=Scheduler(str(payload.get("scheduler", defaults.scheduler.value)).lower()),
            max_workers=int(payload.get("max_workers", defaults.max_workers)),
            max_donor_lookup_records=int(
                payload.get("max_donor_lookup_records", defaults.max_donor_lookup_records)
            ),
            duplicate_sample_policy=DuplicateSamplePolicy(
                str(
                    payload.get(
                        "duplicate_sample_policy",
                        defaults.duplicate_sample_policy.value,
                    )
                ).lower()
            ),
            export_parquet=bool(payload.get("export_parquet", defaults.export_parquet)),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "compressed": self.compressed,
            "scheduler": self.scheduler.value,
            "max_workers": self.max_workers,
            "max_donor_lookup_records": self.max_donor_lookup_records,
            "duplicate_sample_policy": self.duplicate_sample_policy.value,
            "export_parquet": self.export_parquet,
        }
