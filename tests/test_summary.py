import sys
from pathlib import Path

import dask.bag as db

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from releasehub.join.summary import summarize_occurrences  # noqa: E402
from releasehub.models import ProjectSummary  # noqa: E402


def _occurrence(project, donor, mutation):
    return {"_project_id": project, "_donor_id": donor, "_mutation_id": mutation}


def test_summary_counts_distinct_donors_and_mutations_per_project() -> None:
    occurrences = db.from_sequence(
        [
            _occurrence("P1", "DO1", "MU1"),
            _occurrence("P1", "DO1", "MU2"),
            _occurrence("P1", "DO2", "MU1"),
            _occurrence("P2", "DO3", "MU1"),
        ],
        npartitions=2,
    )

    summaries = summarize_occurrences(occurrences, ["P1", "P2", "P3"])

    assert summaries == {
        "P1": ProjectSummary("P1", donor_count=2, mutation_count=2, occurrence_count=3),
        "P2": ProjectSummary("P2", donor_count=1, mutation_count=1, occurrence_count=1),
        "P3": ProjectSummary("P3", donor_count=0, mutation_count=0, occurrence_count=0),
    }


def test_summary_of_empty_output_is_empty() -> None:
    assert summarize_occurrences(db.from_sequence([], npartitions=1)) == {}


def test_summary_accepts_any_sequence_of_project_names() -> None:
    empty = db.from_sequence([], npartitions=1)

    from_tuple = summarize_occurrences(empty, ("P2", "P1"))
    from_list = summarize_occurrences(empty, ["P2", "P1"])

    assert from_tuple == from_list
    assert list(from_tuple) == ["P1", "P2"]
    assert from_tuple["P1"] == ProjectSummary("P1", donor_count=0, mutation_count=0, occurrence_count=0)
