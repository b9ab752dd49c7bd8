import logging
import sys
from pathlib import Path

import dask.bag as db
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from releasehub.config import FileType  # noqa: E402
from releasehub.distributed import Broadcast  # noqa: E402
from releasehub.exception import MalformedRecordError  # noqa: E402
from releasehub.join.engine import (  # noqa: E402
    join_meta,
    join_observations,
    join_primary_secondary,
    key_donor_mutation,
    transform_to_occurrence,
)
from releasehub.models import Donor  # noqa: E402


def _bag(records, npartitions=2):
    return db.from_sequence(records, npartitions=npartitions)


def _primary(observation_id, sample="SA1", analysis="A1", mutation="MU1", **extra):
    return {
        "observation_id": observation_id,
        "analysis_id": analysis,
        "analyzed_sample_id": sample,
        "_mutation_id": mutation,
        **extra,
    }


def _meta(analysis="A1", sample="SA1"):
    return {"analysis_id": analysis, "analyzed_sample_id": sample, "platform": "Illumina"}


def _run(ssm_m, ssm_p, ssm_s, donors, samples=None, project_name="BRCA-US"):
    return join_observations(
        ssm_m=_bag(ssm_m),
        ssm_p=_bag(ssm_p),
        ssm_s=_bag(ssm_s, npartitions=1),
        donors=Broadcast(donors, name="donors", owner="test"),
        samples=Broadcast(samples or {}, name="samples", owner="test"),
        project_name=project_name,
    ).compute()


def test_single_donor_scenario_emits_one_occurrence(scenario) -> None:
    records = scenario("1")

    occurrences = _run(
        records[FileType.SSM_M],
        records[FileType.SSM_P_MASKED_SURROGATE_KEY],
        records[FileType.SSM_S],
        donors={"SA1": Donor("DO1", "SP1", "S1")},
        samples={"SA1": "S1"},
    )

    assert len(occurrences) == 1
    occurrence = occurrences[0]
    assert occurrence["_donor_id"] == "DO1"
    assert occurrence["_project_id"] == "BRCA-US"
    assert occurrence["_mutation_id"] == "MU1"
    assert occurrence["_specimen_id"] == "SP1"
    assert occurrence["_sample_id"] == "S1"
    assert occurrence["chromosome_start"] == 41196312
    assert occurrence["mutation"] == "C>T"
    [observation] = occurrence["observation"]
    assert observation["observation_id"] == "OBS1"
    assert observation["platform"] == "Illumina HiSeq"
    assert observation["total_read_count"] == 52
    assert occurrence["consequence"] == [
        {
            "observation_id": "OBS1",
            "consequence_type": "missense_variant",
            "gene_affected": "ENSG00000012048",
        }
    ]


def test_primary_without_secondary_is_preserved() -> None:
    occurrences = _run(
        [_meta()],
        [_primary("OBS1"), _primary("OBS2", mutation="MU2")],
        [{"observation_id": "OBS1", "consequence_type": "stop_gained"}],
        donors={"SA1": Donor("DO1", "SP1", "S1")},
    )

    by_mutation = {occurrence["_mutation_id"]: occurrence for occurrence in occurrences}
    assert set(by_mutation) == {"MU1", "MU2"}
    assert by_mutation["MU2"]["consequence"] == []
    assert [item["observation_id"] for item in by_mutation["MU2"]["observation"]] == ["OBS2"]


def test_primary_secondary_join_attaches_all_secondaries() -> None:
    joined = join_primary_secondary(
        _bag([_primary("OBS1"), _primary("OBS2")]),
        _bag([{"observation_id": "OBS1", "n": 1}, {"observation_id": "OBS1", "n": 2}, {"observation_id": "OBS9"}]),
    ).compute()

    secondaries = {primary["observation_id"]: rights for primary, rights in joined}
    assert sorted(item["n"] for item in secondaries["OBS1"]) == [1, 2]
    assert secondaries["OBS2"] == []


def test_meta_join_filters_tuples_without_meta() -> None:
    primary_secondary = _bag([(_primary("OBS1"), []), (_primary("OBS2", analysis="A2"), [])])

    joined = join_meta(primary_secondary, _bag([_meta("A1")])).compute()

    assert [primary["observation_id"] for (primary, _), _ in joined] == ["OBS1"]


def test_records_without_meta_never_reach_an_occurrence() -> None:
    occurrences = _run(
        [_meta("A1")],
        [_primary("OBS1"), _primary("OBS2", analysis="A2")],
        [],
        donors={"SA1": Donor("DO1", "SP1", "S1")},
    )

    observation_ids = [item["observation_id"] for occurrence in occurrences for item in occurrence["observation"]]
    assert observation_ids == ["OBS1"]


def test_occurrences_never_mix_donors() -> None:
    donors = {
        "SA1": Donor("DO1", "SP1", "S1"),
        "SA2": Donor("DO1", "SP2", "S2"),
        "SA3": Donor("DO2", "SP3", "S3"),
    }
    occurrences = _run(
        [_meta("A1", "SA1"), _meta("A2", "SA2"), _meta("A3", "SA3")],
        [
            _primary("OBS1", sample="SA1", analysis="A1"),
            _primary("OBS2", sample="SA2", analysis="A2"),
            _primary("OBS3", sample="SA3", analysis="A3"),
        ],
        [],
        donors=donors,
    )

    assert sorted((item["_donor_id"], item["_mutation_id"]) for item in occurrences) == [
        ("DO1", "MU1"),
        ("DO2", "MU1"),
    ]
    for occurrence in occurrences:
        contributing = {donors[item["analyzed_sample_id"]].donor_id for item in occurrence["observation"]}
        assert contributing == {occurrence["_donor_id"]}
    merged = next(item for item in occurrences if item["_donor_id"] == "DO1")
    assert [item["observation_id"] for item in merged["observation"]] == ["OBS1", "OBS2"]


def test_sample_without_donor_is_dropped_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="releasehub.join"):
        occurrences = _run(
            [_meta("A1", "SA1"), _meta("A1", "SA404")],
            [_primary("OBS1"), _primary("OBS2", sample="SA404")],
            [],
            donors={"SA1": Donor("DO1", "SP1", "S1")},
        )

    assert [occurrence["_donor_id"] for occurrence in occurrences] == ["DO1"]
    assert "SA404" in caplog.text


def test_missing_surrogate_sample_leaves_field_unset() -> None:
    occurrences = _run(
        [_meta()],
        [_primary("OBS1")],
        [],
        donors={"SA1": Donor("DO1", "SP1", "S1")},
        samples={},
    )

    assert "_sample_id" not in occurrences[0]
    assert occurrences[0]["_specimen_id"] == "SP1"


def test_identifier_spelled_like_a_placeholder_joins_normally() -> None:
    occurrences = _run(
        [_meta(analysis="null", sample="NA")],
        [_primary("OBS1", sample="NA", analysis="null")],
        [{"observation_id": "OBS1", "consequence_type": "stop_gained"}],
        donors={"NA": Donor("DO1", "SP1", "S1")},
    )

    assert len(occurrences) == 1
    [observation] = occurrences[0]["observation"]
    assert observation["analyzed_sample_id"] == "NA"
    assert observation["analysis_id"] == "null"
    assert occurrences[0]["_donor_id"] == "DO1"


def test_malformed_primary_aborts_with_field_and_value() -> None:
    with pytest.raises(MalformedRecordError) as excinfo:
        _run(
            [_meta()],
            [_primary("OBS1", chromosome_start="forty")],
            [],
            donors={"SA1": Donor("DO1", "SP1", "S1")},
        )

    assert excinfo.value.file_type == "ssm_p_masked_surrogate_key"
    assert excinfo.value.field_name == "chromosome_start"
    assert excinfo.value.raw_value == "forty"


def test_key_donor_mutation_returns_nothing_for_unknown_sample() -> None:
    joined = ((_primary("OBS1", sample="SA9"), []), _meta(sample="SA9"))

    assert key_donor_mutation(joined, {}) == []
    assert key_donor_mutation(joined, {"SA9": Donor("DO9", None, None)}) == [(("DO9", "MU1"), joined)]


def test_transform_orders_contributions_deterministically() -> None:
    donors = {"SA1": Donor("DO1", "SP1", "S1")}
    first = ((_primary("OBS2"), [{"observation_id": "OBS2", "c": "b"}]), _meta())
    second = ((_primary("OBS1"), [{"observation_id": "OBS1", "c": "a"}]), _meta())

    forward = transform_to_occurrence((("DO1", "MU1"), [first, second]), donors, {"SA1": "S1"})
    backward = transform_to_occurrence((("DO1", "MU1"), [second, first]), donors, {"SA1": "S1"})

    assert forward == backward
    assert [item["c"] for item in forward["consequence"]] == ["a", "b"]
