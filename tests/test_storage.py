import gzip
import json
import sys
from pathlib import Path
from types import SimpleNamespace

import dask.bag as db
import duckdb
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from releasehub.config import FileType  # noqa: E402
from releasehub.exception import InputReadError  # noqa: E402
from releasehub.storage import DuckDBParquetExporter, PartitionedJsonStore  # noqa: E402


def _context(project_name=None, compressed=False):
    return SimpleNamespace(project_name=project_name, compressed=compressed)


def test_write_output_creates_partitioned_part_files(store: PartitionedJsonStore) -> None:
    bag = db.from_sequence([{"b": 2, "a": 1}, {"a": 3}], npartitions=2)

    count = store.write_output(_context("PRJ"), bag, FileType.OBSERVATION)

    target = store.working_dir / "observation" / "project_name=PRJ"
    assert count == 2
    assert sorted(path.name for path in target.iterdir()) == ["part-00000.json", "part-00001.json"]
    assert (target / "part-00000.json").read_text().strip() == '{"a":1,"b":2}'


def test_compressed_output_round_trips_through_read_input(store: PartitionedJsonStore) -> None:
    bag = db.from_sequence([{"value": index} for index in range(5)], npartitions=2)

    store.write_output(_context("PRJ", compressed=True), bag, FileType.OBSERVATION)

    paths = store.part_files(FileType.OBSERVATION, "PRJ")
    assert paths and all(path.name.endswith(".json.gz") for path in paths)
    with gzip.open(paths[0], "rt") as stream:
        assert json.loads(stream.readline())["value"] == 0

    records = store.read_input(_context("PRJ"), FileType.OBSERVATION).compute()
    assert sorted(record["value"] for record in records) == [0, 1, 2, 3, 4]
    assert {record["_project_id"] for record in records} == {"PRJ"}


def test_unscoped_read_tags_records_with_partition_project(store: PartitionedJsonStore) -> None:
    store.write_records(FileType.SSM_M, [{"analysis_id": "A1"}], project_name="P1")
    store.write_records(FileType.SSM_M, [{"analysis_id": "A2"}, {"analysis_id": "A3"}], project_name="P2")

    records = store.read_input(_context(), FileType.SSM_M).compute()

    assert sorted((record["_project_id"], record["analysis_id"]) for record in records) == [
        ("P1", "A1"),
        ("P2", "A2"),
        ("P2", "A3"),
    ]
    assert store.project_names(FileType.SSM_M) == ["P1", "P2"]


def test_missing_required_input_raises_input_read_error(store: PartitionedJsonStore) -> None:
    with pytest.raises(InputReadError) as excinfo:
        store.read_input(_context("PRJ"), FileType.SSM_M)

    assert excinfo.value.file_type == "ssm_m"
    assert "project_name=PRJ" in excinfo.value.path


def test_missing_optional_input_is_empty(store: PartitionedJsonStore) -> None:
    bag = store.read_input(_context("PRJ"), FileType.SSM_S, required=False)

    assert bag.compute() == []


def test_failed_write_keeps_previous_output_and_leaves_no_staging(store: PartitionedJsonStore) -> None:
    store.write_records(FileType.OBSERVATION, [{"old": True}], project_name="PRJ")

    def _explode(record):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.write_output(_context("PRJ"), db.from_sequence([{"a": 1}]).map(_explode), FileType.OBSERVATION)

    assert store.read_records(FileType.OBSERVATION, "PRJ") == [{"old": True}]
    assert not [path for path in (store.working_dir / "observation").iterdir() if path.name.startswith("_temporary")]


def test_delete_removes_every_partition(store: PartitionedJsonStore) -> None:
    store.write_records(FileType.OBSERVATION, [{"a": 1}], project_name="P1")
    store.write_records(FileType.OBSERVATION, [{"a": 2}], project_name="P2")
    store.write_records(FileType.SSM_M, [{"a": 3}], project_name="P1")

    store.delete([FileType.OBSERVATION, FileType.PROJECT_SUMMARY])

    assert not store.location(FileType.OBSERVATION).exists()
    assert store.read_records(FileType.SSM_M, "P1") == [{"a": 3}]


def test_duckdb_exporter_writes_queryable_parquet(tmp_path: Path) -> None:
    exporter = DuckDBParquetExporter(
        db_path=tmp_path / "export" / "observation.duckdb",
        parquet_path=tmp_path / "export" / "observation.parquet",
    )
    exporter.write(
        [
            {
                "_donor_id": "DO1",
                "_project_id": "PRJ",
                "_mutation_id": "MU1",
                "chromosome": "17",
                "chromosome_start": 100,
                "observation": [{"observation_id": "OBS1"}],
                "consequence": [],
            }
        ]
    )
    exporter.write([{"_donor_id": "DO2", "_project_id": "PRJ", "_mutation_id": "MU2"}])
    exporter.finalize()

    rows = duckdb.sql(
        f"SELECT _donor_id, chromosome_start, observation FROM read_parquet('{tmp_path / 'export' / 'observation.parquet'}') "
        "ORDER BY _donor_id"
    ).fetchall()

    assert exporter.record_count == 2
    assert rows[0] == ("DO1", 100, '[{"observation_id": "OBS1"}]')
    assert rows[1] == ("DO2", None, "[]")


def test_duckdb_exporter_rejects_unsafe_table_name(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        DuckDBParquetExporter(
            db_path=tmp_path / "x.duckdb",
            parquet_path=tmp_path / "x.parquet",
            table_name="observation; DROP TABLE x",
        )
