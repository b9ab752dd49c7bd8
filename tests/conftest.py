import sys
from pathlib import Path
from typing import Any

import dask
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from releasehub.config import FileType  # noqa: E402
from releasehub.storage import PartitionedJsonStore  # noqa: E402

PROJECT = "BRCA-US"


def scenario_records(tag: str = "1") -> dict[FileType, list[dict[str, Any]]]:
    """One donor, one specimen, one sample and one call with one consequence."""

    return {
        FileType.CLINICAL: [
            {
                "_donor_id": f"DO{tag}",
                "donor_sex": "female",
                "specimen": [
                    {
                        "_specimen_id": f"SP{tag}",
                        "sample": [{"analyzed_sample_id": f"SA{tag}", "_sample_id": f"S{tag}"}],
                    }
                ],
            }
        ],
        FileType.SAMPLE_SURROGATE_KEY: [{"analyzed_sample_id": f"SA{tag}", "_sample_id": f"S{tag}"}],
        FileType.SSM_M: [
            {
                "analysis_id": f"A{tag}",
                "analyzed_sample_id": f"SA{tag}",
                "assembly_version": "GRCh37",
                "platform": "Illumina HiSeq",
            }
        ],
        FileType.SSM_P_MASKED_SURROGATE_KEY: [
            {
                "observation_id": f"OBS{tag}",
                "analysis_id": f"A{tag}",
                "analyzed_sample_id": f"SA{tag}",
                "_mutation_id": f"MU{tag}",
                "chromosome": "17",
                "chromosome_start": "41196312",
                "chromosome_end": "41196312",
                "chromosome_strand": "1",
                "mutation_type": "single base substitution",
                "mutation": "C>T",
                "total_read_count": "52",
                "mutant_allele_read_count": "19",
            }
        ],
        FileType.SSM_S: [
            {
                "observation_id": f"OBS{tag}",
                "consequence_type": "missense_variant",
                "gene_affected": "ENSG00000012048",
            }
        ],
    }


@pytest.fixture(autouse=True)
def synchronous_dask():
    with dask.config.set(scheduler="synchronous"):
        yield


@pytest.fixture
def store(tmp_path: Path) -> PartitionedJsonStore:
    return PartitionedJsonStore(tmp_path / "work")


@pytest.fixture
def write_inputs(store: PartitionedJsonStore):
    """Write input file types for a project; overrides replace or drop (None) a type."""

    def _write(project: str = PROJECT, tag: str = "1", compressed: bool = False, **overrides):
        records = scenario_records(tag)
        for file_type in FileType:
            key = file_type.name.lower()
            if key in overrides:
                records[file_type] = overrides[key]
        for file_type, rows in records.items():
            if rows is None:
                continue
            store.write_records(file_type, rows, project_name=project, compressed=compressed)
        return store

    return _write


@pytest.fixture
def scenario():
    return scenario_records


@pytest.fixture
def project() -> str:
    return PROJECT
