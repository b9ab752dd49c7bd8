"""Columnar export of the occurrence output."""

from __future__ import annotations

import logging

from releasehub.config import FileType
from releasehub.job.context import TaskContext
from releasehub.job.task import Task
from releasehub.storage.duckdb_parquet import DuckDBParquetExporter

logger = logging.getLogger("releasehub.join.export")

DUCKDB_FILE = "observation.duckdb"
PARQUET_FILE = "observation.parquet"


class ObservationExportTask(Task):
    """Load OBSERVATION into DuckDB one partition at a time and export Parquet."""

    inputs = (FileType.OBSERVATION,)
    outputs = (FileType.OBSERVATION_PARQUET,)

    def execute(self, task_context: TaskContext) -> None:
        occurrences = task_context.read_input(FileType.OBSERVATION)
        target = task_context.output_location(FileType.OBSERVATION_PARQUET)

        exporter = DuckDBParquetExporter(
            db_path=target / DUCKDB_FILE,
            parquet_path=target / PARQUET_FILE,
        )
        try:
            for partition in occurrences.to_delayed():
                exporter.write(partition.compute())
            exporter.finalize()
        finally:
            exporter.close()

        logger.info("Exported %d occurrences to %s", exporter.record_count, target / PARQUET_FILE)
