"""DuckDB + Parquet export of occurrence documents."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import duckdb
import pandas as pd

from releasehub.config import (
    CONSEQUENCE,
    DONOR_ID,
    MUTATION_FIELDS,
    MUTATION_ID,
    OBSERVATION,
    PROJECT_ID,
    SAMPLE_ID,
    SPECIMEN_ID,
)

logger = logging.getLogger("releasehub.storage.duckdb")

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_INTEGER_COLUMNS = frozenset({"chromosome_start", "chromosome_end"})
_JSON_COLUMNS = (OBSERVATION, CONSEQUENCE)

EXPORT_COLUMNS: tuple[str, ...] = (
    DONOR_ID,
    PROJECT_ID,
    MUTATION_ID,
    SPECIMEN_ID,
    SAMPLE_ID,
    *MUTATION_FIELDS,
    *_JSON_COLUMNS,
)


def _column_type(column: str) -> str:
    return "BIGINT" if column in _INTEGER_COLUMNS else "VARCHAR"


class DuckDBParquetExporter:
    """Append occurrence batches to DuckDB and export Parquet once at the end.

    Nested ``observation`` and ``consequence`` sections are stored as JSON
    text so every batch shares one flat schema.
    """

    def __init__(
        self,
        *,
        db_path: str | Path,
        parquet_path: str | Path,
        table_name: str = "observation",
    ) -> None:
        if not _TABLE_RE.match(table_name):
            raise ValueError(f"Unsafe table name: {table_name}")

        self.db_path = Path(db_path)
        self.parquet_path = Path(parquet_path)
        self.table_name = table_name
        self._batch_count = 0
        self._record_count = 0
        self._closed = False

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.parquet_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = duckdb.connect(str(self.db_path))
        columns = ", ".join(f'"{column}" {_column_type(column)}' for column in EXPORT_COLUMNS)
        self._connection.execute(f"CREATE OR REPLACE TABLE {self.table_name} ({columns})")

    @property
    def record_count(self) -> int:
        return self._record_count

    def write(self, records: Sequence[Mapping[str, Any]]) -> None:
        if not records:
            return

        self._batch_count += 1
        self._record_count += len(records)
        frame = pd.DataFrame(
            [{column: record.get(column) for column in EXPORT_COLUMNS} for record in records],
            columns=list(EXPORT_COLUMNS),
        )
        for column in _JSON_COLUMNS:
            frame[column] = frame[column].map(
                lambda payload: json.dumps(payload or [], sort_keys=True, default=str)
            )
        for column in EXPORT_COLUMNS:
            if column in _INTEGER_COLUMNS:
                frame[column] = frame[column].astype("Int64")
            elif column not in _JSON_COLUMNS:
                frame[column] = frame[column].map(lambda value: None if value is None else str(value))

        selected = ", ".join(
            f'CAST("{column}" AS {_column_type(column)})' for column in EXPORT_COLUMNS
        )
        self._connection.register("occurrence_frame", frame)
        try:
            self._connection.execute(
                f"INSERT INTO {self.table_name} SELECT {selected} FROM occurrence_frame"
            )
        finally:
            self._connection.unregister("occurrence_frame")

        logger.debug(
            "Export progress: batches=%d rows=%d",
            self._batch_count,
            self._record_count,
        )

    def finalize(self) -> None:
        if self._closed:
            return

        try:
            if self.parquet_path.exists():
                self.parquet_path.unlink()

            parquet_target = self.parquet_path.as_posix().replace("'", "''")
            self._connection.execute(
                f"COPY {self.table_name} TO '{parquet_target}' (FORMAT PARQUET)"
            )
            logger.info(
                "Export finalize: exported rows=%d to %s",
                self._record_count,
                self.parquet_path,
            )
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._connection.close()
            self._closed = True
