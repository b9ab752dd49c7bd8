"""Record stores for release job inputs and outputs."""

from .base import RecordStore
from .duckdb_parquet import DuckDBParquetExporter
from .partitioned_json import PartitionedJsonStore

__all__ = ["DuckDBParquetExporter", "PartitionedJsonStore", "RecordStore"]
