"""JSON-lines record store partitioned by file type and project."""

from __future__ import annotations

import gzip
import json
import logging
import shutil
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import dask
import dask.bag as db

from releasehub.config import PROJECT_ID, FileType
from releasehub.exception import InputReadError
from releasehub.storage.base import RecordStore

if TYPE_CHECKING:
    from releasehub.job.context import TaskContext

logger = logging.getLogger("releasehub.storage")

PARTITION_PREFIX = "project_name="
_TEMPORARY_PREFIX = "_temporary-"


def partition_name(project_name: str) -> str:
    return f"{PARTITION_PREFIX}{project_name}"


def project_from_path(path: str | Path) -> str | None:
    """Extract the project name from a ``project_name=<project>`` path segment."""

    for part in Path(path).parts:
        if part.startswith(PARTITION_PREFIX):
            return part[len(PARTITION_PREFIX):]
    return None


def _is_part_file(path: Path) -> bool:
    return path.is_file() and path.name.startswith("part-")


def _part_name(index: int) -> str:
    return f"{index:05d}"


def dump_record(record: Mapping[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), default=str)


def _parse_line(line: str) -> dict[str, Any]:
    return json.loads(line)


def _parse_line_with_project(line_and_path: tuple[str, str]) -> dict[str, Any]:
    line, path = line_and_path
    record = json.loads(line)
    project = project_from_path(path)
    if project is not None:
        record.setdefault(PROJECT_ID, project)
    return record


def _is_blank(line: Any) -> bool:
    text = line[0] if isinstance(line, tuple) else line
    return not text.strip()


class PartitionedJsonStore(RecordStore):
    """Persist records as ``part-NNNNN.json[.gz]`` files under the working dir.

    Layout::

        <working_dir>/<file_type>/project_name=<project>/part-00000.json.gz
        <working_dir>/<file_type>/part-00000.json          (unpartitioned types)

    Writes go to a ``_temporary-*`` directory that replaces the target only
    after every part has been written.
    """

    def __init__(self, working_dir: str | Path) -> None:
        self.working_dir = Path(working_dir)

    def location(self, file_type: FileType, project_name: str | None = None) -> Path:
        root = self.working_dir / file_type.dir_name
        if project_name is not None and file_type.partitioned:
            return root / partition_name(project_name)
        return root

    def part_files(self, file_type: FileType, project_name: str | None = None) -> list[Path]:
        root = self.location(file_type, project_name)
        if not root.is_dir():
            return []
        if project_name is not None or not file_type.partitioned:
            return sorted(path for path in root.iterdir() if _is_part_file(path))
        return sorted(
            path
            for partition in root.iterdir()
            if partition.is_dir() and partition.name.startswith(PARTITION_PREFIX)
            for path in partition.iterdir()
            if _is_part_file(path)
        )

    def project_names(self, file_type: FileType) -> list[str]:
        """Projects with a partition directory for ``file_type``."""

        root = self.location(file_type)
        if not file_type.partitioned or not root.is_dir():
            return []
        return sorted(
            partition.name[len(PARTITION_PREFIX):]
            for partition in root.iterdir()
            if partition.is_dir() and partition.name.startswith(PARTITION_PREFIX)
        )

    def read_input(
        self,
        task_context: TaskContext,
        file_type: FileType,
        *,
        required: bool = True,
    ) -> db.Bag:
        project_name = task_context.project_name
        paths = self.part_files(file_type, project_name)
        if not paths:
            location = self.location(file_type, project_name)
            if required:
                raise InputReadError(file_type.value, str(location))
            logger.info("Optional input %s not found at %s; using empty collection", file_type.value, location)
            return db.from_sequence([], npartitions=1)

        urls = [str(path) for path in paths]
        if file_type.partitioned and project_name is None:
            lines = db.read_text(urls, compression="infer", include_path=True)
            return lines.filter(lambda line: not _is_blank(line)).map(_parse_line_with_project)

        lines = db.read_text(urls, compression="infer")
        records = lines.filter(lambda line: not _is_blank(line)).map(_parse_line)
        if project_name is not None and file_type.partitioned:
            records = records.map(_with_project, project_name=project_name)
        return records

    def write_output(self, task_context: TaskContext, bag: db.Bag, file_type: FileType) -> int:
        target = self.location(file_type, task_context.project_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.parent / f"{_TEMPORARY_PREFIX}{target.name}-{uuid.uuid4().hex}"
        suffix = ".json.gz" if task_context.compressed else ".json"

        try:
            writes = bag.map(dump_record).to_textfiles(
                str(staging / f"part-*{suffix}"),
                name_function=_part_name,
                compute=False,
            )
            *_, count = dask.compute(*writes, bag.count())
            if target.exists():
                shutil.rmtree(target)
            staging.rename(target)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("Wrote %d %s records to %s", count, file_type.value, target)
        return int(count)

    def delete(self, file_types: Iterable[FileType]) -> None:
        for file_type in file_types:
            path = self.location(file_type)
            if path.exists():
                logger.info("Deleting %s output at %s", file_type.value, path)
                shutil.rmtree(path)

    def write_records(
        self,
        file_type: FileType,
        records: Iterable[Mapping[str, Any]],
        *,
        project_name: str | None = None,
        compressed: bool = False,
    ) -> Path:
        """Write records eagerly as a single part file, replacing the partition."""

        target = self.location(file_type, project_name)
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True)
        path = target / ("part-00000.json.gz" if compressed else "part-00000.json")
        payload = "".join(f"{dump_record(record)}\n" for record in records)
        if compressed:
            with gzip.open(path, "wt", encoding="utf-8") as stream:
                stream.write(payload)
        else:
            path.write_text(payload, encoding="utf-8")
        return path

    def read_records(self, file_type: FileType, project_name: str | None = None) -> list[dict[str, Any]]:
        """Read every record of a file type eagerly on the coordinator."""

        records: list[dict[str, Any]] = []
        for path in self.part_files(file_type, project_name):
            opener = gzip.open if path.name.endswith(".gz") else open
            with opener(path, "rt", encoding="utf-8") as stream:
                records.extend(json.loads(line) for line in stream if line.strip())
        return records


def _with_project(record: dict[str, Any], project_name: str) -> dict[str, Any]:
    record.setdefault(PROJECT_ID, project_name)
    return record
