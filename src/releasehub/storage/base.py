"""Base class for file type record stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import dask.bag as db

from releasehub.config import FileType

if TYPE_CHECKING:
    from releasehub.job.context import TaskContext


class RecordStore(ABC):
    """Reads and writes named file types under a job's working directory."""

    @abstractmethod
    def read_input(
        self,
        task_context: TaskContext,
        file_type: FileType,
        *,
        required: bool = True,
    ) -> db.Bag:
        """Return all records of ``file_type`` visible to the task context."""

    @abstractmethod
    def write_output(self, task_context: TaskContext, bag: db.Bag, file_type: FileType) -> int:
        """Replace ``file_type`` content for the task context; return the record count."""

    @abstractmethod
    def delete(self, file_types: Iterable[FileType]) -> None:
        """Remove every record of the given file types."""

    @abstractmethod
    def location(self, file_type: FileType, project_name: str | None = None) -> Path:
        """Return the directory holding ``file_type`` (or one project partition)."""
