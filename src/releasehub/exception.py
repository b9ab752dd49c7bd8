"""Error types raised by release jobs."""

from __future__ import annotations

from typing import Any


class ReleaseHubError(Exception):
    """Super-class for all release job errors."""


class MalformedRecordError(ReleaseHubError):
    """A record field is missing or cannot be coerced to its declared type."""

    def __init__(self, file_type: str, field_name: str, raw_value: Any, reason: str = "") -> None:
        self.file_type = file_type
        self.field_name = field_name
        self.raw_value = raw_value
        self.reason = reason
        message = f"Malformed {file_type} record: field '{field_name}' has value {raw_value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)

    def __reduce__(self):
        return (type(self), (self.file_type, self.field_name, self.raw_value, self.reason))


class InputReadError(ReleaseHubError):
    """A required input file type could not be read."""

    def __init__(self, file_type: str, path: str) -> None:
        self.file_type = file_type
        self.path = path
        super().__init__(f"No {file_type} input found at {path}")

    def __reduce__(self):
        return (type(self), (self.file_type, self.path))


class LookupBudgetExceeded(ReleaseHubError):
    """A coordinator-local lookup would hold more records than allowed."""

    def __init__(self, lookup_name: str, record_count: int, max_records: int) -> None:
        self.lookup_name = lookup_name
        self.record_count = record_count
        self.max_records = max_records
        super().__init__(
            f"{lookup_name} lookup needs {record_count} records; budget is {max_records}"
        )

    def __reduce__(self):
        return (type(self), (self.lookup_name, self.record_count, self.max_records))


class ResourceExhaustedError(ReleaseHubError):
    """The coordinator ran out of memory while materializing a collection."""


class DuplicateSampleIdError(ReleaseHubError):
    """An analyzed sample id maps to two different values under the ``fail`` policy."""

    def __init__(self, lookup_name: str, analyzed_sample_id: str, first: Any, second: Any) -> None:
        self.lookup_name = lookup_name
        self.analyzed_sample_id = analyzed_sample_id
        self.first = first
        self.second = second
        super().__init__(
            f"Duplicate analyzed sample id '{analyzed_sample_id}' in {lookup_name} lookup: "
            f"{first!r} != {second!r}"
        )

    def __reduce__(self):
        return (type(self), (self.lookup_name, self.analyzed_sample_id, self.first, self.second))


class TaskOrderError(ReleaseHubError):
    """A task was scheduled before the steps it depends on."""


class TaskDeclarationError(ReleaseHubError):
    """A task touched a file type it did not declare."""


class JobStateError(ReleaseHubError):
    """A job was asked to run from a state that does not allow it."""


class InvalidProfileError(ReleaseHubError):
    """A job profile failed schema validation or could not be loaded."""
