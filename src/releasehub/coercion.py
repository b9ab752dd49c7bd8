"""Schema-driven value coercion for submitted record streams."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import pandas as pd

from releasehub.config import (
    ANALYSIS_ID,
    ANALYZED_SAMPLE_ID,
    DONOR_ID,
    MUTATION_ID,
    OBSERVATION_ID,
    SAMPLE_ID,
    SPECIMEN_ID,
    FileType,
)
from releasehub.exception import MalformedRecordError

_NUMERIC_MISSING_TOKENS = {"nan", "none", "null", "na"}


class ValueType(str, Enum):
    """Declared type of a submitted field."""

    IDENTIFIER = "identifier"
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"


@dataclass(frozen=True)
class FieldSpec:
    """Type and presence requirement for one field."""

    name: str
    value_type: ValueType = ValueType.TEXT
    required: bool = False


@dataclass(frozen=True)
class RecordSchema:
    """Field-level schema for one file type."""

    file_type: FileType
    fields: tuple[FieldSpec, ...] = field(default_factory=tuple)

    def coerce(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``record`` with declared fields converted.

        Undeclared fields pass through untouched. Raises
        ``MalformedRecordError`` on a missing required field or a value that
        does not parse as its declared type.
        """

        row = dict(record)
        for spec in self.fields:
            raw = row.get(spec.name)
            if is_missing(raw, spec.value_type):
                if spec.required:
                    raise MalformedRecordError(
                        self.file_type.value, spec.name, raw, "required field missing"
                    )
                if spec.name in row:
                    row[spec.name] = None
                continue
            row[spec.name] = coerce_value(self.file_type, spec, raw)
        return row


def is_missing(value: Any, value_type: ValueType = ValueType.TEXT) -> bool:
    """Whether ``value`` counts as absent for a field of ``value_type``.

    ``None``, NaN and blank strings are missing for every type. Placeholder
    tokens such as ``NA`` or ``null`` only count for numeric fields; on
    identifier and text fields they are ordinary values.
    """

    if value is None:
        return True
    if isinstance(value, (list, dict)):
        return False
    if isinstance(value, float) and pd.isna(value):
        return True
    text = str(value).strip()
    if not text:
        return True
    if value_type in (ValueType.INTEGER, ValueType.DECIMAL):
        return text.lower() in _NUMERIC_MISSING_TOKENS
    return False


def coerce_value(file_type: FileType, spec: FieldSpec, raw: Any) -> Any:
    try:
        if spec.value_type is ValueType.INTEGER:
            if isinstance(raw, bool):
                raise ValueError("boolean is not an integer")
            if isinstance(raw, float) and not raw.is_integer():
                raise ValueError("fractional value")
            return int(str(raw).strip()) if isinstance(raw, str) else int(raw)
        if spec.value_type is ValueType.DECIMAL:
            if isinstance(raw, bool):
                raise ValueError("boolean is not a decimal")
            return float(raw)
        if isinstance(raw, (list, dict)):
            raise ValueError("expected a scalar")
        return str(raw).strip()
    except (TypeError, ValueError) as exc:
        raise MalformedRecordError(
            file_type.value, spec.name, raw, f"expected {spec.value_type.value}"
        ) from exc


def _identifier(name: str) -> FieldSpec:
    return FieldSpec(name=name, value_type=ValueType.IDENTIFIER, required=True)


CLINICAL_SCHEMA = RecordSchema(
    file_type=FileType.CLINICAL,
    fields=(_identifier(DONOR_ID),),
)

CLINICAL_SPECIMEN_SCHEMA = RecordSchema(
    file_type=FileType.CLINICAL,
    fields=(_identifier(SPECIMEN_ID),),
)

CLINICAL_SAMPLE_SCHEMA = RecordSchema(
    file_type=FileType.CLINICAL,
    fields=(_identifier(ANALYZED_SAMPLE_ID), _identifier(SAMPLE_ID)),
)

SAMPLE_SCHEMA = RecordSchema(
    file_type=FileType.SAMPLE_SURROGATE_KEY,
    fields=(_identifier(ANALYZED_SAMPLE_ID), _identifier(SAMPLE_ID)),
)

SSM_M_SCHEMA = RecordSchema(
    file_type=FileType.SSM_M,
    fields=(_identifier(ANALYSIS_ID), _identifier(ANALYZED_SAMPLE_ID)),
)

SSM_P_SCHEMA = RecordSchema(
    file_type=FileType.SSM_P_MASKED_SURROGATE_KEY,
    fields=(
        _identifier(OBSERVATION_ID),
        _identifier(ANALYSIS_ID),
        _identifier(ANALYZED_SAMPLE_ID),
        _identifier(MUTATION_ID),
        FieldSpec("chromosome_start", ValueType.INTEGER),
        FieldSpec("chromosome_end", ValueType.INTEGER),
        FieldSpec("total_read_count", ValueType.INTEGER),
        FieldSpec("mutant_allele_read_count", ValueType.INTEGER),
        FieldSpec("quality_score", ValueType.DECIMAL),
        FieldSpec("probability", ValueType.DECIMAL),
    ),
)

SSM_S_SCHEMA = RecordSchema(
    file_type=FileType.SSM_S,
    fields=(_identifier(OBSERVATION_ID),),
)
