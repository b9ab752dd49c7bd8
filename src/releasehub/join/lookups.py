"""Coordinator-local lookups derived from the clinical and sample streams."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

import dask.bag as db

from releasehub.coercion import (
    CLINICAL_SAMPLE_SCHEMA,
    CLINICAL_SCHEMA,
    CLINICAL_SPECIMEN_SCHEMA,
    SAMPLE_SCHEMA,
)
from releasehub.config import (
    ANALYZED_SAMPLE_ID,
    DEFAULT_MAX_DONOR_LOOKUP_RECORDS,
    DONOR_ID,
    SAMPLE,
    SAMPLE_ID,
    SPECIMEN,
    SPECIMEN_ID,
    DuplicateSamplePolicy,
)
from releasehub.distributed import collect_pairs
from releasehub.exception import (
    DuplicateSampleIdError,
    LookupBudgetExceeded,
    ResourceExhaustedError,
)
from releasehub.models import Donor

V = TypeVar("V")

logger = logging.getLogger("releasehub.join.lookups")

DONOR_LOOKUP = "donor"
SAMPLE_SURROGATE_LOOKUP = "sample_surrogate"


def resolve_donor_lookup(
    clinical: db.Bag,
    *,
    max_records: int = DEFAULT_MAX_DONOR_LOOKUP_RECORDS,
    duplicate_policy: DuplicateSamplePolicy = DuplicateSamplePolicy.LAST_WRITE_WINS,
) -> dict[str, Donor]:
    """Map every analyzed sample id in the clinical stream to its donor.

    The clinical stream is collected to the coordinator, so its donor count is
    checked against ``max_records`` before anything is materialized.
    """

    record_count = int(clinical.count().compute())
    if record_count > max_records:
        raise LookupBudgetExceeded(DONOR_LOOKUP, record_count, max_records)

    try:
        donors = clinical.compute()
    except MemoryError as exc:
        raise ResourceExhaustedError(
            f"Could not materialize {record_count} clinical records for the {DONOR_LOOKUP} lookup"
        ) from exc

    lookup = merge_pairs(
        DONOR_LOOKUP,
        (pair for donor in donors for pair in donor_entries(donor)),
        duplicate_policy,
    )
    logger.info("Resolved %s lookup: donors=%d samples=%d", DONOR_LOOKUP, record_count, len(lookup))
    return lookup


def donor_entries(donor: Mapping[str, Any]) -> list[tuple[str, Donor]]:
    """Walk donor -> specimen -> sample and emit one entry per sample."""

    donor_row = CLINICAL_SCHEMA.coerce(donor)
    entries = []
    for specimen in donor_row.get(SPECIMEN) or ():
        specimen_row = CLINICAL_SPECIMEN_SCHEMA.coerce(specimen)
        for sample in specimen_row.get(SAMPLE) or ():
            sample_row = CLINICAL_SAMPLE_SCHEMA.coerce(sample)
            entries.append(
                (
                    sample_row[ANALYZED_SAMPLE_ID],
                    Donor(
                        donor_id=donor_row[DONOR_ID],
                        specimen_id=specimen_row[SPECIMEN_ID],
                        sample_id=sample_row[SAMPLE_ID],
                    ),
                )
            )
    return entries


def resolve_sample_surrogate_lookup(
    samples: db.Bag,
    *,
    duplicate_policy: DuplicateSamplePolicy = DuplicateSamplePolicy.LAST_WRITE_WINS,
) -> dict[str, str]:
    """Map submitted analyzed sample ids to internal sample ids."""

    pairs = collect_pairs(samples.map(surrogate_pair))
    lookup = merge_pairs(SAMPLE_SURROGATE_LOOKUP, pairs, duplicate_policy)
    logger.info("Resolved %s lookup: samples=%d", SAMPLE_SURROGATE_LOOKUP, len(lookup))
    return lookup


def surrogate_pair(sample: Mapping[str, Any]) -> tuple[str, str]:
    row = SAMPLE_SCHEMA.coerce(sample)
    return row[ANALYZED_SAMPLE_ID], row[SAMPLE_ID]


def merge_pairs(
    lookup_name: str,
    pairs: Iterable[tuple[str, V]],
    duplicate_policy: DuplicateSamplePolicy,
) -> dict[str, V]:
    """Fold pairs into a dict applying the duplicate analyzed sample id policy.

    A repeated key with an equal value is not a conflict. Under
    ``last_write_wins`` the later pair replaces the earlier one; pair order
    follows partition order and is not guaranteed.
    """

    lookup: dict[str, V] = {}
    conflicts = 0
    for key, value in pairs:
        previous = lookup.get(key)
        if key in lookup and previous != value:
            if duplicate_policy is DuplicateSamplePolicy.FAIL:
                raise DuplicateSampleIdError(lookup_name, key, previous, value)
            conflicts += 1
        lookup[key] = value

    if conflicts:
        logger.warning(
            "%s lookup: %d conflicting duplicate analyzed sample ids; kept the last value seen",
            lookup_name,
            conflicts,
        )
    return lookup
