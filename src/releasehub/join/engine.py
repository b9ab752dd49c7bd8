"""Join pipeline turning ssm record streams into occurrence documents.

Stages, in order:

1. primary x secondary on ``observation_id`` (primary-preserving),
2. re-key on ``(analysis_id, analyzed_sample_id)`` and inner join with meta,
3. resolve the donor of each joined tuple and group on ``(donor, mutation)``,
4. transform every group into one occurrence document.

Every stage is a plain function so it can be tested on its own; the lookups
arrive as broadcast values.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Hashable, Mapping
from operator import itemgetter
from typing import Any

import dask.bag as db

from releasehub.coercion import SSM_M_SCHEMA, SSM_P_SCHEMA, SSM_S_SCHEMA
from releasehub.config import (
    ANALYSIS_ID,
    ANALYZED_SAMPLE_ID,
    CONSEQUENCE,
    DONOR_ID,
    MUTATION_FIELDS,
    MUTATION_ID,
    OBSERVATION,
    OBSERVATION_ID,
    PROJECT_ID,
    SAMPLE_ID,
    SPECIMEN_ID,
)
from releasehub.distributed import Broadcast, group_by_key, join, join_grouped
from releasehub.models import Donor

logger = logging.getLogger("releasehub.join")

Record = dict[str, Any]
PrimaryWithSecondaries = tuple[Record, list[Record]]
JoinedTuple = tuple[PrimaryWithSecondaries, Record]


def observation_key(record: Mapping[str, Any]) -> Hashable:
    return record[OBSERVATION_ID]


def analysis_sample_key(record: Mapping[str, Any]) -> tuple[str, str]:
    return record[ANALYSIS_ID], record[ANALYZED_SAMPLE_ID]


def primary_analysis_sample_key(primary_with_secondaries: PrimaryWithSecondaries) -> tuple[str, str]:
    primary, _ = primary_with_secondaries
    return analysis_sample_key(primary)


def join_primary_secondary(ssm_p: db.Bag, ssm_s: db.Bag) -> db.Bag:
    """Attach every secondary record to its primary; primaries are never dropped."""

    return join_grouped(ssm_p, ssm_s, observation_key, observation_key).map(itemgetter(1))


def join_meta(primary_secondary: db.Bag, ssm_m: db.Bag) -> db.Bag:
    """Inner join with meta records; tuples without meta are filtered out."""

    return join(
        primary_secondary,
        ssm_m,
        primary_analysis_sample_key,
        analysis_sample_key,
    ).map(itemgetter(1))


def key_donor_mutation(
    joined: JoinedTuple,
    donors: Mapping[str, Donor],
) -> list[tuple[tuple[str, str], JoinedTuple]]:
    """Key a joined tuple by ``(donor_id, mutation_id)``.

    Returns an empty list, after logging a warning, when the analyzed sample
    has no donor.
    """

    (primary, _), _ = joined
    analyzed_sample_id = primary[ANALYZED_SAMPLE_ID]
    donor = donors.get(analyzed_sample_id)
    if donor is None:
        logger.warning(
            "Dropping observation %s: no donor for analyzed sample %s",
            primary.get(OBSERVATION_ID),
            analyzed_sample_id,
        )
        return []
    return [((donor.donor_id, primary[MUTATION_ID]), joined)]


def group_by_donor_mutation(joined: db.Bag, donors: Broadcast[Mapping[str, Donor]]) -> db.Bag:
    return group_by_key(joined.map(key_donor_mutation, donors=donors.delayed).flatten())


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def transform_to_occurrence(
    group: tuple[tuple[str, str], list[JoinedTuple]],
    donors: Mapping[str, Donor],
    samples: Mapping[str, str],
    project_name: str | None = None,
) -> Record:
    """Build one occurrence document from every tuple of a donor/mutation group."""

    (donor_id, mutation_id), joined_tuples = group

    contributions = sorted(
        (
            ({**meta, **primary}, secondaries, primary)
            for (primary, secondaries), meta in joined_tuples
        ),
        key=lambda contribution: _canonical(contribution[0]),
    )
    _, _, first_primary = contributions[0]
    analyzed_sample_id = first_primary[ANALYZED_SAMPLE_ID]
    donor = donors[analyzed_sample_id]

    occurrence: Record = {
        DONOR_ID: donor_id,
        PROJECT_ID: project_name if project_name is not None else first_primary.get(PROJECT_ID),
        MUTATION_ID: mutation_id,
        SPECIMEN_ID: donor.specimen_id,
    }
    sample_id = samples.get(analyzed_sample_id)
    if sample_id is not None:
        occurrence[SAMPLE_ID] = sample_id

    for field_name in MUTATION_FIELDS:
        if field_name in first_primary:
            occurrence[field_name] = first_primary[field_name]

    occurrence[OBSERVATION] = [observation for observation, _, _ in contributions]
    occurrence[CONSEQUENCE] = sorted(
        (secondary for _, secondaries, _ in contributions for secondary in secondaries),
        key=_canonical,
    )
    return occurrence


def join_observations(
    ssm_m: db.Bag,
    ssm_p: db.Bag,
    ssm_s: db.Bag,
    donors: Broadcast[Mapping[str, Donor]],
    samples: Broadcast[Mapping[str, str]],
    project_name: str | None = None,
) -> db.Bag:
    """Compose the join stages over raw ssm streams.

    Records are coerced first; a malformed record raises
    ``MalformedRecordError`` when the result is computed.
    """

    primary_secondary = join_primary_secondary(
        ssm_p.map(SSM_P_SCHEMA.coerce),
        ssm_s.map(SSM_S_SCHEMA.coerce),
    )
    observations = join_meta(primary_secondary, ssm_m.map(SSM_M_SCHEMA.coerce))
    grouped = group_by_donor_mutation(observations, donors)
    return grouped.map(
        transform_to_occurrence,
        donors=donors.delayed,
        samples=samples.delayed,
        project_name=project_name,
    )
