"""Distributed collection primitives built on dask bags.

Joins are expressed as a tagged cogroup: both sides are tagged, concatenated
and grouped on the join key, so neither side has to fit on one worker.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Hashable, Mapping, Sequence
from functools import partial
from operator import itemgetter
from types import MappingProxyType
from typing import Any, Generic, TypeVar

import dask
import dask.bag as db

T = TypeVar("T")
KeyFunc = Callable[[Any], Hashable]

_LEFT = 0
_RIGHT = 1

# In-memory task shuffle; the default disk shuffle spills through partd.
_SHUFFLE = "tasks"


def key_by(bag: db.Bag, key: KeyFunc) -> db.Bag:
    """Pair every record with its key: ``record -> (key, record)``."""

    return bag.map(partial(_pair_with_key, key=key))


def group_by_key(pairs: db.Bag) -> db.Bag:
    """Group ``(key, value)`` pairs into ``(key, [value, ...])``."""

    return pairs.groupby(itemgetter(0), shuffle=_SHUFFLE).map(_drop_group_keys)


def cogroup(left: db.Bag, right: db.Bag, left_key: KeyFunc, right_key: KeyFunc) -> db.Bag:
    """Group both sides on their keys into ``(key, lefts, rights)`` triples.

    Keys present on only one side yield an empty list for the other side.
    """

    tagged = db.concat(
        [
            left.map(partial(_tag, side=_LEFT, key=left_key)),
            right.map(partial(_tag, side=_RIGHT, key=right_key)),
        ]
    )
    return tagged.groupby(itemgetter(0), shuffle=_SHUFFLE).map(_split_sides)


def join(left: db.Bag, right: db.Bag, left_key: KeyFunc, right_key: KeyFunc) -> db.Bag:
    """Inner equi-join emitting ``(key, (left, right))`` for every matching pair."""

    return cogroup(left, right, left_key, right_key).map(_inner_pairs).flatten()


def join_grouped(left: db.Bag, right: db.Bag, left_key: KeyFunc, right_key: KeyFunc) -> db.Bag:
    """Left-preserving join attaching all matching right records as a list.

    Every left record is emitted exactly once as ``(key, (left, [right, ...]))``;
    a left record without matches carries an empty list. Right records without
    a left counterpart are discarded.
    """

    return cogroup(left, right, left_key, right_key).map(_preserving_pairs).flatten()


def collect_pairs(pairs: db.Bag) -> list[tuple[Any, Any]]:
    """Materialize ``(key, value)`` pairs on the coordinator, preserving duplicates."""

    return [tuple(pair) for pair in pairs.compute()]


class Broadcast(Generic[T]):
    """Read-only snapshot of a small coordinator value shared with workers.

    ``value`` is a frozen view; ``delayed`` is the single graph node passed into
    bag operations. A changed value must be published as a new broadcast.
    """

    __slots__ = ("_name", "_owner", "_value", "_delayed")

    def __init__(self, value: T, *, name: str, owner: str) -> None:
        frozen = freeze(value)
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_owner", owner)
        object.__setattr__(self, "_value", frozen)
        object.__setattr__(
            self,
            "_delayed",
            dask.delayed(frozen, name=f"broadcast-{name}-{uuid.uuid4().hex}", traverse=False),
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Broadcast values are read-only")

    @property
    def name(self) -> str:
        return self._name

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def value(self) -> T:
        return self._value

    @property
    def delayed(self) -> Any:
        return self._delayed

    def __repr__(self) -> str:
        return f"Broadcast(name={self._name!r})"


def freeze(value: Any) -> Any:
    """Return a read-only view of mappings, sequences and sets."""

    if isinstance(value, MappingProxyType):
        return value
    if isinstance(value, Mapping):
        return MappingProxyType(dict(value))
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return tuple(value)
    return value


def _pair_with_key(record: Any, key: KeyFunc) -> tuple[Hashable, Any]:
    return key(record), record


def _drop_group_keys(group: tuple[Hashable, list[tuple[Hashable, Any]]]) -> tuple[Hashable, list[Any]]:
    key, pairs = group
    return key, [value for _, value in pairs]


def _tag(record: Any, side: int, key: KeyFunc) -> tuple[Hashable, int, Any]:
    return key(record), side, record


def _split_sides(group: tuple[Hashable, list[tuple[Hashable, int, Any]]]) -> tuple[Hashable, list[Any], list[Any]]:
    key, tagged = group
    lefts = [record for _, side, record in tagged if side == _LEFT]
    rights = [record for _, side, record in tagged if side == _RIGHT]
    return key, lefts, rights


def _inner_pairs(group: tuple[Hashable, list[Any], list[Any]]) -> list[tuple[Hashable, tuple[Any, Any]]]:
    key, lefts, rights = group
    return [(key, (left, right)) for left in lefts for right in rights]


def _preserving_pairs(group: tuple[Hashable, list[Any], list[Any]]) -> list[tuple[Hashable, tuple[Any, list[Any]]]]:
    key, lefts, rights = group
    return [(key, (left, list(rights))) for left in lefts]
