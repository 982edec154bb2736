"""
Continuous and discrete key types.

Continuous keys are plain ints. A DiscreteKey pairs an id with its
cardinality; DiscreteKeys are ordered by id, which is the global label order
used by decision trees.
"""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Mapping, Sequence, Tuple

from hybrid_slam.common.errors import ShapeMismatch

Key = int
KeyFormatter = Callable[[Key], str]

# Discrete assignment: discrete key id -> value index
Assignment = Dict[Key, int]


def default_key_formatter(key: Key) -> str:
    return str(key)


@dataclass(frozen=True, order=True)
class DiscreteKey:
    """Discrete variable id and the number of values it can take."""
    key: Key
    cardinality: int

    def __post_init__(self) -> None:
        if int(self.cardinality) < 1:
            raise ShapeMismatch(
                f"DiscreteKey({self.key}): cardinality must be >= 1, got {self.cardinality}"
            )

    def __str__(self) -> str:
        return f"({self.key}, {self.cardinality})"


DiscreteKeys = Tuple[DiscreteKey, ...]


def as_discrete_keys(keys: Sequence) -> DiscreteKeys:
    """Normalize DiscreteKey or (key, cardinality) pairs to a DiscreteKeys tuple."""
    out = []
    for k in keys:
        if isinstance(k, DiscreteKey):
            out.append(k)
        else:
            key, card = k
            out.append(DiscreteKey(int(key), int(card)))
    ids = [k.key for k in out]
    if len(set(ids)) != len(ids):
        raise ShapeMismatch(f"as_discrete_keys: duplicate discrete key ids {ids}")
    return tuple(out)


def cardinality_product(keys: Sequence[DiscreteKey]) -> int:
    return math.prod(k.cardinality for k in keys)


def merge_discrete_keys(
    a: Sequence[DiscreteKey], b: Sequence[DiscreteKey]
) -> List[DiscreteKey]:
    """
    Sorted union of two discrete key collections.

    Raises ShapeMismatch if the same id appears with two cardinalities.
    """
    merged: Dict[Key, DiscreteKey] = {}
    for dk in itertools.chain(a, b):
        seen = merged.get(dk.key)
        if seen is not None and seen.cardinality != dk.cardinality:
            raise ShapeMismatch(
                f"merge_discrete_keys: key {dk.key} has cardinality "
                f"{seen.cardinality} and {dk.cardinality}"
            )
        merged[dk.key] = dk
    return sorted(merged.values())


def cartesian_product(keys: Sequence[DiscreteKey]) -> Iterator[Assignment]:
    """
    Enumerate every assignment to keys.

    The first key is most significant, i.e. the last key varies fastest.
    This matches the value ordering of DecisionTree.from_values().
    """
    keys = list(keys)
    for combo in itertools.product(*(range(k.cardinality) for k in keys)):
        yield {k.key: v for k, v in zip(keys, combo)}


def format_assignment(assignment: Mapping[Key, int], formatter: KeyFormatter = default_key_formatter) -> str:
    return ", ".join(f"{formatter(k)}={v}" for k, v in sorted(assignment.items()))
