"""Discrete potential table stored as a DecisionTree of floats."""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np

from hybrid_slam.common import constants
from hybrid_slam.common.keys import (
    DiscreteKeys,
    Key,
    KeyFormatter,
    as_discrete_keys,
    default_key_formatter,
)
from hybrid_slam.discrete.decision_tree import DecisionTree


class DiscreteTableFactor:
    """
    Non-negative potential phi(m) over discrete keys.

    Values follow DecisionTree.from_values() ordering (last key fastest).
    """

    def __init__(self, discrete_keys: Sequence, values: Sequence[float]):
        self.discrete_keys: DiscreteKeys = as_discrete_keys(discrete_keys)
        values = [float(v) for v in values]
        if any(v < 0.0 for v in values):
            raise ValueError(f"DiscreteTableFactor: negative potential in {values}")
        self.tree: DecisionTree[float] = DecisionTree.from_values(self.discrete_keys, values)

    @classmethod
    def from_tree(cls, discrete_keys: Sequence, tree: DecisionTree) -> "DiscreteTableFactor":
        discrete_keys = as_discrete_keys(discrete_keys)
        factor = cls.__new__(cls)
        factor.discrete_keys = discrete_keys
        factor.tree = tree
        return factor

    def __call__(self, assignment: Mapping[Key, int]) -> float:
        return self.tree(assignment)

    def __mul__(self, other: "DiscreteTableFactor") -> "DiscreteTableFactor":
        tree = self.tree.apply2(other.tree, lambda a, b: a * b)
        return DiscreteTableFactor.from_tree(tree.discrete_keys(), tree)

    def sum(self) -> float:
        return self.tree.fold(lambda v, acc: acc + v, 0.0)

    def normalized(self) -> "DiscreteTableFactor":
        total = self.sum()
        if total <= 0.0:
            raise ValueError("DiscreteTableFactor.normalized: potentials sum to zero")
        return DiscreteTableFactor.from_tree(self.discrete_keys, self.tree.apply(lambda v: v / total))

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        if not isinstance(other, DiscreteTableFactor):
            return False
        if sorted(self.discrete_keys) != sorted(other.discrete_keys):
            return False
        return self.tree.equals(other.tree, lambda a, b: bool(np.isclose(a, b, rtol=0.0, atol=tol)))

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        keys = " ".join(f"({key_formatter(k.key)}, {k.cardinality})" for k in self.discrete_keys)
        return f"{s}DiscreteTableFactor[{keys}]\n" + self.tree.to_string(" ", key_formatter, lambda v: f"{v:g}")
