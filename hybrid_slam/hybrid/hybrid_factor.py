"""
Hybrid factor base and the closed set of hybrid factor kinds.

Every hybrid factor can express its continuous content as a Sum, a
DecisionTree of GaussianFactorGraphs indexed by its discrete keys, and fold
that content into an accumulator Sum with add(). The kinds are:

- HybridDiscreteFactor: discrete scope only, contributes no continuous factors
- HybridGaussianFactor: continuous scope only, same factor in every branch
- GaussianMixtureConditional: both (see gaussian_mixture_conditional.py)
"""

from __future__ import annotations

import abc
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

from hybrid_slam.common import constants
from hybrid_slam.common.errors import ShapeMismatch
from hybrid_slam.common.keys import (
    DiscreteKeys,
    Key,
    KeyFormatter,
    as_discrete_keys,
    default_key_formatter,
)
from hybrid_slam.discrete.decision_tree import DecisionTree
from hybrid_slam.discrete.discrete_factor import DiscreteTableFactor
from hybrid_slam.linear.gaussian_factor_graph import GaussianFactorGraph
from hybrid_slam.linear.jacobian_factor import JacobianFactor

# DecisionTree[GaussianFactorGraph]
Sum = DecisionTree


def empty_sum() -> Sum:
    """Accumulator identity: one branch holding an empty graph."""
    return DecisionTree.leaf(GaussianFactorGraph())


def add_graphs(
    a: Optional[GaussianFactorGraph], b: Optional[GaussianFactorGraph]
) -> GaussianFactorGraph:
    """Graph union; an absent (None) operand contributes nothing."""
    if a is None:
        return b if b is not None else GaussianFactorGraph()
    if b is None:
        return a
    return a.combined(b)


class HybridFactorKind(Enum):
    DISCRETE = "discrete"
    CONTINUOUS = "continuous"
    HYBRID = "hybrid"


class HybridFactor(abc.ABC):
    """Factor whose scope may mix continuous keys and discrete keys."""

    def __init__(self, continuous_keys: Sequence[Key] = (), discrete_keys: Sequence = ()):
        self._continuous_keys: Tuple[Key, ...] = tuple(int(k) for k in continuous_keys)
        self._discrete_keys: DiscreteKeys = as_discrete_keys(discrete_keys)
        if len(set(self._continuous_keys)) != len(self._continuous_keys):
            raise ShapeMismatch(f"{type(self).__name__}: duplicate continuous keys {self._continuous_keys}")
        clash = set(self._continuous_keys) & {dk.key for dk in self._discrete_keys}
        if clash:
            raise ShapeMismatch(f"{type(self).__name__}: keys {sorted(clash)} are both continuous and discrete")

    @property
    def continuous_keys(self) -> Tuple[Key, ...]:
        return self._continuous_keys

    @property
    def discrete_keys(self) -> DiscreteKeys:
        return self._discrete_keys

    @property
    def keys(self) -> Tuple[Key, ...]:
        """Continuous keys followed by discrete key ids."""
        return self._continuous_keys + tuple(dk.key for dk in self._discrete_keys)

    @property
    def kind(self) -> HybridFactorKind:
        if not self._continuous_keys:
            return HybridFactorKind.DISCRETE
        if not self._discrete_keys:
            return HybridFactorKind.CONTINUOUS
        return HybridFactorKind.HYBRID

    def is_discrete(self) -> bool:
        return self.kind is HybridFactorKind.DISCRETE

    def is_continuous(self) -> bool:
        return self.kind is HybridFactorKind.CONTINUOUS

    def is_hybrid(self) -> bool:
        return self.kind is HybridFactorKind.HYBRID

    @abc.abstractmethod
    def as_gaussian_factor_graph_tree(self) -> Sum:
        """Continuous content as a DecisionTree of GaussianFactorGraphs."""

    def add(self, sum_: Sum) -> Sum:
        """Merge this factor's graphs into sum_, branch by branch."""
        return self.as_gaussian_factor_graph_tree().apply2(sum_, add_graphs)

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        return (
            type(other) is type(self)
            and self._continuous_keys == other._continuous_keys
            and self._discrete_keys == other._discrete_keys
        )

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        continuous = " ".join(key_formatter(k) for k in self._continuous_keys)
        discrete = " ".join(f"({key_formatter(dk.key)}, {dk.cardinality})" for dk in self._discrete_keys)
        return f"{s}{type(self).__name__} [{self.kind.value}] continuous: [{continuous}] discrete: [{discrete}]"

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(self.to_string(s, key_formatter))


class HybridGaussianFactor(HybridFactor):
    """A plain Gaussian factor living in a hybrid graph."""

    def __init__(self, factor: JacobianFactor):
        super().__init__(factor.keys, ())
        self._factor = factor

    @property
    def inner(self) -> JacobianFactor:
        return self._factor

    def as_gaussian_factor_graph_tree(self) -> Sum:
        return DecisionTree.leaf(GaussianFactorGraph([self._factor]))

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        return super().equals(other, tol) and self._factor.equals(other._factor, tol)

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        return super().to_string(s, key_formatter) + "\n" + self._factor.to_string("", key_formatter)


class HybridDiscreteFactor(HybridFactor):
    """A discrete potential living in a hybrid graph."""

    def __init__(self, factor: DiscreteTableFactor):
        super().__init__((), factor.discrete_keys)
        self._factor = factor

    @property
    def inner(self) -> DiscreteTableFactor:
        return self._factor

    def __call__(self, assignment: Mapping[Key, int]) -> float:
        return self._factor(assignment)

    def as_gaussian_factor_graph_tree(self) -> Sum:
        return empty_sum()

    def add(self, sum_: Sum) -> Sum:
        return sum_

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        return super().equals(other, tol) and self._factor.equals(other._factor, tol)

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        return super().to_string(s, key_formatter) + "\n" + self._factor.to_string("", key_formatter)
