"""
Gaussian mixture conditional: linear-Gaussian conditionals indexed by discrete parents.

Represents p(X | M, Z) where X are continuous frontals, Z continuous parents
and M discrete parents. For each assignment m the branch density is

    p(X | m, Z) ∝ exp(−½ ‖ (R_m X + S_m Z − d_m) / σ_m ‖²)

stored as a DecisionTree[GaussianConditional | None] keyed by M. A None leaf
is an absent (infeasible / unreached) branch: it becomes an empty
GaussianFactorGraph in as_gaussian_factor_graph_tree() and so contributes
nothing when Sums are accumulated with add().
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from hybrid_slam.common import constants
from hybrid_slam.common.errors import ShapeMismatch
from hybrid_slam.common.keys import (
    DiscreteKeys,
    Key,
    KeyFormatter,
    as_discrete_keys,
    cardinality_product,
    default_key_formatter,
)
from hybrid_slam.discrete.decision_tree import DecisionTree, leaf_equal_with
from hybrid_slam.hybrid.hybrid_factor import HybridFactor, Sum
from hybrid_slam.linear.gaussian_conditional import GaussianConditional
from hybrid_slam.linear.gaussian_factor_graph import GaussianFactorGraph

_logger = logging.getLogger(__name__)

Conditionals = DecisionTree  # DecisionTree[Optional[GaussianConditional]]


def _as_graph(conditional: Optional[GaussianConditional]) -> GaussianFactorGraph:
    if conditional is None:
        return GaussianFactorGraph()
    return GaussianFactorGraph([conditional])


class GaussianMixtureConditional(HybridFactor):
    """
    Conditional of Gaussian mixtures indexed by discrete parents.

    Args:
        continuous_frontals: Frontal continuous keys X
        continuous_parents: Parent continuous keys Z
        discrete_parents: Discrete parent keys M (the tree's labels)
        conditionals: DecisionTree of GaussianConditional (or None) with one
            leaf per assignment to discrete_parents

    Raises:
        ShapeMismatch: leaf count or tree labels disagree with discrete_parents,
            or a conditional's frontal/parent keys disagree with the declared ones
    """

    def __init__(
        self,
        continuous_frontals: Sequence[Key],
        continuous_parents: Sequence[Key],
        discrete_parents: Sequence,
        conditionals: Conditionals,
    ):
        continuous_frontals = tuple(int(k) for k in continuous_frontals)
        continuous_parents = tuple(int(k) for k in continuous_parents)
        super().__init__(continuous_frontals + continuous_parents, discrete_parents)
        self._nr_frontals = len(continuous_frontals)
        self._conditionals = conditionals
        self._check_shape()
        _logger.debug(
            f"GaussianMixtureConditional frontals={list(continuous_frontals)} "
            f"parents={list(continuous_parents)} discrete={[str(k) for k in self.discrete_keys]} "
            f"leaves={conditionals.nr_leaves()}"
        )

    @classmethod
    def from_conditionals(
        cls,
        continuous_frontals: Sequence[Key],
        continuous_parents: Sequence[Key],
        discrete_parents: Sequence,
        conditionals: Sequence[Optional[GaussianConditional]],
    ) -> "GaussianMixtureConditional":
        """
        Build from one conditional per discrete assignment.

        conditionals follow DecisionTree.from_values() order: the first discrete
        parent is most significant, the last varies fastest.
        """
        discrete_parents = as_discrete_keys(discrete_parents)
        conditionals = list(conditionals)
        expected = cardinality_product(discrete_parents)
        if len(conditionals) != expected:
            raise ShapeMismatch(
                f"GaussianMixtureConditional.from_conditionals: {len(conditionals)} conditionals "
                f"for discrete parents {[str(k) for k in discrete_parents]} (expected {expected})"
            )
        tree = DecisionTree.from_values(discrete_parents, conditionals)
        return cls(continuous_frontals, continuous_parents, discrete_parents, tree)

    def _check_shape(self) -> None:
        name = type(self).__name__
        declared = {dk.key: dk.cardinality for dk in self.discrete_keys}
        labels = self._conditionals.discrete_keys_dict()
        if labels != declared:
            raise ShapeMismatch(
                f"{name}: tree branches on {sorted(labels.items())}, "
                f"discrete parents are {sorted(declared.items())}"
            )
        nr_leaves = self._conditionals.nr_leaves()
        expected = cardinality_product(self.discrete_keys)
        if nr_leaves != expected:
            raise ShapeMismatch(f"{name}: tree has {nr_leaves} leaves, expected {expected}")
        frontals, parents = self.frontals, self.parents
        for conditional in self._conditionals.leaves():
            if conditional is None:
                continue
            if not isinstance(conditional, GaussianConditional):
                raise TypeError(f"{name}: leaf is {type(conditional).__name__}, not GaussianConditional")
            if conditional.frontal_keys() != frontals or conditional.parent_keys() != parents:
                raise ShapeMismatch(
                    f"{name}: leaf p({list(conditional.frontal_keys())} | "
                    f"{list(conditional.parent_keys())}) != p({list(frontals)} | {list(parents)})"
                )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def conditionals(self) -> Conditionals:
        """The underlying DecisionTree of conditionals (read-only)."""
        return self._conditionals

    @property
    def nr_frontals(self) -> int:
        return self._nr_frontals

    @property
    def frontals(self) -> Tuple[Key, ...]:
        return self.continuous_keys[: self._nr_frontals]

    @property
    def parents(self) -> Tuple[Key, ...]:
        return self.continuous_keys[self._nr_frontals:]

    @property
    def discrete_parents(self) -> DiscreteKeys:
        return self.discrete_keys

    def conditional(self, assignment: Mapping[Key, int]) -> Optional[GaussianConditional]:
        return self._conditionals(assignment)

    # -------------------------------------------------------------------------
    # Sum algebra
    # -------------------------------------------------------------------------

    def as_gaussian_factor_graph_tree(self) -> Sum:
        """Each leaf as a single-factor graph (absent leaf -> empty graph)."""
        return self._conditionals.apply(_as_graph)

    def add(self, sum_: Sum) -> Sum:
        """
        Merge the Gaussian factor graphs in self and sum_, keeping the tree structure.

        Accumulation only: for each assignment the result holds this branch's
        conditional followed by sum_'s factors for the same assignment.
        """
        result = super().add(sum_)
        _logger.debug(
            f"GaussianMixtureConditional.add: {sum_.nr_leaves()} -> {result.nr_leaves()} leaves "
            f"over {result.labels()}"
        )
        return result

    def error(self, values: Mapping[Key, np.ndarray], assignment: Mapping[Key, int]) -> float:
        """Error of the branch selected by assignment; absent branch contributes 0."""
        conditional = self._conditionals(assignment)
        if conditional is None:
            return 0.0
        return conditional.error(values)

    # -------------------------------------------------------------------------
    # Testable
    # -------------------------------------------------------------------------

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        if not isinstance(other, GaussianMixtureConditional):
            return False
        if (
            self.frontals != other.frontals
            or self.parents != other.parents
            or sorted(self.discrete_keys) != sorted(other.discrete_keys)
        ):
            return False
        same = leaf_equal_with(lambda a, b: a.equals(b, tol))
        return self._conditionals.equals(other._conditionals, same)

    def to_string(
        self,
        s: str = constants.MIXTURE_PRINT_PREFIX_DEFAULT,
        key_formatter: KeyFormatter = default_key_formatter,
    ) -> str:
        lines = [s.rstrip("\n")]
        lines.append(" Frontals: " + " ".join(key_formatter(k) for k in self.frontals))
        lines.append(" Parents: " + " ".join(key_formatter(k) for k in self.parents))
        lines.append(
            " Discrete Keys: "
            + " ".join(f"({key_formatter(dk.key)}, {dk.cardinality})" for dk in self.discrete_keys)
        )

        def fmt(conditional: Optional[GaussianConditional]) -> str:
            if conditional is None:
                return "absent"
            return "\n" + conditional.to_string("  ", key_formatter)

        lines.append(self._conditionals.to_string(" ", key_formatter, fmt))
        return "\n".join(lines)

    def print(
        self,
        s: str = constants.MIXTURE_PRINT_PREFIX_DEFAULT,
        key_formatter: KeyFormatter = default_key_formatter,
    ) -> None:
        print(self.to_string(s, key_formatter))
