"""
Sum accumulation and per-branch continuous elimination.

sum_frontals() folds the continuous content of hybrid factors into one Sum.
eliminate_continuous() then eliminates continuous frontals in every discrete
branch with ordinary Gaussian elimination, producing a
GaussianMixtureConditional and a tree of remaining separator factors.

Absent-branch policy:
- combine: None / empty graph is a zero contribution
- elimination: an empty branch graph yields an absent conditional and an
  absent remaining factor
- elimination: a branch whose factors mention none of the frontal keys yields
  an absent conditional; its factors pass through unchanged as one stacked
  remaining factor on the separator
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence, Tuple

from hybrid_slam.common.errors import ShapeMismatch
from hybrid_slam.common.keys import Key
from hybrid_slam.common.param_models import HybridParams
from hybrid_slam.discrete.decision_tree import DecisionTree
from hybrid_slam.hybrid.gaussian_mixture_conditional import GaussianMixtureConditional
from hybrid_slam.hybrid.hybrid_factor import HybridFactor, Sum, empty_sum
from hybrid_slam.linear.gaussian_factor_graph import GaussianFactorGraph

_logger = logging.getLogger(__name__)


def sum_frontals(factors: Iterable[HybridFactor]) -> Sum:
    """
    Accumulate the continuous content of hybrid factors into one Sum.

    Per assignment, the result holds the multiset union of every factor's
    graph for that assignment, whatever order the factors come in.
    """
    result = empty_sum()
    count = 0
    for factor in factors:
        result = factor.add(result)
        count += 1
    _logger.debug(f"sum_frontals: {count} factors -> {result.nr_leaves()} branches over {result.labels()}")
    return result


def _branch_dims(sum_: Sum) -> Dict[Key, int]:
    dims: Dict[Key, int] = {}
    for graph in sum_.leaves():
        if graph is None:
            continue
        for k, d in graph.dims().items():
            if dims.setdefault(k, d) != d:
                raise ShapeMismatch(f"eliminate_continuous: key {k} has dims {dims[k]} and {d} across branches")
    return dims


def eliminate_continuous(
    sum_: Sum,
    frontal_keys: Sequence[Key],
    params: Optional[HybridParams] = None,
) -> Tuple[GaussianMixtureConditional, DecisionTree]:
    """
    Eliminate frontal_keys in every discrete branch of sum_.

    The separator is the sorted union of the non-frontal keys over all
    branches, so every branch conditional has the same parents (keys a branch
    does not mention get zero parent blocks).

    Returns:
        (GaussianMixtureConditional over the Sum's discrete keys,
         DecisionTree of remaining JacobianFactor or None)
    """
    params = params or HybridParams()
    frontal_keys = [int(k) for k in frontal_keys]
    dims = _branch_dims(sum_)
    separator = sorted(k for k in dims if k not in frontal_keys)

    def eliminate_branch(graph: Optional[GaussianFactorGraph]):
        if graph is None or graph.empty():
            return None, None
        if not set(graph.keys()) & set(frontal_keys):
            return None, graph.as_jacobian_factor(separator, dims)
        return graph.eliminate(frontal_keys, separator, dims, rank_tol=params.rank_tol)

    results = sum_.apply(eliminate_branch)
    conditionals = results.apply(lambda pair: pair[0])
    remaining = results.apply(lambda pair: pair[1])

    absent = sum(1 for c in conditionals.leaves() if c is None)
    if absent:
        _logger.debug(f"eliminate_continuous: {absent}/{conditionals.nr_leaves()} branches are absent")

    mixture = GaussianMixtureConditional(frontal_keys, separator, sum_.discrete_keys(), conditionals)
    _logger.debug(
        f"eliminate_continuous: frontals={frontal_keys} separator={separator} "
        f"discrete={sum_.labels()}"
    )
    return mixture, remaining
