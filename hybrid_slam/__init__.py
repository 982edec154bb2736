"""
hybrid_slam: decision-tree-indexed Gaussian mixture conditionals.

Structure:
- common/: keys, errors, constants, parameter models, logging setup
- discrete/: generic DecisionTree and discrete potential tables
- linear/: JacobianFactor, GaussianConditional, GaussianFactorGraph
- hybrid/: HybridFactor kinds, GaussianMixtureConditional, Sum elimination

This package avoids eager imports; names below resolve lazily.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "DiscreteKey",
    "DecisionTree",
    "JacobianFactor",
    "GaussianConditional",
    "GaussianFactorGraph",
    "HybridFactor",
    "HybridGaussianFactor",
    "HybridDiscreteFactor",
    "GaussianMixtureConditional",
    "sum_frontals",
    "eliminate_continuous",
]

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    "DiscreteKey": ("hybrid_slam.common.keys", "DiscreteKey"),
    "DecisionTree": ("hybrid_slam.discrete.decision_tree", "DecisionTree"),
    "JacobianFactor": ("hybrid_slam.linear.jacobian_factor", "JacobianFactor"),
    "GaussianConditional": ("hybrid_slam.linear.gaussian_conditional", "GaussianConditional"),
    "GaussianFactorGraph": ("hybrid_slam.linear.gaussian_factor_graph", "GaussianFactorGraph"),
    "HybridFactor": ("hybrid_slam.hybrid.hybrid_factor", "HybridFactor"),
    "HybridGaussianFactor": ("hybrid_slam.hybrid.hybrid_factor", "HybridGaussianFactor"),
    "HybridDiscreteFactor": ("hybrid_slam.hybrid.hybrid_factor", "HybridDiscreteFactor"),
    "GaussianMixtureConditional": (
        "hybrid_slam.hybrid.gaussian_mixture_conditional",
        "GaussianMixtureConditional",
    ),
    "sum_frontals": ("hybrid_slam.hybrid.elimination", "sum_frontals"),
    "eliminate_continuous": ("hybrid_slam.hybrid.elimination", "eliminate_continuous"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
