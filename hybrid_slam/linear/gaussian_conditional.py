"""
Linear-Gaussian conditional density.

    p(x_F | x_P) ∝ exp(−½ ‖ (R x_F + Σⱼ Sⱼ x_Pⱼ − d) / σ ‖²)

R (the stacked frontal blocks) is square and upper triangular. A conditional
is a JacobianFactor whose first nr_frontals keys are frontal, so it can be
placed in a GaussianFactorGraph as-is.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import solve_triangular

from hybrid_slam.common import constants
from hybrid_slam.common.errors import KeyNotFound, ShapeMismatch
from hybrid_slam.common.keys import Key, KeyFormatter, default_key_formatter
from hybrid_slam.linear.jacobian_factor import JacobianFactor, _as_vector


class GaussianConditional(JacobianFactor):
    """Conditional on the first nr_frontals keys given the remaining keys."""

    def __init__(
        self,
        terms: Sequence[Tuple[Key, np.ndarray]],
        nr_frontals: int,
        d: np.ndarray,
        sigmas: Optional[np.ndarray] = None,
    ):
        super().__init__(terms, d, sigmas)
        nr_frontals = int(nr_frontals)
        if not 1 <= nr_frontals <= len(self.keys):
            raise ShapeMismatch(
                f"GaussianConditional: nr_frontals={nr_frontals} with {len(self.keys)} keys"
            )
        self._nr_frontals = nr_frontals
        R = self.R
        if R.shape[0] != R.shape[1]:
            raise ShapeMismatch(f"GaussianConditional: R must be square, got {R.shape}")
        if not np.allclose(np.tril(R, -1), 0.0):
            raise ShapeMismatch("GaussianConditional: R must be upper triangular")

    @classmethod
    def from_mean_and_stddev(
        cls,
        key: Key,
        mean: np.ndarray,
        sigma: float,
        parents: Sequence[Tuple[Key, np.ndarray]] = (),
    ) -> "GaussianConditional":
        """
        p(x | parents) = N(x; mean − Σ Sⱼ x_Pⱼ, σ² I).

        With no parents this is the prior N(mean, σ² I).
        """
        mean = _as_vector(mean)
        n = mean.shape[0]
        return cls(
            [(key, np.eye(n))] + list(parents),
            1,
            mean,
            np.full(n, float(sigma)),
        )

    # -------------------------------------------------------------------------
    # Conditional interface
    # -------------------------------------------------------------------------

    @property
    def nr_frontals(self) -> int:
        return self._nr_frontals

    def frontal_keys(self) -> Tuple[Key, ...]:
        return self.keys[: self._nr_frontals]

    def parent_keys(self) -> Tuple[Key, ...]:
        return self.keys[self._nr_frontals:]

    @property
    def R(self) -> np.ndarray:
        return np.hstack([self.block(k) for k in self.frontal_keys()])

    def S(self, key: Key) -> np.ndarray:
        if key not in self.parent_keys():
            raise KeyNotFound(key, "GaussianConditional.S")
        return self.block(key)

    @property
    def d(self) -> np.ndarray:
        return self.b

    def solve(self, parent_values: Optional[Mapping[Key, np.ndarray]] = None) -> Dict[Key, np.ndarray]:
        """Most probable frontal values given parents: R x = d − Σ Sⱼ x_Pⱼ."""
        parent_values = parent_values or {}
        rhs = np.array(self.d, dtype=float)
        for k in self.parent_keys():
            if k not in parent_values:
                raise KeyNotFound(k, "GaussianConditional.solve")
            rhs -= self.block(k) @ _as_vector(parent_values[k])
        # σ scales rows of both sides equally, so it drops out
        x = solve_triangular(self.R, rhs, lower=False)
        out: Dict[Key, np.ndarray] = {}
        offset = 0
        for k in self.frontal_keys():
            dim = self.block(k).shape[1]
            out[k] = x[offset:offset + dim]
            offset += dim
        return out

    def as_jacobian_factor(self) -> JacobianFactor:
        """Same quadratic as a plain (non-conditional) factor."""
        return JacobianFactor(self.terms(), self.d, self.sigmas)

    # -------------------------------------------------------------------------
    # Testable
    # -------------------------------------------------------------------------

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        if not isinstance(other, GaussianConditional):
            return False
        return self._nr_frontals == other._nr_frontals and super().equals(other, tol)

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        frontals = " ".join(key_formatter(k) for k in self.frontal_keys())
        parents = " ".join(key_formatter(k) for k in self.parent_keys())
        header = f"{s}p({frontals}" + (f" | {parents})" if parents else ")")
        body = super().to_string("", key_formatter).split("\n", 1)[1]
        return f"{header}\n{body}"
