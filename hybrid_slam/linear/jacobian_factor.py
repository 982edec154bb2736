"""
Linear least-squares factor in whitened-residual form.

    error(x) = ½ ‖ (Σⱼ Aⱼ xⱼ − b) / σ ‖²

One dense block Aⱼ per key, a right-hand side b and optional diagonal sigmas
(unit noise when omitted). Factors are immutable after construction.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from hybrid_slam.common import constants
from hybrid_slam.common.errors import KeyNotFound, ShapeMismatch
from hybrid_slam.common.keys import Key, KeyFormatter, default_key_formatter


def _as_vector(x: np.ndarray) -> np.ndarray:
    """Normalize (n,), (n,1), (1,n) into a flat (n,) float vector."""
    return np.asarray(x, dtype=float).reshape(-1)


def _as_matrix(A: np.ndarray, name: str) -> np.ndarray:
    A = np.array(A, dtype=float)
    if A.ndim == 1:
        A = A.reshape(-1, 1)
    if A.ndim != 2:
        raise ShapeMismatch(f"{name}: expected 2D block, got shape {A.shape}")
    return A


class JacobianFactor:
    """Gaussian factor ½‖(Ax − b)/σ‖² over an ordered tuple of keys."""

    def __init__(
        self,
        terms: Sequence[Tuple[Key, np.ndarray]],
        b: np.ndarray,
        sigmas: Optional[np.ndarray] = None,
    ):
        name = type(self).__name__
        keys = tuple(int(k) for k, _ in terms)
        if len(set(keys)) != len(keys):
            raise ShapeMismatch(f"{name}: duplicate keys {keys}")
        b = np.array(b, dtype=float).reshape(-1)
        blocks: Dict[Key, np.ndarray] = {}
        for key, A in terms:
            A = _as_matrix(A, f"{name}.block({key})")
            if A.shape[0] != b.shape[0]:
                raise ShapeMismatch(
                    f"{name}: block for key {key} has {A.shape[0]} rows, b has {b.shape[0]}"
                )
            A.setflags(write=False)
            blocks[int(key)] = A
        if sigmas is not None:
            sigmas = np.array(sigmas, dtype=float).reshape(-1)
            if sigmas.shape != b.shape:
                raise ShapeMismatch(f"{name}: sigmas shape {sigmas.shape} != b shape {b.shape}")
            if np.any(sigmas <= 0.0):
                raise ValueError(f"{name}: sigmas must be positive, got {sigmas}")
            sigmas.setflags(write=False)
        b.setflags(write=False)

        self._keys = keys
        self._blocks = blocks
        self._b = b
        self._sigmas = sigmas

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self._keys

    @property
    def b(self) -> np.ndarray:
        return self._b

    @property
    def sigmas(self) -> Optional[np.ndarray]:
        return self._sigmas

    @property
    def rows(self) -> int:
        return int(self._b.shape[0])

    def block(self, key: Key) -> np.ndarray:
        try:
            return self._blocks[key]
        except KeyError:
            raise KeyNotFound(key, f"{type(self).__name__}.block") from None

    def dims(self) -> Dict[Key, int]:
        return {k: int(self._blocks[k].shape[1]) for k in self._keys}

    def terms(self) -> Tuple[Tuple[Key, np.ndarray], ...]:
        return tuple((k, self._blocks[k]) for k in self._keys)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _inv_sigmas(self) -> np.ndarray:
        if self._sigmas is None:
            return np.ones(self.rows)
        return 1.0 / self._sigmas

    def unwhitened_error_vector(self, values: Mapping[Key, np.ndarray]) -> np.ndarray:
        r = -self._b.copy()
        for k in self._keys:
            if k not in values:
                raise KeyNotFound(k, f"{type(self).__name__}.error")
            x = _as_vector(values[k])
            A = self._blocks[k]
            if x.shape[0] != A.shape[1]:
                raise ShapeMismatch(
                    f"{type(self).__name__}.error: value for key {k} has dim {x.shape[0]}, "
                    f"expected {A.shape[1]}"
                )
            r += A @ x
        return r

    def error_vector(self, values: Mapping[Key, np.ndarray]) -> np.ndarray:
        """Whitened residual (Ax − b)/σ."""
        return self.unwhitened_error_vector(values) * self._inv_sigmas()

    def error(self, values: Mapping[Key, np.ndarray]) -> float:
        e = self.error_vector(values)
        return 0.5 * float(e @ e)

    def whitened(self) -> "JacobianFactor":
        """Equivalent unit-noise factor (rows divided by σ)."""
        w = self._inv_sigmas()
        return JacobianFactor(
            [(k, self._blocks[k] * w[:, None]) for k in self._keys],
            self._b * w,
        )

    # -------------------------------------------------------------------------
    # Testable
    # -------------------------------------------------------------------------

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        if not isinstance(other, JacobianFactor):
            return False
        if self._keys != other._keys:
            return False
        if self._b.shape != other._b.shape:
            return False
        for k in self._keys:
            A, B = self._blocks[k], other._blocks[k]
            if A.shape != B.shape or not np.allclose(A, B, rtol=0.0, atol=tol):
                return False
        if not np.allclose(self._b, other._b, rtol=0.0, atol=tol):
            return False
        s1 = np.ones(self.rows) if self._sigmas is None else self._sigmas
        s2 = np.ones(other.rows) if other._sigmas is None else other._sigmas
        return bool(np.allclose(s1, s2, rtol=0.0, atol=tol))

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        lines = [f"{s}{type(self).__name__} on [{' '.join(key_formatter(k) for k in self._keys)}]"]
        for k in self._keys:
            lines.append(f"  A[{key_formatter(k)}] = {np.array2string(self._blocks[k], precision=4)}")
        lines.append(f"  b = {np.array2string(self._b, precision=4)}")
        if self._sigmas is not None:
            lines.append(f"  sigmas = {np.array2string(self._sigmas, precision=4)}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(keys={list(self._keys)}, rows={self.rows})"
