"""
Gaussian factor graph: an ordered collection of linear Gaussian factors.

Graphs are immutable; combined()/appended() return new graphs. Combining is
pure accumulation (factor union), which is what hybrid Sum trees need per
discrete branch. eliminate() performs dense QR elimination of a frontal set.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import linalg

from hybrid_slam.common import constants
from hybrid_slam.common.errors import IndeterminantLinearSystem, KeyNotFound, ShapeMismatch
from hybrid_slam.common.keys import Key, KeyFormatter, default_key_formatter
from hybrid_slam.linear.gaussian_conditional import GaussianConditional
from hybrid_slam.linear.jacobian_factor import JacobianFactor

_logger = logging.getLogger(__name__)


class GaussianFactorGraph:
    """Immutable sequence of JacobianFactor / GaussianConditional."""

    __slots__ = ("_factors",)

    def __init__(self, factors: Iterable[JacobianFactor] = ()):
        factors = tuple(factors)
        for f in factors:
            if not isinstance(f, JacobianFactor):
                raise TypeError(f"GaussianFactorGraph: expected JacobianFactor, got {type(f).__name__}")
        self._factors = factors

    # -------------------------------------------------------------------------
    # Container
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self._factors)

    def __getitem__(self, i: int) -> JacobianFactor:
        return self._factors[i]

    def size(self) -> int:
        return len(self._factors)

    def empty(self) -> bool:
        return not self._factors

    @property
    def factors(self) -> Tuple[JacobianFactor, ...]:
        return self._factors

    def appended(self, factor: JacobianFactor) -> "GaussianFactorGraph":
        return GaussianFactorGraph(self._factors + (factor,))

    def combined(self, other: "GaussianFactorGraph") -> "GaussianFactorGraph":
        """Union of the two factor collections (self's factors first)."""
        if not other._factors:
            return self
        if not self._factors:
            return other
        return GaussianFactorGraph(self._factors + other._factors)

    def __add__(self, other: "GaussianFactorGraph") -> "GaussianFactorGraph":
        if not isinstance(other, GaussianFactorGraph):
            return NotImplemented
        return self.combined(other)

    def keys(self) -> List[Key]:
        return sorted({k for f in self._factors for k in f.keys})

    def dims(self) -> Dict[Key, int]:
        out: Dict[Key, int] = {}
        for f in self._factors:
            for k, d in f.dims().items():
                if out.setdefault(k, d) != d:
                    raise ShapeMismatch(f"GaussianFactorGraph: key {k} has dims {out[k]} and {d}")
        return out

    # -------------------------------------------------------------------------
    # Linear algebra
    # -------------------------------------------------------------------------

    def error(self, values: Mapping[Key, np.ndarray]) -> float:
        return float(sum(f.error(values) for f in self._factors))

    def jacobian(
        self,
        ordering: Optional[Sequence[Key]] = None,
        dims: Optional[Mapping[Key, int]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Dense whitened system (A, b) with columns laid out in ordering.

        dims may supply dimensions for ordering keys no factor mentions
        (their columns are zero).
        """
        all_dims = dict(dims or {})
        all_dims.update(self.dims())
        ordering = list(self.keys() if ordering is None else ordering)
        missing = set(self.keys()) - set(ordering)
        if missing:
            raise ShapeMismatch(f"GaussianFactorGraph.jacobian: ordering lacks keys {sorted(missing)}")
        offsets: Dict[Key, int] = {}
        n = 0
        for k in ordering:
            if k not in all_dims:
                raise KeyNotFound(k, "GaussianFactorGraph.jacobian")
            offsets[k] = n
            n += all_dims[k]
        m = sum(f.rows for f in self._factors)
        A = np.zeros((m, n), dtype=float)
        b = np.zeros(m, dtype=float)
        row = 0
        for f in self._factors:
            w = f.whitened()
            for k in w.keys:
                A[row:row + w.rows, offsets[k]:offsets[k] + all_dims[k]] = w.block(k)
            b[row:row + w.rows] = w.b
            row += w.rows
        return A, b

    def as_jacobian_factor(
        self,
        ordering: Optional[Sequence[Key]] = None,
        dims: Optional[Mapping[Key, int]] = None,
    ) -> Optional[JacobianFactor]:
        """All whitened rows stacked into one unit-noise factor (None if empty)."""
        if not self._factors:
            return None
        all_dims = dict(dims or {})
        all_dims.update(self.dims())
        ordering = list(self.keys() if ordering is None else ordering)
        A, b = self.jacobian(ordering, all_dims)
        terms = []
        col = 0
        for k in ordering:
            terms.append((k, A[:, col:col + all_dims[k]]))
            col += all_dims[k]
        return JacobianFactor(terms, b)

    def optimize(self) -> Dict[Key, np.ndarray]:
        """Dense least-squares solution over all keys."""
        ordering = self.keys()
        dims = self.dims()
        A, b = self.jacobian(ordering)
        x, _, rank, _ = linalg.lstsq(A, b)
        if rank < A.shape[1]:
            raise IndeterminantLinearSystem(
                f"GaussianFactorGraph.optimize: rank {rank} < {A.shape[1]} unknowns"
            )
        out: Dict[Key, np.ndarray] = {}
        offset = 0
        for k in ordering:
            out[k] = x[offset:offset + dims[k]]
            offset += dims[k]
        return out

    def eliminate(
        self,
        frontal_keys: Sequence[Key],
        separator_keys: Optional[Sequence[Key]] = None,
        dims: Optional[Mapping[Key, int]] = None,
        rank_tol: float = constants.RANK_TOL_DEFAULT,
    ) -> Tuple[GaussianConditional, Optional[JacobianFactor]]:
        """
        Eliminate frontal_keys from the whole graph by dense QR.

        Returns p(frontals | separator) and the remaining factor on the
        separator (None when the separator is empty or no rows remain).
        separator_keys defaults to every other key in the graph, sorted; it may
        name extra keys (dims must then supply their dimensions), which get
        zero parent blocks.
        """
        frontal_keys = [int(k) for k in frontal_keys]
        if not frontal_keys:
            raise ShapeMismatch("GaussianFactorGraph.eliminate: no frontal keys")
        all_dims = dict(dims or {})
        all_dims.update(self.dims())
        for k in frontal_keys:
            if k not in all_dims:
                raise KeyNotFound(k, "GaussianFactorGraph.eliminate")
        if separator_keys is None:
            separator_keys = [k for k in self.keys() if k not in frontal_keys]
        separator_keys = [int(k) for k in separator_keys]
        if set(separator_keys) & set(frontal_keys):
            raise ShapeMismatch("GaussianFactorGraph.eliminate: separator overlaps frontals")

        ordering = frontal_keys + separator_keys
        A, b = self.jacobian(ordering, all_dims)
        m, n = A.shape
        nf = sum(all_dims[k] for k in frontal_keys)
        if m < nf:
            raise IndeterminantLinearSystem(
                f"GaussianFactorGraph.eliminate: {m} rows cannot determine {nf} frontal dims"
            )

        Ab = np.hstack([A, b[:, None]])
        R = linalg.qr(Ab, mode="economic")[1]
        diag = np.abs(np.diag(R[:nf, :nf]))
        if np.any(diag < rank_tol):
            raise IndeterminantLinearSystem(
                f"GaussianFactorGraph.eliminate: frontal keys {frontal_keys} are rank deficient "
                f"(min |R_ii| = {diag.min():.3e})"
            )

        def split(rows: np.ndarray, keys: Sequence[Key], start: int) -> List[Tuple[Key, np.ndarray]]:
            out = []
            col = start
            for k in keys:
                out.append((k, rows[:, col:col + all_dims[k]]))
                col += all_dims[k]
            return out

        top = R[:nf]
        conditional = GaussianConditional(
            split(top, frontal_keys, 0) + split(top, separator_keys, nf),
            len(frontal_keys),
            top[:, n],
        )

        remaining = None
        # Rows past n only carry the constant residual in the b column
        sep_rows = R[nf:min(R.shape[0], n)]
        if separator_keys and sep_rows.shape[0] > 0:
            remaining = JacobianFactor(split(sep_rows, separator_keys, nf), sep_rows[:, n])
        _logger.debug(
            f"Eliminated {frontal_keys} from {len(self)} factors: "
            f"separator={separator_keys}, remaining_rows={sep_rows.shape[0]}"
        )
        return conditional, remaining

    # -------------------------------------------------------------------------
    # Testable
    # -------------------------------------------------------------------------

    def equals(self, other: object, tol: float = constants.EQUALITY_TOL_DEFAULT) -> bool:
        if not isinstance(other, GaussianFactorGraph) or len(self) != len(other):
            return False
        return all(a.equals(b, tol) for a, b in zip(self._factors, other._factors))

    def to_string(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> str:
        lines = [f"{s}GaussianFactorGraph size: {len(self)}"]
        for i, f in enumerate(self._factors):
            lines.append(f.to_string(f"factor {i}: ", key_formatter))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"GaussianFactorGraph(size={len(self)}, keys={self.keys()})"
