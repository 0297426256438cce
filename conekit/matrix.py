"""Compressed sparse column matrices, products with them and equilibration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from conekit.cones import ConeWork
from conekit.linalg import mean, norm_inf
from conekit.scaling import Scaling

MIN_NORMALIZATION_FACTOR = 1e-4
MAX_NORMALIZATION_FACTOR = 1e4
NUM_RUIZ_PASSES = 25  # additional passes don't help much
NUM_L2_PASSES = 1  # one or zero, more is not stable


class MatrixError(ValueError):
    """Raised when matrix data is malformed or inconsistent."""


@dataclass
class CscMatrix:
    """Sparse ``m`` by ``n`` matrix in compressed sparse column form.

    ``x`` holds the values, ``i`` the row index of each value and ``p`` the
    ``n + 1`` column pointers into ``x`` and ``i``.
    """

    m: int
    n: int
    x: np.ndarray
    i: np.ndarray
    p: np.ndarray

    def __post_init__(self) -> None:
        self.m = int(self.m)
        self.n = int(self.n)
        if self.m < 0 or self.n < 0:
            raise MatrixError("matrix dimensions must be non-negative")
        self.x = np.array(self.x, dtype=float).ravel()
        self.i = np.array(self.i, dtype=np.int64).ravel()
        self.p = np.array(self.p, dtype=np.int64).ravel()

    @property
    def nnz(self) -> int:
        """Number of stored entries, ``p[n]``."""
        if self.p.size <= self.n:
            return 0
        return int(self.p[self.n])

    def copy(self) -> "CscMatrix":
        """Independent copy of the matrix."""
        return CscMatrix(self.m, self.n, self.x.copy(), self.i.copy(), self.p.copy())

    @classmethod
    def from_dense(cls, dense) -> "CscMatrix":
        """Build a sparse matrix from the nonzero entries of a 2-D array."""
        arr = np.asarray(dense, dtype=float)
        if arr.ndim != 2:
            raise MatrixError("dense matrix must be two dimensional")
        m, n = arr.shape
        cols, rows = np.nonzero(arr.T)
        counts = np.bincount(cols, minlength=n)
        p = np.concatenate(([0], np.cumsum(counts)))
        return cls(m, n, arr[rows, cols], rows, p)

    def to_dense(self) -> np.ndarray:
        """Dense 2-D array with the same entries; repeated entries are summed."""
        dense = np.zeros((self.m, self.n))
        nnz = self.nnz
        np.add.at(dense, (self.i[:nnz], self._columns()), self.x[:nnz])
        return dense

    def _columns(self) -> np.ndarray:
        """Column index of every stored entry."""
        return np.repeat(np.arange(self.n), np.diff(self.p[: self.n + 1]))

    def _entries(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        nnz = self.nnz
        return self.i[:nnz], self._columns(), self.x[:nnz]


def _check_complete(mat: CscMatrix) -> None:
    nnz = mat.nnz
    if (
        mat.p.size != mat.n + 1
        or mat.x.size < nnz
        or mat.i.size < nnz
        or np.any(np.diff(mat.p) < 0)
    ):
        raise MatrixError("data incompletely specified")


def validate_lin_sys(a: CscMatrix, p: Optional[CscMatrix] = None) -> None:
    """Raise :class:`MatrixError` unless ``a`` and the optional ``p`` are valid.

    ``p`` must be square, of side ``a.n``, and upper triangular.
    """
    _check_complete(a)
    anz = a.nnz
    too_many = anz > 0 and (a.m == 0 or anz / a.m > a.n)
    if too_many or anz < 0:
        raise MatrixError(f"Anz (nonzeros in A) = {anz}, outside of valid range")
    rows = a.i[:anz]
    r_max = int(np.max(rows, initial=0))
    if r_max > a.m - 1 or (rows.size and int(np.min(rows)) < 0):
        raise MatrixError("number of rows in A inconsistent with input dimension")
    if p is None:
        return
    if p.n != a.n:
        raise MatrixError(f"P dimension = {p.n}, inconsistent with n = {a.n}")
    if p.m != p.n:
        raise MatrixError("P is not square")
    _check_complete(p)
    prow, pcol, _vals = p._entries()
    if np.any(prow > pcol):
        raise MatrixError("P is not upper triangular")


def _vector(values: Sequence[float], size: int, name: str) -> np.ndarray:
    vec = np.array(values, dtype=float).ravel()
    if vec.size != size:
        raise ValueError(f"{name} must have length {size}, got {vec.size}")
    return vec


def accum_by_atrans(a: CscMatrix, x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """Return ``y + A' x``."""
    xv = _vector(x, a.m, "x")
    yv = _vector(y, a.n, "y")
    rows, cols, vals = a._entries()
    yv += np.bincount(cols, weights=vals * xv[rows], minlength=a.n)
    return yv


def accum_by_a(a: CscMatrix, x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """Return ``y + A x``."""
    xv = _vector(x, a.n, "x")
    yv = _vector(y, a.m, "y")
    rows, cols, vals = a._entries()
    np.add.at(yv, rows, vals * xv[cols])
    return yv


def accum_by_p(p: CscMatrix, x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """Return ``y + P x`` where ``P`` is stored as its upper triangle."""
    xv = _vector(x, p.n, "x")
    yv = _vector(y, p.n, "y")
    rows, cols, vals = p._entries()
    off = rows != cols
    np.add.at(yv, rows[off], vals[off] * xv[cols[off]])
    return accum_by_atrans(p, xv, yv)


def _apply_limit(v: np.ndarray) -> np.ndarray:
    # rows / cols of all zeros are bounded to 1, otherwise the scaling blows up
    v = np.where(v < MIN_NORMALIZATION_FACTOR, 1.0, v)
    return np.where(v > MAX_NORMALIZATION_FACTOR, MAX_NORMALIZATION_FACTOR, v)


def _ruiz_factors(
    p: Optional[CscMatrix], a: CscMatrix, cone_work: ConeWork
) -> tuple[np.ndarray, np.ndarray]:
    rows, cols, vals = a._entries()
    absvals = np.abs(vals)

    dt = np.zeros(a.m)
    np.maximum.at(dt, rows, absvals)
    cone_work.enforce_cone_boundaries(dt, norm_inf)
    dt = 1.0 / np.sqrt(_apply_limit(dt))

    et = np.zeros(a.n)
    if p is not None:
        prow, pcol, pvals = p._entries()
        w = np.abs(pvals)
        np.maximum.at(et, pcol, w)
        off = prow != pcol
        np.maximum.at(et, prow[off], w[off])
    np.maximum.at(et, cols, absvals)
    et = 1.0 / np.sqrt(_apply_limit(et))
    return dt, et


def _l2_factors(
    p: Optional[CscMatrix], a: CscMatrix, cone_work: ConeWork
) -> tuple[np.ndarray, np.ndarray]:
    rows, cols, vals = a._entries()
    sq = vals * vals

    dt = np.sqrt(np.bincount(rows, weights=sq, minlength=a.m))
    cone_work.enforce_cone_boundaries(dt, mean)
    dt = 1.0 / np.sqrt(_apply_limit(dt))

    et = np.zeros(a.n)
    if p is not None:
        prow, pcol, pvals = p._entries()
        w = pvals * pvals
        np.add.at(et, pcol, w)
        off = prow != pcol
        np.add.at(et, prow[off], w[off])
    et += np.bincount(cols, weights=sq, minlength=a.n)
    et = 1.0 / np.sqrt(_apply_limit(np.sqrt(et)))
    return dt, et


def _rescale(
    p: Optional[CscMatrix],
    a: CscMatrix,
    dt: np.ndarray,
    et: np.ndarray,
    scaling: Scaling,
) -> None:
    nnz = a.nnz
    a.x[:nnz] *= dt[a.i[:nnz]] * et[a._columns()]
    if p is not None:
        pnnz = p.nnz
        p.x[:pnnz] *= et[p.i[:pnnz]] * et[p._columns()]
    scaling.d *= dt
    scaling.e *= et


def normalize_a_p(
    p: Optional[CscMatrix], a: CscMatrix, cone_work: ConeWork
) -> tuple[Optional[CscMatrix], CscMatrix, Scaling]:
    """Equilibrate ``P -> E P E`` and ``A -> D A E`` with positive diagonals.

    ``D`` is constant within every cone that cannot be scaled entry by entry.
    Returns the scaled copies of ``p`` and ``a`` and the accumulated scaling;
    the inputs are left untouched.
    """
    a_scaled = a.copy()
    p_scaled = p.copy() if p is not None else None
    scaling = Scaling.identity(a.m, a.n)
    for _ in range(NUM_RUIZ_PASSES):
        dt, et = _ruiz_factors(p_scaled, a_scaled, cone_work)
        _rescale(p_scaled, a_scaled, dt, et, scaling)
    for _ in range(NUM_L2_PASSES):
        dt, et = _l2_factors(p_scaled, a_scaled, cone_work)
        _rescale(p_scaled, a_scaled, dt, et, scaling)
    return p_scaled, a_scaled, scaling