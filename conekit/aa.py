"""Anderson acceleration of a fixed-point map.

With ``g = x - f(x)`` and the stacked differences of successive iterates
``S`` (inputs), ``Y`` (residuals) and ``D = S - Y`` (outputs):

* Type-I:  ``f <- f - D (S'Y + r I)^-1 S'g``
* Type-II: ``f <- f - D (Y'Y + r I)^-1 Y'g``

The regularisation ``r`` is proportional to the Frobenius norm of the small
system matrix.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

_log = logging.getLogger(__name__)


class AndersonAccelerator:
    """Accelerates the iteration ``x <- f(x)`` using a limited memory of steps."""

    def __init__(
        self,
        dim: int,
        mem: int,
        type1: bool = False,
        regularization: float = 1e-8,
        relaxation: float = 1.0,
        safeguard_factor: float = 1.0,
        max_weight_norm: float = 1e10,
        verbosity: int = 0,
    ) -> None:
        dim = int(dim)
        if dim < 0:
            raise ValueError("dimension must be non-negative")
        self.dim = dim
        # memory never exceeds the dimension, for rank stability
        self.mem = min(int(mem), dim)
        self.type1 = bool(type1)
        self.regularization = float(regularization)
        self.relaxation = float(relaxation)
        self.safeguard_factor = float(safeguard_factor)
        self.max_weight_norm = float(max_weight_norm)
        self.verbosity = int(verbosity)
        self.iteration = 0
        self.success = False
        self.norm_g = 0.0

        cols = max(self.mem, 0)
        self._x = np.zeros(dim)
        self._f = np.zeros(dim)
        self._g = np.zeros(dim)
        self._g_prev = np.zeros(dim)
        self._y_mat = np.zeros((dim, cols))
        self._s_mat = np.zeros((dim, cols))
        self._d_mat = np.zeros((dim, cols))
        self._m_mat = np.zeros((cols, cols))

    def _vector(self, values: Sequence[float], name: str) -> np.ndarray:
        vec = np.array(values, dtype=float).ravel()
        if vec.size != self.dim:
            raise ValueError(f"{name} must have length {self.dim}, got {vec.size}")
        return vec

    def _update(self, f: np.ndarray, x: np.ndarray) -> None:
        idx = (self.iteration - 1) % self.mem
        g = x - f
        self._s_mat[:, idx] = x - self._x
        self._d_mat[:, idx] = f - self._f
        self._y_mat[:, idx] = g - self._g_prev
        self._f = f.copy()
        self._x = x.copy()
        self._g = g
        self._g_prev = g.copy()
        self.norm_g = float(np.linalg.norm(g))

    def _set_m(self, length: int) -> None:
        left = self._s_mat if self.type1 else self._y_mat
        m_mat = left[:, :length].T @ self._y_mat[:, :length]
        if self.regularization > 0:
            nrm_m = float(np.linalg.norm(m_mat))
            r = self.regularization * nrm_m
            if self.verbosity > 2:
                _log.info("iter: %d, norm: M %.2e, r: %.2e", self.iteration, nrm_m, r)
            m_mat = m_mat + r * np.eye(length)
        self._m_mat = m_mat

    def _solve(self, f: np.ndarray, length: int) -> tuple[np.ndarray, float]:
        left = self._s_mat if self.type1 else self._y_mat
        rhs = left[:, :length].T @ self._g
        try:
            work = np.linalg.solve(self._m_mat, rhs)
            solved = True
            aa_norm = float(np.linalg.norm(work))
        except np.linalg.LinAlgError:
            work = rhs
            solved = False
            aa_norm = math.inf
        kind = 1 if self.type1 else 2
        if self.verbosity > 1:
            _log.info(
                "AA type %d, iter: %d, len %d, solved: %s, aa_norm %.2e",
                kind, self.iteration, length, solved, aa_norm,
            )
        if not solved or aa_norm >= self.max_weight_norm:
            if self.verbosity > 0:
                _log.info(
                    "Error in AA type %d, iter: %d, len %d, aa_norm %.2e",
                    kind, self.iteration, length, aa_norm,
                )
            self.success = False
            self.reset()
            return f, -aa_norm

        f = f - self._d_mat[:, :length] @ work
        if self.relaxation != 1.0:
            x_work = self._x - self._s_mat[:, :length] @ work
            f = self.relaxation * f + (1.0 - self.relaxation) * x_work
        self.success = True
        return f, aa_norm

    def apply(
        self, f: Sequence[float], x: Sequence[float]
    ) -> tuple[np.ndarray, float]:
        """Take ``f = f(x)`` and return the accelerated iterate and the weight norm.

        The weight norm is 0 when no step was attempted and negative when the
        step was rejected, in which case ``f`` comes back unchanged.
        """
        fv = self._vector(f, "f")
        xv = self._vector(x, "x")
        length = min(self.iteration, self.mem)
        self.success = False
        if self.mem <= 0:
            return fv, 0.0
        if self.iteration == 0:
            self._x = xv.copy()
            self._f = fv.copy()
            self._g_prev = xv - fv
            self.iteration += 1
            return fv, 0.0

        self._update(fv, xv)
        aa_norm = 0.0
        # only solve once the memory is full
        if self.iteration >= self.mem:
            self._set_m(length)
            fv, aa_norm = self._solve(fv, length)
        self.iteration += 1
        return fv, aa_norm

    def safeguard(
        self, f_new: Sequence[float], x_new: Sequence[float]
    ) -> tuple[np.ndarray, np.ndarray, bool]:
        """Check the last accelerated step against the residual it produced.

        Returns ``(f, x, accepted)``.  When the step made the residual worse
        than ``safeguard_factor`` times the previous one, it is rejected: the
        last plain ``f`` and ``x`` are returned and the memory is reset.
        """
        fv = self._vector(f_new, "f_new")
        xv = self._vector(x_new, "x_new")
        if not self.success:
            return fv, xv, True
        self.success = False
        norm_diff = float(np.linalg.norm(xv - fv))
        if norm_diff > self.safeguard_factor * self.norm_g:
            if self.verbosity > 0:
                _log.info(
                    "AA rejection, iter: %d, norm_diff %.4e, prev_norm_diff %.4e",
                    self.iteration, norm_diff, self.norm_g,
                )
            self.reset()
            return self._f.copy(), self._x.copy(), False
        return fv, xv, True

    def reset(self) -> None:
        """Forget the stored history."""
        if self.verbosity > 0:
            _log.info("AA reset.")
        self.iteration = 0