"""Diagonal equilibration data and primal-dual solution containers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def _as_vector(values) -> np.ndarray:
    return np.array(values, dtype=float).ravel()


@dataclass
class Scaling:
    """Row scaling ``d`` (length m), column scaling ``e`` (length n) and scalars.

    The problem data is rescaled as ``P -> E P E``, ``A -> D A E`` with
    ``b`` and ``c`` further multiplied by the primal / dual scale.
    """

    d: np.ndarray
    e: np.ndarray
    primal_scale: float = 1.0
    dual_scale: float = 1.0

    def __post_init__(self) -> None:
        self.d = _as_vector(self.d)
        self.e = _as_vector(self.e)
        self.primal_scale = float(self.primal_scale)
        self.dual_scale = float(self.dual_scale)

    @classmethod
    def identity(cls, m: int, n: int) -> "Scaling":
        """Scaling that leaves the data unchanged."""
        if m < 0 or n < 0:
            raise ValueError("dimensions must be non-negative")
        return cls(np.ones(m), np.ones(n), 1.0, 1.0)

    @property
    def m(self) -> int:
        """Number of rows covered by the row scaling."""
        return int(self.d.size)

    @property
    def n(self) -> int:
        """Number of columns covered by the column scaling."""
        return int(self.e.size)


@dataclass
class Solution:
    """Primal variable ``x``, dual variable ``y`` and slack ``s``."""

    x: np.ndarray
    y: np.ndarray
    s: np.ndarray

    def __post_init__(self) -> None:
        self.x = _as_vector(self.x)
        self.y = _as_vector(self.y)
        self.s = _as_vector(self.s)
        if self.y.size != self.s.size:
            raise ValueError("y and s must have the same length")

    def copy(self) -> "Solution":
        """Independent copy of the solution vectors."""
        return Solution(self.x.copy(), self.y.copy(), self.s.copy())