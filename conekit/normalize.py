"""Scaling of ``b`` and ``c`` and conversion of solutions to and from scaled form."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from conekit.linalg import norm_inf
from conekit.scaling import Scaling, Solution

MIN_NORMALIZATION_FACTOR = 1e-4
MAX_NORMALIZATION_FACTOR = 1e4


def _vector(values: Sequence[float], size: int, name: str) -> np.ndarray:
    vec = np.array(values, dtype=float).ravel()
    if vec.size != size:
        raise ValueError(f"{name} must have length {size}, got {vec.size}")
    return vec


def normalize_b_c(
    scaling: Scaling, b: Sequence[float], c: Sequence[float]
) -> tuple[np.ndarray, np.ndarray]:
    """Scale ``b`` by ``D`` and ``c`` by ``E``, then both by a common factor.

    The common factor is stored in the primal and dual scales of ``scaling``.
    Returns the scaled ``b`` and ``c``.
    """
    bv = _vector(b, scaling.m, "b") * scaling.d
    cv = _vector(c, scaling.n, "c") * scaling.e

    sigma = max(norm_inf(cv), norm_inf(bv))
    if sigma < MIN_NORMALIZATION_FACTOR:
        sigma = 1.0
    if sigma > MAX_NORMALIZATION_FACTOR:
        sigma = MAX_NORMALIZATION_FACTOR
    sigma = 1.0 / sigma

    # primal_scale and dual_scale are assumed equal elsewhere
    scaling.primal_scale = sigma
    scaling.dual_scale = sigma
    return bv * sigma, cv * sigma


def _check_solution(scaling: Scaling, sol: Solution) -> None:
    if sol.x.size != scaling.n or sol.y.size != scaling.m:
        raise ValueError("solution sizes do not match the scaling")


def normalize_sol(scaling: Scaling, sol: Solution) -> Solution:
    """Bring a solution (e.g. a warm start) into the scaled problem's variables."""
    _check_solution(scaling, sol)
    return Solution(
        sol.x / (scaling.e / scaling.dual_scale),
        sol.y / (scaling.d / scaling.primal_scale),
        sol.s * (scaling.d * scaling.dual_scale),
    )


def un_normalize_sol(scaling: Scaling, sol: Solution) -> Solution:
    """Bring a solution of the scaled problem back to the original variables."""
    _check_solution(scaling, sol)
    return Solution(
        sol.x * (scaling.e / scaling.dual_scale),
        sol.y * (scaling.d / scaling.primal_scale),
        sol.s / (scaling.d * scaling.dual_scale),
    )


def un_normalize_primal(scaling: Scaling, r: Sequence[float]) -> np.ndarray:
    """Undo the scaling of a primal residual (length m)."""
    return _vector(r, scaling.m, "r") / (scaling.d * scaling.dual_scale)


def un_normalize_dual(scaling: Scaling, r: Sequence[float]) -> np.ndarray:
    """Undo the scaling of a dual residual (length n)."""
    return _vector(r, scaling.n, "r") / (scaling.e * scaling.primal_scale)