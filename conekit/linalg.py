"""Small dense vector helpers used by the cone projections and scaling code."""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

ArrayLike = Union[Sequence[float], np.ndarray]


def _vec(a: ArrayLike) -> np.ndarray:
    return np.asarray(a, dtype=float).ravel()


def _pair(a: ArrayLike, b: ArrayLike) -> tuple[np.ndarray, np.ndarray]:
    va, vb = _vec(a), _vec(b)
    if va.shape != vb.shape:
        raise ValueError(
            f"vector lengths differ: {va.size} and {vb.size}"
        )
    return va, vb


def norm_diff(a: ArrayLike, b: ArrayLike) -> float:
    """Euclidean norm of ``a - b``."""
    va, vb = _pair(a, b)
    diff = va - vb
    return float(np.sqrt(np.dot(diff, diff)))


def norm_inf_diff(a: ArrayLike, b: ArrayLike) -> float:
    """Largest absolute entry of ``a - b`` (0 for empty vectors)."""
    va, vb = _pair(a, b)
    diff = np.abs(va - vb)
    return float(np.max(diff, initial=0.0, where=diff == diff))


def norm_inf(a: ArrayLike) -> float:
    """Largest absolute entry of ``a`` (0 for an empty vector)."""
    return float(np.max(np.abs(_vec(a)), initial=0.0))


def norm_sq(v: ArrayLike) -> float:
    """Squared Euclidean norm of ``v``."""
    vv = _vec(v)
    return float(np.dot(vv, vv))


def norm_2(v: ArrayLike) -> float:
    """Euclidean norm of ``v``."""
    return float(np.linalg.norm(_vec(v)))


def dot(x: ArrayLike, y: ArrayLike) -> float:
    """Inner product of ``x`` and ``y``."""
    vx, vy = _pair(x, y)
    return float(np.dot(vx, vy))


def mean(x: ArrayLike) -> float:
    """Arithmetic mean of the entries of ``x``."""
    vx = _vec(x)
    if vx.size == 0:
        raise ValueError("mean of an empty vector is undefined")
    return float(np.sum(vx) / vx.size)