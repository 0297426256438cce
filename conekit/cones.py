"""Cone descriptions and projections onto cones and their duals.

A cone is the Cartesian product, in this order, of a zero cone (size ``z``),
a nonnegative orthant (``l``), a box cone (``bsize``), second-order cones
(sizes ``q``), positive semidefinite cones (matrix sides ``s``, stored as the
column-packed lower triangle with off-diagonals scaled by sqrt(2)), primal and
dual exponential cones (``ep`` and ``ed`` triples) and power cones (one triple
per exponent in ``p``; a negative exponent means the dual power cone).
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from conekit.exp_cone import proj_pd_exp_cone
from conekit.scaling import Scaling

_log = logging.getLogger(__name__)

BOX_CONE_MAX_ITERS = 25
POW_CONE_TOL = 1e-9
POW_CONE_MAX_ITERS = 20
# Box cone limits beyond this magnitude are taken to be infinite.
MAX_BOX_VAL = 1e15

_SQRT2 = math.sqrt(2.0)


class ConeError(ValueError):
    """Raised when a cone description is invalid or a projection fails."""


def _max(a: float, b: float) -> float:
    return a if a > b else b


def _min(a: float, b: float) -> float:
    return a if a < b else b


def _div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _sqrt(x: float) -> float:
    if math.isnan(x) or x < 0:
        return math.nan
    return math.sqrt(x)


def _floats(values) -> np.ndarray:
    if values is None:
        return np.zeros(0)
    return np.array(values, dtype=float).ravel()


def sd_cone_size(s: int) -> int:
    """Number of packed entries of an ``s`` by ``s`` semidefinite cone."""
    return (s * (s + 1)) // 2


@dataclass
class Cone:
    """Product cone description."""

    z: int = 0
    l: int = 0
    bsize: int = 0
    bu: np.ndarray = field(default_factory=lambda: np.zeros(0))
    bl: np.ndarray = field(default_factory=lambda: np.zeros(0))
    q: list = field(default_factory=list)
    s: list = field(default_factory=list)
    ep: int = 0
    ed: int = 0
    p: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.z = int(self.z)
        self.l = int(self.l)
        self.bsize = int(self.bsize)
        self.bu = _floats(self.bu)
        self.bl = _floats(self.bl)
        self.q = [int(v) for v in (self.q or [])]
        self.s = [int(v) for v in (self.s or [])]
        self.ep = int(self.ep)
        self.ed = int(self.ed)
        self.p = [float(v) for v in (self.p or [])]

    def full_dim(self) -> int:
        """Total number of rows the cone covers."""
        return (
            self.z
            + self.l
            + self.bsize
            + sum(self.q)
            + sum(sd_cone_size(n) for n in self.s)
            + 3 * (self.ep + self.ed + len(self.p))
        )

    def boundaries(self) -> list[int]:
        """Start of the non-separable cones, followed by the size of each one.

        The first entry counts the rows (zero, orthant and box) that may be
        scaled independently; every further entry is the length of one cone.
        """
        return (
            [self.z + self.l + self.bsize]
            + list(self.q)
            + [sd_cone_size(n) for n in self.s]
            + [3] * (self.ep + self.ed)
            + [3] * len(self.p)
        )

    def validate(self, m: int) -> None:
        """Raise :class:`ConeError` unless the cone is well formed with ``m`` rows."""
        dim = self.full_dim()
        if dim != m:
            raise ConeError(
                f"cone dimensions {dim} not equal to num rows in A = m = {m}"
            )
        if self.z < 0:
            raise ConeError("free cone dimension error")
        if self.l < 0:
            raise ConeError("lp cone dimension error")
        if self.bsize < 0:
            raise ConeError("box cone dimension error")
        if self.bsize > 1:
            if self.bl.size != self.bsize - 1 or self.bu.size != self.bsize - 1:
                raise ConeError("box cone bounds must have bsize - 1 entries")
            if np.any(self.bl > self.bu):
                raise ConeError(
                    "infeasible: box lower bound larger than upper bound"
                )
        if any(n < 0 for n in self.q):
            raise ConeError("soc cone dimension error")
        if any(n < 0 for n in self.s):
            raise ConeError("sd cone dimension error")
        if self.ep < 0:
            raise ConeError("exp cone dimension error")
        if self.ed < 0:
            raise ConeError("dual exp cone dimension error")
        if any(a < -1 or a > 1 for a in self.p):
            raise ConeError("power cone error, values must be in [-1,1]")

    def header(self) -> str:
        """Human readable summary of the cone sizes."""
        parts = ["cones: "]
        if self.z:
            parts.append(f"\t  z: primal zero / dual free vars: {self.z}\n")
        if self.l:
            parts.append(f"\t  l: linear vars: {self.l}\n")
        if self.bsize:
            parts.append(f"\t  b: box cone vars: {self.bsize}\n")
        if self.q:
            parts.append(
                f"\t  q: soc vars: {sum(self.q)}, qsize: {len(self.q)}\n"
            )
        if self.s:
            sd_vars = sum(sd_cone_size(n) for n in self.s)
            parts.append(f"\t  s: psd vars: {sd_vars}, ssize: {len(self.s)}\n")
        if self.ep or self.ed:
            parts.append(
                f"\t  e: exp vars: {3 * self.ep}, "
                f"dual exp vars: {3 * self.ed}\n"
            )
        if self.p:
            parts.append(
                f"\t  p: primal + dual power vars: {3 * len(self.p)}\n"
            )
        return "".join(parts)

    def copy(self) -> "Cone":
        """Deep copy of the cone description."""
        return dataclasses.replace(
            self,
            bu=self.bu.copy(),
            bl=self.bl.copy(),
            q=list(self.q),
            s=list(self.s),
            p=list(self.p),
        )


def proj_soc(x: Sequence[float]) -> np.ndarray:
    """Project ``x = (t, v)`` onto ``{(t, v) | ||v|| <= t}``."""
    v = np.array(x, dtype=float).ravel()
    q = v.size
    if q == 0:
        return v
    if q == 1:
        v[0] = _max(float(v[0]), 0.0)
        return v
    v1 = float(v[0])
    s = float(np.linalg.norm(v[1:]))
    alpha = (s + v1) / 2.0
    if s <= v1:
        return v
    if s <= -v1:
        return np.zeros(q)
    v[0] = alpha
    v[1:] *= alpha / s
    return v


def _pow_calc_x(r: float, xh: float, rh: float, a: float) -> float:
    x = 0.5 * (xh + _sqrt(xh * xh + 4 * a * (rh - r) * r))
    return _max(x, 1e-12)


def _pow_calc_dxdr(x: float, xh: float, rh: float, r: float, a: float) -> float:
    return _div(a * (rh - 2 * r), 2 * x - xh)


def _pow_calc_f(x: float, y: float, r: float, a: float) -> float:
    return math.pow(x, a) * math.pow(y, 1 - a) - r


def _pow_calc_fp(
    x: float, y: float, dxdr: float, dydr: float, a: float
) -> float:
    return (
        math.pow(x, a) * math.pow(y, 1 - a) * (a * dxdr / x + (1 - a) * dydr / y)
        - 1
    )


def proj_power_cone(v: Sequence[float], a: float) -> np.ndarray:
    """Project ``v`` onto ``{(x, y, r) | x^a y^(1-a) >= |r|, x, y >= 0}``."""
    a = float(a)
    if not 0.0 <= a <= 1.0:
        raise ValueError("power cone exponent must lie in [0, 1]")
    vec = np.array(v, dtype=float).ravel()
    if vec.size != 3:
        raise ValueError("power cone points have exactly 3 entries")
    xh, yh, r_signed = float(vec[0]), float(vec[1]), float(vec[2])
    rh = abs(r_signed)

    if (
        xh >= 0
        and yh >= 0
        and POW_CONE_TOL + math.pow(xh, a) * math.pow(yh, 1 - a) >= rh
    ):
        return vec

    if (
        xh <= 0
        and yh <= 0
        and POW_CONE_TOL + math.pow(-xh, a) * math.pow(-yh, 1 - a)
        >= rh * math.pow(a, a) * math.pow(1 - a, 1 - a)
    ):
        return np.zeros(3)

    x = y = 0.0
    r = rh / 2
    for _ in range(POW_CONE_MAX_ITERS):
        x = _pow_calc_x(r, xh, rh, a)
        y = _pow_calc_x(r, yh, rh, 1 - a)
        f = _pow_calc_f(x, y, r, a)
        if abs(f) < POW_CONE_TOL:
            break
        dxdr = _pow_calc_dxdr(x, xh, rh, r, a)
        dydr = _pow_calc_dxdr(y, yh, rh, r, 1 - a)
        fp = _pow_calc_fp(x, y, dxdr, dydr, a)
        r = _max(r - _div(f, fp), 0.0)
        r = _min(r, rh)
    return np.array([x, y, -r if r_signed < 0 else r])


def proj_box_cone(
    tx: Sequence[float],
    bl: Sequence[float],
    bu: Sequence[float],
    t_warm_start: float = 1.0,
    r_box: Optional[Sequence[float]] = None,
) -> tuple[np.ndarray, float]:
    """Project ``(t, s)`` onto ``{(t, s) | t * bl <= s <= t * bu, t >= 0}``.

    Newton's method on ``t``, started at ``t_warm_start``.  When ``r_box`` is
    given the projection is taken in the norm weighted by ``1 / r_box``.
    Returns the projected point and the final ``t``.
    """
    v = np.array(tx, dtype=float).ravel()
    bsize = v.size
    if bsize == 0:
        raise ValueError("box cone must have at least one entry")
    if bsize == 1:
        v[0] = _max(float(v[0]), 0.0)
        return v, float(v[0])

    lo = _floats(bl)
    hi = _floats(bu)
    if lo.size != bsize - 1 or hi.size != bsize - 1:
        raise ValueError("box cone bounds must have one entry per s component")

    t0 = float(v[0])
    x = v[1:]
    if r_box is not None:
        rb = _floats(r_box)
        if rb.size < bsize:
            raise ValueError("r_box is shorter than the box cone")
        rho_t = 1.0 / float(rb[0])
        weights = 1.0 / (1.0 / rb[1:bsize])
    else:
        rho_t = 1.0
        weights = np.ones(bsize - 1)

    t = float(t_warm_start)
    with np.errstate(invalid="ignore", over="ignore"):
        for _ in range(BOX_CONE_MAX_ITERS):
            t_prev = t
            upper = t * hi
            lower = t * lo
            above = x > upper
            below = ~above & (x < lower)
            gt = rho_t * (t - t0)
            gt += float(np.sum(weights[above] * (upper[above] - x[above]) * hi[above]))
            gt += float(np.sum(weights[below] * (lower[below] - x[below]) * lo[below]))
            ht = rho_t
            ht += float(np.sum(weights[above] * hi[above] ** 2))
            ht += float(np.sum(weights[below] * lo[below] ** 2))
            t = _max(t - gt / _max(ht, 1e-8), 0.0)
            if (
                abs(gt / _max(ht, 1e-6)) < 1e-12 * _max(t, 1.0)
                or abs(t - t_prev) < 1e-11 * _max(t, 1.0)
            ):
                break
        else:
            _log.warning(
                "box cone projection hit maximum %d iterations",
                BOX_CONE_MAX_ITERS,
            )
        upper = t * hi
        lower = t * lo
        above = x > upper
        below = ~above & (x < lower)
        x_new = np.where(above, upper, np.where(below, lower, x))
    return np.concatenate(([t], x_new)), t


def proj_semi_definite_cone(x: Sequence[float], n: int) -> np.ndarray:
    """Project a packed symmetric ``n`` by ``n`` matrix onto the PSD cone.

    ``x`` holds the lower triangle column by column, off-diagonal entries
    multiplied by sqrt(2).
    """
    v = np.array(x, dtype=float).ravel()
    n = int(n)
    if n < 0 or v.size != sd_cone_size(n):
        raise ValueError(
            f"packed matrix of side {n} needs {sd_cone_size(max(n, 0))} entries"
        )
    if n == 0:
        return v
    if n == 1:
        v[0] = _max(float(v[0]), 0.0)
        return v

    rows, cols = np.triu_indices(n)
    diag = np.arange(n)
    mat = np.zeros((n, n))
    mat[cols, rows] = v
    # Scaling the diagonal by sqrt(2) makes the full matrix sqrt(2) times the
    # true one, so the eigen-decomposition preserves the packed norm.
    mat[diag, diag] *= _SQRT2
    try:
        eigvals, eigvecs = np.linalg.eigh(mat, UPLO="L")
    except np.linalg.LinAlgError as exc:
        raise ConeError(f"eigen-decomposition failed: {exc}") from exc

    positive = eigvals > 0
    if not positive.any():
        return np.zeros_like(v)
    z = eigvecs[:, positive] * np.sqrt(eigvals[positive])
    result = z @ z.T
    result[diag, diag] /= _SQRT2
    return result[cols, rows]


class ConeWork:
    """Projection workspace for one cone and a fixed number of rows.

    The cone is copied, so box bounds normalised on first use never touch the
    caller's description.
    """

    def __init__(self, cone: Cone, m: int) -> None:
        self.cone = cone.copy()
        self.m = int(m)
        self.boundaries = self.cone.boundaries()
        self.box_t_warm_start = 0.0
        self.scaled_cones = False

    def set_r_y(self, scale: float) -> np.ndarray:
        """Diagonal ``r_y`` weights: small on the zero cone, ``1 / scale`` elsewhere."""
        r_y = np.full(self.m, 1.0 / scale)
        r_y[: self.cone.z] = 1.0 / (1000.0 * scale)
        return r_y

    def enforce_cone_boundaries(
        self, vec, f: Callable[[np.ndarray], float]
    ) -> np.ndarray:
        """Replace every entry of each non-separable cone by ``f`` of that cone.

        Float numpy arrays are updated in place; the updated array is returned.
        """
        arr = np.asarray(vec, dtype=float)
        count = self.boundaries[0]
        for delta in self.boundaries[1:]:
            if delta > 0:
                arr[count : count + delta] = f(arr[count : count + delta])
            count += delta
        return arr

    def _scale_box_cone(self, scaling: Optional[Scaling]) -> None:
        k = self.cone
        if not k.bsize:
            return
        self.box_t_warm_start = 1.0
        if scaling is None:
            return
        start = k.z + k.l
        d = np.asarray(scaling.d, dtype=float)[start : start + k.bsize]
        d0, rest = float(d[0]), d[1:]
        k.bu = np.where(k.bu >= MAX_BOX_VAL, math.inf, rest * k.bu / d0)
        k.bl = np.where(k.bl <= -MAX_BOX_VAL, -math.inf, rest * k.bl / d0)

    def _proj_cone(self, x: np.ndarray, r_y: Optional[np.ndarray]) -> np.ndarray:
        k = self.cone
        count = 0

        x[: k.z] = 0.0
        count += k.z

        seg = x[count : count + k.l]
        x[count : count + k.l] = np.where(seg > 0, seg, 0.0)
        count += k.l

        if k.bsize:
            r_box = None if r_y is None else r_y[count : count + k.bsize]
            proj, self.box_t_warm_start = proj_box_cone(
                x[count : count + k.bsize],
                k.bl,
                k.bu,
                self.box_t_warm_start,
                r_box,
            )
            x[count : count + k.bsize] = proj
            count += k.bsize

        for q in k.q:
            x[count : count + q] = proj_soc(x[count : count + q])
            count += q

        for n in k.s:
            size = sd_cone_size(n)
            x[count : count + size] = proj_semi_definite_cone(
                x[count : count + size], n
            )
            count += size

        for i in range(k.ep + k.ed):
            idx = count + 3 * i
            proj, _dist = proj_pd_exp_cone(x[idx : idx + 3], i < k.ep)
            x[idx : idx + 3] = proj
        count += 3 * (k.ep + k.ed)

        for i, a in enumerate(k.p):
            idx = count + 3 * i
            seg = x[idx : idx + 3].copy()
            if a >= 0:
                x[idx : idx + 3] = proj_power_cone(seg, a)
            else:
                # dual power cone via Moreau
                x[idx : idx + 3] = seg + proj_power_cone(-seg, -a)
        return x

    def proj_dual_cone(
        self,
        x: Sequence[float],
        scaling: Optional[Scaling] = None,
        r_y: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        """Project ``x`` onto the dual cone, in the norm weighted by ``1 / r_y``.

        Uses the Moreau decomposition
        ``x + R^-1 Pi_C^{R^-1}(-R x) = Pi_{C*}^R(x)``.
        When ``scaling`` is given, the box bounds are rescaled on first use.
        """
        if not self.scaled_cones:
            self._scale_box_cone(scaling)
            self.scaled_cones = True

        s = np.array(x, dtype=float).ravel()
        if s.size != self.m:
            raise ValueError(f"expected a vector of length {self.m}, got {s.size}")
        ry = None
        if r_y is not None:
            ry = _floats(r_y)
            if ry.size != self.m:
                raise ValueError(f"r_y must have length {self.m}, got {ry.size}")

        v = -s * ry if ry is not None else -s
        v = self._proj_cone(v, ry)
        if ry is not None:
            return v / ry + s
        return v + s