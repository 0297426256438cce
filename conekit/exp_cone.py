"""Projection onto the exponential cone and its dual.

The method brackets a root of a univariate function in the variable rho and
refines it with a damped Newton method, falling back to bisection
(Friberg, "Projection onto the exponential cone: a univariate root-finding
problem", 2021).

Points are ordered ``(r, s, t)``; the primal cone is the closure of
``{(r, s, t) | s > 0, s * exp(r / s) <= t}``.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from conekit.linalg import dot, norm_diff

EXP_CONE_INFINITY_VALUE = 1e15
_TOL = 1e-8

_Vec3 = list


def _max(a: float, b: float) -> float:
    return a if a > b else b


def _min(a: float, b: float) -> float:
    return a if a < b else b


def _clip(x: float, lo: float, hi: float) -> float:
    return _max(lo, _min(hi, x))


def _isfinite(x: float) -> bool:
    return abs(x) < EXP_CONE_INFINITY_VALUE


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


def _log(x: float) -> float:
    if math.isnan(x) or x < 0:
        return math.nan
    if x == 0:
        return -math.inf
    return math.log(x)


def _sqrt(x: float) -> float:
    if math.isnan(x) or x < 0:
        return math.nan
    return math.sqrt(x)


def _div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _hfun(v0: _Vec3, rho: float) -> tuple[float, float]:
    """Root function (scaled by a positive polynomial) and its derivative."""
    r0, s0, t0 = v0
    exprho = _exp(rho)
    expnegrho = _exp(-rho)
    f = (
        ((rho - 1) * r0 + s0) * exprho
        - (r0 - rho * s0) * expnegrho
        - (rho * (rho - 1) + 1) * t0
    )
    df = (
        (rho * r0 + s0) * exprho
        + (r0 - (rho - 1) * s0) * expnegrho
        - (2 * rho - 1) * t0
    )
    return f, df


def _root_search_binary(v0: _Vec3, xl: float, xu: float, x: float) -> float:
    eps = 1e-12
    x_plus = x
    for _ in range(40):
        f, _df = _hfun(v0, x)
        if f < 0.0:
            xl = x
        else:
            xu = x
        x_plus = 0.5 * (xl + xu)
        if (
            abs(x_plus - x) <= eps * _max(1.0, abs(x_plus))
            or x_plus == xl
            or x_plus == xu
        ):
            break
        x = x_plus
    return x_plus


def _root_search_newton(v0: _Vec3, xl: float, xu: float, x: float) -> float:
    eps = 1e-15
    dftol = 1e-13
    lodamp = 0.05
    hidamp = 0.95

    for _ in range(20):
        f, df = _hfun(v0, x)
        if abs(f) <= eps:
            break
        if f < 0.0:
            xl = x
        else:
            xu = x
        if xu <= xl:
            xu = 0.5 * (xu + xl)
            xl = xu
            break
        if not _isfinite(f) or df < dftol:
            break
        x_plus = x - f / df
        if abs(x_plus - x) <= eps * _max(1.0, abs(x_plus)):
            break
        if x_plus >= xu:
            x = _min(lodamp * x + hidamp * xu, xu)
        elif x_plus <= xl:
            x = _max(lodamp * x + hidamp * xl, xl)
        else:
            x = x_plus
    else:
        return _root_search_binary(v0, xl, xu, x)
    return _clip(x, xl, xu)


def _primal_heuristic(v0: _Vec3) -> tuple[float, _Vec3]:
    r0, s0, t0 = v0
    vp = [_min(r0, 0.0), 0.0, _max(t0, 0.0)]
    dist = norm_diff(v0, vp)
    if s0 > 0.0:
        tp = _max(t0, s0 * _exp(r0 / s0))
        newdist = tp - t0
        if newdist < dist:
            vp = [r0, s0, tp]
            dist = newdist
    return dist, vp


def _polar_heuristic(v0: _Vec3) -> tuple[float, _Vec3]:
    r0, s0, t0 = v0
    vd = [0.0, _min(s0, 0.0), _min(t0, 0.0)]
    dist = norm_diff(v0, vd)
    if r0 > 0.0:
        td = _min(t0, -r0 * _exp(s0 / r0 - 1))
        newdist = t0 - td
        if newdist < dist:
            vd = [r0, s0, td]
            dist = newdist
    return dist, vd


def _ppsi(v0: _Vec3) -> float:
    r0, s0 = v0[0], v0[1]
    root = _sqrt(r0 * r0 + s0 * s0 - r0 * s0)
    if r0 > s0:
        psi = _div(r0 - s0 + root, r0)
    else:
        psi = _div(-s0, r0 - s0 - root)
    return _div((psi - 1) * r0 + s0, psi * (psi - 1) + 1)


def _pomega(rho: float) -> float:
    val = _div(_exp(rho), rho * (rho - 1) + 1)
    if rho < 2.0:
        val = _min(val, math.exp(2.0) / 3)
    return val


def _dpsi(v0: _Vec3) -> float:
    r0, s0 = v0[0], v0[1]
    root = _sqrt(r0 * r0 + s0 * s0 - r0 * s0)
    if s0 > r0:
        psi = _div(r0 - root, s0)
    else:
        psi = _div(r0 - s0, r0 + root)
    return _div(r0 - psi * s0, psi * (psi - 1) + 1)


def _domega(rho: float) -> float:
    val = _div(-_exp(-rho), rho * (rho - 1) + 1)
    if rho > -1.0:
        val = _max(val, -math.exp(1.0) / 3)
    return val


def _exp_search_bracket(
    v0: _Vec3, pdist: float, ddist: float
) -> tuple[float, float]:
    r0, s0, t0 = v0
    baselow, baseupr = -EXP_CONE_INFINITY_VALUE, EXP_CONE_INFINITY_VALUE
    low, upr = -EXP_CONE_INFINITY_VALUE, EXP_CONE_INFINITY_VALUE

    dp = _sqrt(pdist * pdist - _min(s0, 0.0) * _min(s0, 0.0))
    dd = _sqrt(ddist * ddist - _min(r0, 0.0) * _min(r0, 0.0))

    if t0 > 0:
        low = _max(low, _log(_div(t0, _ppsi(v0))))
    elif t0 < 0:
        upr = _min(upr, -_log(_div(-t0, _dpsi(v0))))

    if r0 > 0:
        baselow = 1 - s0 / r0
        low = _max(low, baselow)
        tpu = _max(1e-12, _min(dd, dp + t0))
        curbnd = _max(low, baselow + _div(tpu / r0, _pomega(low)))
        upr = _min(upr, curbnd)

    if s0 > 0:
        baseupr = r0 / s0
        upr = _min(upr, baseupr)
        tdl = -_max(1e-12, _min(dp, dd - t0))
        curbnd = _min(upr, baseupr - _div(tdl / s0, _domega(upr)))
        low = _max(low, curbnd)

    low = _clip(_min(low, upr), baselow, baseupr)
    upr = _clip(_max(low, upr), baselow, baseupr)

    if low != upr:
        fl, _df = _hfun(v0, low)
        fu, _df = _hfun(v0, upr)
        if fl * fu > 0:
            if abs(fl) < abs(fu):
                upr = low
            else:
                low = upr
    return low, upr


def _proj_sol_primal(v0: _Vec3, rho: float) -> tuple[float, _Vec3]:
    linrho = (rho - 1) * v0[0] + v0[1]
    exprho = _exp(rho)
    if linrho > 0 and _isfinite(exprho):
        quadrho = rho * (rho - 1) + 1
        vp = [rho * linrho / quadrho, linrho / quadrho, exprho * linrho / quadrho]
        return norm_diff(vp, v0), vp
    return EXP_CONE_INFINITY_VALUE, [0.0, 0.0, EXP_CONE_INFINITY_VALUE]


def _proj_sol_polar(v0: _Vec3, rho: float) -> tuple[float, _Vec3]:
    linrho = v0[0] - rho * v0[1]
    exprho = _exp(-rho)
    if linrho > 0 and _isfinite(exprho):
        quadrho = rho * (rho - 1) + 1
        vd = [
            linrho / quadrho,
            (1 - rho) * linrho / quadrho,
            -exprho * linrho / quadrho,
        ]
        return norm_diff(v0, vd), vd
    return EXP_CONE_INFINITY_VALUE, [0.0, 0.0, -EXP_CONE_INFINITY_VALUE]


def proj_pd_exp_cone(
    v0: Sequence[float], primal: bool
) -> tuple[np.ndarray, float]:
    """Project ``v0 = (r, s, t)`` onto the primal or the dual exponential cone.

    Returns the projected point and its Euclidean distance from ``v0``.
    """
    v = [float(t) for t in np.asarray(v0, dtype=float).ravel()]
    if len(v) != 3:
        raise ValueError("exponential cone points have exactly 3 entries")
    if not primal:
        # Pi_{K*}(v) = -Pi_{K polar}(-v)
        v = [-t for t in v]

    pdist, vp = _primal_heuristic(v)
    ddist, vd = _polar_heuristic(v)

    err = _max(
        _max(abs(vp[0] + vd[0] - v[0]), abs(vp[1] + vd[1] - v[1])),
        abs(vp[2] + vd[2] - v[2]),
    )

    opt = (
        (v[1] <= 0 and v[0] <= 0)
        or _min(pdist, ddist) <= _TOL
        or (err <= _TOL and dot(vp, vd) <= _TOL)
    )
    if opt:
        if primal:
            return np.array(vp), pdist
        return -np.array(vd), ddist

    xl, xh = _exp_search_bracket(v, pdist, ddist)
    rho = _root_search_newton(v, xl, xh, 0.5 * (xl + xh))

    if primal:
        dist_hat, v_hat = _proj_sol_primal(v, rho)
        if dist_hat <= pdist:
            vp, pdist = v_hat, dist_hat
        return np.array(vp), pdist

    dist_hat, v_hat = _proj_sol_polar(v, rho)
    if dist_hat <= ddist:
        vd, ddist = v_hat, dist_hat
    return -np.array(vd), ddist