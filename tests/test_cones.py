import math

import numpy as np
import pytest

from conekit.cones import (
    Cone,
    ConeError,
    ConeWork,
    proj_box_cone,
    proj_power_cone,
    proj_semi_definite_cone,
    proj_soc,
    sd_cone_size,
)
from conekit.linalg import norm_inf
from conekit.scaling import Scaling


def _unpack(packed, n):
    rows, cols = np.triu_indices(n)
    mat = np.zeros((n, n))
    mat[cols, rows] = packed
    mat[rows, cols] = packed
    off = ~np.eye(n, dtype=bool)
    mat[off] /= math.sqrt(2.0)
    return mat


def test_sd_cone_size_matches_packed_triangle():
    for n in range(7):
        assert sd_cone_size(n) == len(np.triu_indices(n)[0])


def test_full_dim_and_boundaries_of_mixed_cone():
    cone = Cone(z=19, l=7, s=[4, 2], ep=2)
    assert cone.full_dim() == 45
    bounds = cone.boundaries()
    assert sum(bounds) == cone.full_dim()
    assert bounds[0] == cone.z + cone.l + cone.bsize
    assert len(bounds) == 1 + len(cone.s) + cone.ep + cone.ed


@pytest.mark.parametrize(
    "cone, m, message",
    [
        (Cone(l=4), 5, "cone dimensions"),
        (Cone(z=-1, l=2), 1, "free cone"),
        (Cone(bsize=2, bl=[1.0], bu=[0.0]), 2, "lower bound larger"),
        (Cone(p=[1.5]), 3, "power cone"),
        (Cone(l=5, q=[-1]), 4, "soc cone"),
        (Cone(bsize=3, bl=[0.0], bu=[1.0]), 3, "bsize - 1"),
    ],
)
def test_validate_rejects_bad_cones(cone, m, message):
    with pytest.raises(ConeError, match=message):
        cone.validate(m)


def test_header_lists_linear_vars():
    assert Cone(l=4).header() == "cones: \t  l: linear vars: 4\n"


def test_header_lists_exp_cones():
    header = Cone(ep=1).header()
    assert header.startswith("cones: ")
    assert "e: exp vars: 3, dual exp vars: 0" in header


def test_copy_is_independent():
    cone = Cone(bsize=3, bl=[-1.0, 0.0], bu=[1.0, 2.0], q=[3])
    dup = cone.copy()
    dup.bu[0] = 99.0
    dup.q.append(5)
    assert cone.bu[0] == 1.0
    assert cone.q == [3]
    assert dup.bl.tolist() == cone.bl.tolist()


def test_proj_soc_inside_unchanged_and_polar_zero():
    inside = [2.0, 1.0, 1.0]
    assert np.allclose(proj_soc(inside), inside)
    assert np.allclose(proj_soc([-2.0, 1.0, 1.0]), 0.0)
    assert proj_soc([]).size == 0
    assert proj_soc([-3.0]).tolist() == [0.0]


def test_proj_soc_general_point_properties():
    x = np.array([0.5, 2.0, -1.0, 3.0])
    p = proj_soc(x)
    assert np.linalg.norm(p[1:]) == pytest.approx(p[0])
    assert np.dot(x - p, p) == pytest.approx(0.0, abs=1e-12)
    assert np.allclose(proj_soc(p), p)


def test_proj_power_cone_inside_unchanged():
    v = [1.0, 1.0, 0.5]
    assert np.allclose(proj_power_cone(v, 0.5), v)


def test_proj_power_cone_dual_side_goes_to_zero():
    assert np.allclose(proj_power_cone([-1.0, -1.0, 0.1], 0.5), 0.0)


def test_proj_power_cone_outside_point_lands_on_boundary():
    v = np.array([1.0, 2.0, -5.0])
    a = 0.3
    p = proj_power_cone(v, a)
    assert p[2] < 0
    assert p[0] ** a * p[1] ** (1 - a) == pytest.approx(abs(p[2]), abs=1e-6)
    assert np.dot(v - p, p) == pytest.approx(0.0, abs=1e-5)


def test_proj_power_cone_rejects_bad_exponent():
    with pytest.raises(ValueError):
        proj_power_cone([1.0, 1.0, 1.0], 1.5)


def test_proj_box_cone_single_entry():
    proj, t = proj_box_cone([-2.0], [], [], 1.0, None)
    assert proj.tolist() == [0.0]
    assert t == 0.0


def test_proj_box_cone_interior_point_unchanged():
    proj, t = proj_box_cone([1.0, 0.5], [0.0], [1.0], 1.0, None)
    assert t == pytest.approx(1.0)
    assert np.allclose(proj, [1.0, 0.5])


def test_proj_box_cone_outside_point():
    tx = np.array([1.0, 3.0, -3.0])
    bl = np.array([-1.0, -1.0])
    bu = np.array([1.0, 1.0])
    proj, t = proj_box_cone(tx, bl, bu, 1.0, None)
    assert proj[0] == t
    assert t >= 0
    assert np.all(proj[1:] <= t * bu + 1e-12)
    assert np.all(proj[1:] >= t * bl - 1e-12)
    assert np.dot(tx - proj, proj) == pytest.approx(0.0, abs=1e-9)


def test_proj_box_cone_empty_raises():
    with pytest.raises(ValueError):
        proj_box_cone([], [], [], 1.0, None)


def test_proj_psd_drops_negative_eigenvalue():
    assert np.allclose(proj_semi_definite_cone([1.0, 0.0, -1.0], 2), [1.0, 0.0, 0.0])


def test_proj_psd_keeps_psd_matrix():
    packed = [2.0, math.sqrt(2.0) * 0.5, 1.0]
    assert np.allclose(proj_semi_definite_cone(packed, 2), packed)


def test_proj_psd_random_matrix_properties():
    rng = np.random.default_rng(3)
    n = 4
    x = rng.standard_normal(sd_cone_size(n))
    p = proj_semi_definite_cone(x, n)
    assert np.linalg.eigvalsh(_unpack(p, n)).min() >= -1e-10
    assert np.dot(x - p, p) == pytest.approx(0.0, abs=1e-10)
    assert np.allclose(proj_semi_definite_cone(p, n), p)


def test_proj_psd_small_sizes_and_errors():
    assert proj_semi_definite_cone([-3.0], 1).tolist() == [0.0]
    assert proj_semi_definite_cone([], 0).size == 0
    with pytest.raises(ValueError):
        proj_semi_definite_cone([1.0, 2.0], 2)


def test_set_r_y_weights():
    work = ConeWork(Cone(z=2, l=3), 5)
    scale = 0.1
    r_y = work.set_r_y(scale)
    assert np.allclose(r_y[:2] * 1000.0 * scale, 1.0)
    assert np.allclose(r_y[2:] * scale, 1.0)


def test_enforce_cone_boundaries_with_inf_norm():
    work = ConeWork(Cone(l=2, q=[3], ep=1), 8)
    vec = np.array([5.0, -7.0, 1.0, -4.0, 2.0, 0.5, -0.25, 3.0])
    original = vec.copy()
    out = work.enforce_cone_boundaries(vec, norm_inf)
    assert out is vec
    assert np.array_equal(vec[:2], original[:2])
    assert np.all(vec[2:5] == norm_inf(original[2:5]))
    assert np.all(vec[5:8] == norm_inf(original[5:8]))


def test_proj_dual_cone_zero_and_orthant():
    work = ConeWork(Cone(z=2, l=3), 5)
    result = work.proj_dual_cone([-1.0, 2.0, -3.0, 4.0, -5.0])
    assert result.tolist() == [-1.0, 2.0, 0.0, 4.0, 0.0]


def test_proj_dual_cone_of_negated_primal_point_is_zero():
    cone = Cone(l=2, q=[3], s=[2])
    work = ConeWork(cone, cone.full_dim())
    s = np.array([1.0, 2.0, 2.0, 1.0, 1.0, 1.0, 0.0, 1.0])
    assert np.allclose(work.proj_dual_cone(-s), 0.0, atol=1e-12)


@pytest.mark.parametrize(
    "v0, vp, vd",
    [
        ([1, 2, 3], [0.8899428, 1.94041881, 3.06957226], [-0.0, 2.0, 3.0]),
        (
            [-0.78301134, 1.82790084, -1.05417044],
            [-1.17415616, 0.9567094, 0.280399],
            [-0.68541419, 1.85424082, 0.01685653],
        ),
        (
            [1.3282585, -0.43277314, 1.7468072],
            [0.53160512, 0.2804836, 1.86652094],
            [-0.02277033, -0.12164823, 1.75085347],
        ),
    ],
)
def test_proj_dual_cone_exponential(v0, vp, vd):
    primal_work = ConeWork(Cone(ep=1), 3)
    dual_work = ConeWork(Cone(ed=1), 3)
    assert np.linalg.norm(primal_work.proj_dual_cone(v0) - vd) <= 1e-5
    assert np.linalg.norm(dual_work.proj_dual_cone(v0) - vp) <= 1e-5


def test_proj_dual_cone_of_dual_power_cone_is_primal_projection():
    work = ConeWork(Cone(p=[-0.3]), 3)
    x = np.array([1.0, 2.0, -5.0])
    assert np.allclose(work.proj_dual_cone(x), proj_power_cone(x, 0.3), atol=1e-12)


@pytest.mark.parametrize(
    "degenerate",
    [Cone(l=2, bsize=1), Cone(l=2, q=[1]), Cone(l=2, s=[1])],
)
def test_degenerate_cones_match_orthant(degenerate):
    x = np.array([-1.0, 2.0, -0.5])
    expected = ConeWork(Cone(l=3), 3).proj_dual_cone(x)
    assert np.allclose(ConeWork(degenerate, 3).proj_dual_cone(x), expected)


def test_scaling_turns_huge_box_bounds_infinite():
    cone = Cone(bsize=2, bl=[-1e20], bu=[1e20])
    work = ConeWork(cone, 2)
    work.proj_dual_cone([1.0, 0.5], Scaling.identity(2, 0))
    assert work.cone.bu[0] == math.inf
    assert work.cone.bl[0] == -math.inf
    assert cone.bu[0] == 1e20


def test_weighted_box_dual_projection_is_idempotent():
    cone = Cone(l=1, bsize=3, bl=[-1.0, 0.0], bu=[1.0, 2.0])
    work = ConeWork(cone, cone.full_dim())
    r_y = work.set_r_y(2.0)
    x = np.array([-0.3, 0.7, 2.5, -1.5])
    y = work.proj_dual_cone(x, None, r_y)
    assert np.allclose(work.proj_dual_cone(y, None, r_y), y, atol=1e-8)


def test_proj_dual_cone_length_mismatch():
    work = ConeWork(Cone(l=3), 3)
    with pytest.raises(ValueError):
        work.proj_dual_cone([1.0, 2.0])
    with pytest.raises(ValueError):
        work.proj_dual_cone([1.0, 2.0, 3.0], None, [1.0])