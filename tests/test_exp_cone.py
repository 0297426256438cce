import numpy as np
import pytest

from conekit.exp_cone import proj_pd_exp_cone
from conekit.linalg import norm_diff

TOL = 1e-6

POINTS = [
    [1, 2, 3],
    [0.14814832, 1.04294573, 0.67905585],
    [-0.78301134, 1.82790084, -1.05417044],
    [1.3282585, -0.43277314, 1.7468072],
    [0.67905585, 0.14814832, 1.04294573],
    [0.50210027, 0.12314491, -1.77568921],
]

PRIMAL = [
    [0.8899428, 1.94041881, 3.06957226],
    [-0.02001571, 0.8709169, 0.85112944],
    [-1.17415616, 0.9567094, 0.280399],
    [0.53160512, 0.2804836, 1.86652094],
    [0.38322814, 0.27086569, 1.11482228],
    [0.0, 0.0, 0.0],
]

DUAL = [
    [-0.0, 2.0, 3.0],
    [-0.0, 1.04294573, 0.67905585],
    [-0.68541419, 1.85424082, 0.01685653],
    [-0.02277033, -0.12164823, 1.75085347],
    [-0.0, 0.14814832, 1.04294573],
    [-0.0, 0.12314491, -0.0],
]


@pytest.mark.parametrize("v0,expected", list(zip(POINTS, PRIMAL)))
def test_primal_projection_matches_reference(v0, expected):
    vp, _dist = proj_pd_exp_cone(v0, True)
    assert norm_diff(vp, expected) <= TOL


@pytest.mark.parametrize("v0,expected", list(zip(POINTS, DUAL)))
def test_dual_projection_matches_reference(v0, expected):
    vd, _dist = proj_pd_exp_cone(v0, False)
    assert norm_diff(vd, expected) <= TOL


@pytest.mark.parametrize("v0", POINTS)
def test_returned_distance_is_distance_to_input(v0):
    vp, pdist = proj_pd_exp_cone(v0, True)
    vd, ddist = proj_pd_exp_cone(v0, False)
    assert pdist == pytest.approx(norm_diff(vp, v0), abs=1e-9)
    assert ddist == pytest.approx(norm_diff(vd, v0), abs=1e-9)


@pytest.mark.parametrize("v0", POINTS)
def test_primal_projection_is_idempotent(v0):
    vp, _ = proj_pd_exp_cone(v0, True)
    again, dist = proj_pd_exp_cone(vp, True)
    assert norm_diff(again, vp) <= TOL
    assert dist <= TOL


@pytest.mark.parametrize("v0", POINTS)
def test_moreau_decomposition(v0):
    # v = Pi_K(v) - Pi_{K*}(-v)
    vp, _ = proj_pd_exp_cone(v0, True)
    neg = [-t for t in v0]
    vd, _ = proj_pd_exp_cone(neg, False)
    assert norm_diff(vp - vd, v0) <= 1e-5


def test_point_inside_cone_is_unchanged():
    v0 = [0.0, 1.0, 5.0]
    vp, dist = proj_pd_exp_cone(v0, True)
    assert np.allclose(vp, v0)
    assert dist == pytest.approx(0.0)


def test_input_is_not_modified():
    v0 = np.array(POINTS[2], dtype=float)
    before = v0.copy()
    proj_pd_exp_cone(v0, False)
    assert np.array_equal(v0, before)


def test_wrong_length_raises():
    with pytest.raises(ValueError):
        proj_pd_exp_cone([1.0, 2.0], True)