import math
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from wgmesh.core import RectMesh, MeshIndexError
from wgmesh.core.sideconvention import SideFace, Polarity, INTERIOR
from wgmesh.fem.polynomial import Monomial, VectorMonomial, VectorPolynomial
from wgmesh.integration.face_integrals import IntegrationContext


@pytest.fixture(scope="module")
def unit_mesh():
    return RectMesh([0.0, 0.0], [1.0, 1.0], [1, 1])


@pytest.fixture(scope="module")
def box_mesh():
    # single 2 x 3 cell
    return RectMesh([0.0, 0.0], [2.0, 3.0], [1, 1])


@pytest.fixture(scope="module")
def strip_mesh():
    return RectMesh([0.0, 0.0], [2.0, 1.0], [2, 1])


# ---------------------------------------------------------------------------
# face-relative polynomials, exact
# ---------------------------------------------------------------------------
def test_constant_on_unit_cell_interior(unit_mesh):
    assert np.isclose(unit_mesh.integral_face_rel_on_face(unit_mesh.one_mon, 0), 1.0)


def test_xy_on_unit_cell_interior(unit_mesh):
    assert np.isclose(unit_mesh.integral_face_rel_on_face(Monomial((1, 1)), INTERIOR), 0.25)


@pytest.mark.parametrize("face, mon, expected", [
    (0, (1, 2), 2.0 * 9.0),     # interior of the 2 x 3 cell
    (1, (1, 2), 0.0),           # x is 0 on sides perpendicular to x
    (2, (0, 2), 9.0),           # int_0^3 y^2
    (3, (1, 0), 2.0),           # int_0^2 x
    (4, (1, 1), 0.0),           # y is 0 on sides perpendicular to y
    (4, (0, 0), 2.0),           # side length
])
def test_face_rel_on_faces(box_mesh, face, mon, expected):
    assert np.isclose(box_mesh.integral_face_rel_on_face(Monomial(mon), face), expected)


# ---------------------------------------------------------------------------
# global function x face-relative polynomial, numerical
# ---------------------------------------------------------------------------
def test_sin_x_y_on_unit_cell(unit_mesh):
    f = lambda x: math.sin(x[0]) * x[1]
    val = unit_mesh.integral_global_x_face_rel_on_fe_face(f, unit_mesh.one_mon, 1, 0)
    exact = 0.5 * (1.0 - math.cos(1.0))
    tol = unit_mesh.tolerances
    assert abs(val - exact) <= tol.abs_err + tol.rel_err * abs(exact)


def test_interior_of_offset_cell(strip_mesh):
    # fe 2 spans x in [1, 2]: int_0^1 int_0^1 (1 + u) u du dv
    val = strip_mesh.integral_global_x_face_rel_on_fe_face(lambda x: x[0], Monomial((1, 0)), 2, 0)
    assert np.isclose(val, 0.5 + 1.0 / 3.0, rtol=1e-8)


@pytest.mark.parametrize("face, f, mon, expected", [
    (2, lambda x: x[0] * x[1], (0, 1), 2.0 / 3.0),          # x = 2 side of fe 2
    (1, lambda x: x[0] * x[1], (0, 1), 1.0 / 3.0),          # x = 1 side of fe 2
    (3, lambda x: x[0] + x[1], (1, 0), 0.5 + 1.0 / 3.0),    # y = 0 side of fe 2
    (4, lambda x: x[1], (0, 0), 1.0),                       # y = 1 side, length 1
])
def test_sides_of_offset_cell(strip_mesh, face, f, mon, expected):
    val = strip_mesh.integral_global_x_face_rel_on_fe_face(f, Monomial(mon), 2, face)
    assert np.isclose(val, expected, rtol=1e-8)


def test_global_integral_in_3d():
    mesh = RectMesh([0.0, 0.0, 0.0], [2.0, 2.0, 2.0], [2, 2, 2])
    fe = mesh.fe_with_mesh_coords((2, 1, 2))     # [1,2] x [0,1] x [1,2]
    # greater side perpendicular to z: z = 2, reference (u, v) -> (1 + u, v)
    val = mesh.integral_global_x_face_rel_on_fe_face(lambda x: x[0] * x[2], Monomial((0, 1, 0)), fe, 6)
    assert np.isclose(val, 2.0 * 1.5 * 0.5, rtol=1e-8)


def test_side_of_one_dimensional_cell():
    mesh = RectMesh([0.0], [2.0], [2])
    # a side of a 1D cell is a point; its integral is a point evaluation
    assert np.isclose(mesh.integral_global_x_face_rel_on_fe_face(lambda x: x[0] ** 2, mesh.one_mon, 2, 2), 4.0)
    assert np.isclose(mesh.integral_face_rel_on_face(Monomial((3,)), 1), 0.0)


def test_invalid_indices_fail_before_integration(strip_mesh):
    def never(x):
        raise AssertionError("integrand should not be evaluated")
    with pytest.raises(MeshIndexError):
        strip_mesh.integral_global_x_face_rel_on_fe_face(never, strip_mesh.one_mon, 3, 0)
    with pytest.raises(MeshIndexError):
        strip_mesh.integral_global_x_face_rel_on_fe_face(never, strip_mesh.one_mon, 1, 5)
    with pytest.raises(MeshIndexError):
        strip_mesh.integral_face_rel_on_face(strip_mesh.one_mon, -1)


def test_integrand_errors_propagate(strip_mesh):
    def bad(x):
        raise FloatingPointError("bad point")
    with pytest.raises(FloatingPointError):
        strip_mesh.integral_global_x_face_rel_on_fe_face(bad, strip_mesh.one_mon, 1, 0)


# ---------------------------------------------------------------------------
# side-relative x element-relative, exact
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("side, expected", [(1, -4.5), (2, 4.5), (3, 0.0), (4, 0.0)])
def test_outward_normal_sign(box_mesh, side, expected):
    q = VectorMonomial(Monomial((0, 1)), 1)        # q = (y, 0)
    val = box_mesh.integral_side_rel_x_fe_rel_vs_outward_normal_on_side(box_mesh.one_mon, q, side)
    assert np.isclose(val, expected)


def test_zero_normal_component_short_circuits(box_mesh):
    q = VectorMonomial(Monomial((5, 5)), 1)
    assert box_mesh.integral_side_rel_x_fe_rel_vs_outward_normal_on_side(Monomial((1, 1)), q, 3) == 0.0


def test_outward_flux_matches_divergence(box_mesh):
    # q = (x, y): div q = 2, so the total outward flux is 2 * area
    q = VectorPolynomial([Monomial((1, 0)), Monomial((0, 1))])
    flux = sum(box_mesh.integral_side_rel_x_fe_rel_vs_outward_normal_on_side(box_mesh.one_mon, q, s)
               for s in range(1, 5))
    assert np.isclose(flux, 2.0 * 6.0)


def test_side_monomial_weights_normal_flux(box_mesh):
    # on the x = 2 side: m = y (side relative), q_1 = x * y -> int_0^3 y * 2y dy = 18
    q = VectorMonomial(Monomial((1, 1)), 1)
    val = box_mesh.integral_side_rel_x_fe_rel_vs_outward_normal_on_side(Monomial((0, 1)), q, 2)
    assert np.isclose(val, 18.0)


@pytest.mark.parametrize("side, fe_mon, side_mon, expected", [
    (2, (1, 1), (0, 1), 18.0),      # int_0^3 (2y) y dy
    (1, (1, 1), (0, 1), 0.0),       # x = 0
    (4, (1, 1), (1, 0), 8.0),       # int_0^2 (3x) x dx
    (4, (1, 1), (0, 1), 0.0),       # side-relative y is 0
    (3, (0, 0), (0, 0), 2.0),
])
def test_fe_rel_x_side_rel(box_mesh, side, fe_mon, side_mon, expected):
    val = box_mesh.integral_fe_rel_x_side_rel_on_side(Monomial(fe_mon), Monomial(side_mon), side)
    assert np.isclose(val, expected)


def test_side_operations_reject_interior(box_mesh):
    with pytest.raises(MeshIndexError):
        box_mesh.integral_fe_rel_x_side_rel_on_side(box_mesh.one_mon, box_mesh.one_mon, 0)
    with pytest.raises(MeshIndexError):
        box_mesh.integral_side_rel_x_fe_rel_vs_outward_normal_on_side(
            box_mesh.one_mon, VectorMonomial(box_mesh.one_mon, 1), 0)


def test_tagged_faces_accepted(box_mesh):
    val = box_mesh.integral_fe_rel_x_side_rel_on_side(Monomial((1, 1)), Monomial((0, 1)),
                                                      SideFace(1, Polarity.GREATER))
    assert np.isclose(val, 18.0)


# ---------------------------------------------------------------------------
# contexts
# ---------------------------------------------------------------------------
def test_explicit_context_matches_mesh_methods(strip_mesh):
    ctx = IntegrationContext(strip_mesh)
    assert ctx.ref_fe_min_bounds.shape == (2,)
    assert ctx.ref_fe_min_bounds_short.shape == (1,)
    f = lambda x: x[0] * x[1]
    a = ctx.integral_global_x_face_rel_on_fe_face(f, Monomial((0, 1)), 2, 2)
    b = strip_mesh.integral_global_x_face_rel_on_fe_face(f, Monomial((0, 1)), 2, 2)
    assert a == b
    assert strip_mesh.integration_context() is not strip_mesh.integration_context()


def test_threads_use_separate_contexts():
    mesh = RectMesh([0.0, 0.0], [4.0, 4.0], [4, 4])
    f = lambda x: math.exp(x[0]) * x[1]
    serial = [mesh.integral_global_x_face_rel_on_fe_face(f, Monomial((1, 0)), fe, 0)
              for fe in range(1, mesh.num_fes + 1)]
    with ThreadPoolExecutor(max_workers=4) as pool:
        parallel = list(pool.map(
            lambda fe: mesh.integral_global_x_face_rel_on_fe_face(f, Monomial((1, 0)), fe, 0),
            range(1, mesh.num_fes + 1)))
    assert np.allclose(serial, parallel, rtol=1e-12)


def test_concurrent_integration_leaves_warning_filters_alone():
    mesh = RectMesh([0.0, 0.0], [4.0, 4.0], [4, 4])
    f = lambda x: math.sin(x[0]) * x[1]
    filters_before = list(warnings.filters)

    def integrate_all(_):
        return [mesh.integral_global_x_face_rel_on_fe_face(f, mesh.one_mon, fe, 0)
                for fe in range(1, mesh.num_fes + 1)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(integrate_all, range(8)))
    assert list(warnings.filters) == filters_before
    for r in results[1:]:
        assert np.allclose(r, results[0], rtol=1e-12)
