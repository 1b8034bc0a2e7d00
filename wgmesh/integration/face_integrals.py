"""wgmesh.integration.face_integrals

Integrals over the cells of a :class:`~wgmesh.core.mesh.RectMesh` and over
their side faces.

Local origins
-------------
Every face F of the mesh evaluates its face-local functions relative to its
coordinate-minimum vertex o(F), with o_r(F) = min {x_r | x in F}. Because sides
are axis aligned, a function local to a side S perpendicular to axis a always
receives 0 as its a-th argument, and every other argument equals the one the
owning element's local function would receive. Reducing a side-local
polynomial to the side's own d-1 variables is then just fixing variable a to 0.
"""
from typing import Callable

import numpy as np

from wgmesh.core.sideconvention import InteriorFace, SideFace, fe_face, side_face
from wgmesh.fem import polynomial as poly
from wgmesh.integration.cubature import hcubature


class IntegrationContext:
    """
    Integration working memory for one mesh.

    The scratch arrays are overwritten by every numerical integration, so a
    context must only be used by one thread at a time. Contexts are cheap;
    create one per worker.
    """

    def __init__(self, mesh):
        d = mesh.space_dim
        self.mesh = mesh
        self.intgd_args_work_array = np.empty(d)
        self.fe_origin_work_array = np.empty(d)
        self.ref_fe_min_bounds = np.zeros(d)
        self.ref_fe_min_bounds_short = np.zeros(d - 1)

    def _cubature(self, intgd, lower, upper) -> float:
        tol = self.mesh.tolerances
        return hcubature(intgd, lower, upper, tol.rel_err, tol.abs_err, limit=tol.limit)[0]

    # ------------------------------------------------------------------
    def integral_face_rel_on_face(self, mon: poly.PolyLike, face) -> float:
        """Exact integral of a face-relative polynomial over a face of any element."""
        mesh = self.mesh
        match fe_face(face, mesh.space_dim):
            case InteriorFace():
                return poly.integral_on_rect_at_origin(mon, mesh.fe_dims)
            case SideFace(axis=a):
                dim_reduced_intgd = poly.reduce_dim_by_fixing(a, 0.0, mon)
                return poly.integral_on_rect_at_origin(dim_reduced_intgd, mesh.fe_dims_wo_dim[a - 1])

    def integral_global_x_face_rel_on_fe_face(self,
                                              f: Callable[[np.ndarray], float],
                                              mon: poly.PolyLike,
                                              fe: int,
                                              face) -> float:
        """
        Numerical integral over a face of element ``fe`` of f(x) * mon(x - o),
        where f takes global coordinates and o is the face's local origin.
        """
        mesh = self.mesh
        d = mesh.space_dim
        fc = fe_face(face, d)
        fe_local_origin = mesh.fe_coords_into(fe, self.fe_origin_work_array)
        fe_x = self.intgd_args_work_array
        match fc:
            case InteriorFace():
                def ref_intgd(x: np.ndarray) -> float:
                    np.add(fe_local_origin, x, out=fe_x)
                    return f(fe_x) * poly.polynomial_value(mon, x)

                return self._cubature(ref_intgd, self.ref_fe_min_bounds, mesh.fe_dims)
            case SideFace(axis=a):
                i = a - 1
                a_coord_of_fe_side = fe_local_origin[i] + (0.0 if fc.is_lesser else mesh.fe_dims[i])
                mon_dim_reduced = poly.reduce_dim_by_fixing(a, 0.0, mon)

                def ref_intgd(x: np.ndarray) -> float:
                    # x has d-1 components
                    fe_x[:i] = fe_local_origin[:i] + x[:i]
                    fe_x[i] = a_coord_of_fe_side
                    fe_x[i + 1:] = fe_local_origin[i + 1:] + x[i:]
                    return f(fe_x) * poly.polynomial_value(mon_dim_reduced, x)

                return self._cubature(ref_intgd, self.ref_fe_min_bounds_short, mesh.fe_dims_wo_dim[i])

    def integral_side_rel_x_fe_rel_vs_outward_normal_on_side(self,
                                                             m: poly.PolyLike,
                                                             q: poly.VectorPolynomial,
                                                             side) -> float:
        """
        Integrate side-relative m times the element-relative vector polynomial
        q dotted with the outward normal of the side.
        """
        sf = side_face(side, self.mesh.space_dim)
        a = sf.axis
        qa = q[a]
        if poly.is_zero(qa):
            return 0.0
        side_fe_rel_a_coord = 0.0 if sf.is_lesser else self.mesh.fe_dims[a - 1]
        qa_dim_red = poly.reduce_dim_by_fixing(a, side_fe_rel_a_coord, qa)
        m_dim_red = poly.reduce_dim_by_fixing(a, 0.0, m)
        int_m_qa = poly.integral_on_rect_at_origin(m_dim_red * qa_dim_red, self.mesh.fe_dims_wo_dim[a - 1])
        # outward normal on the lesser side is -e_a
        return -int_m_qa if sf.is_lesser else int_m_qa

    def integral_fe_rel_x_side_rel_on_side(self, fe_mon: poly.PolyLike, side_mon: poly.PolyLike, side) -> float:
        sf = side_face(side, self.mesh.space_dim)
        a = sf.axis
        side_fe_rel_a_coord = 0.0 if sf.is_lesser else self.mesh.fe_dims[a - 1]
        fe_mon_dim_red = poly.reduce_dim_by_fixing(a, side_fe_rel_a_coord, fe_mon)
        side_mon_dim_red = poly.reduce_dim_by_fixing(a, 0.0, side_mon)
        return poly.integral_on_rect_at_origin(fe_mon_dim_red * side_mon_dim_red, self.mesh.fe_dims_wo_dim[a - 1])
