import logging
import threading
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from wgmesh.core.errors import MeshIndexError, MeshInvariantError, MeshValidationError
from wgmesh.core.sideconvention import (side_face, lesser_side_face_perp_to_axis,
                                        greater_side_face_perp_to_axis)
from wgmesh.core.topology import NBSideGeom, NBSideInclusions
from wgmesh.fem.polynomial import Monomial
from wgmesh.integration.cubature import IntegrationTolerances, DEFAULT_TOLERANCES

logger = logging.getLogger(__name__)


def _readonly(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


class RectMesh:
    """
    Structured mesh of axis-aligned rectangular cells in R^d.

    Cells (finite elements, FEs) are numbered 1..num_fes by a mixed-radix
    encoding of their logical coordinates (c_1, ..., c_d), c_i in 1..k_i, with
    the first axis varying fastest. Interior sides shared by two cells
    (non-boundary sides, NB sides) are numbered 1..num_nb_sides, grouped by
    perpendicular axis; within the group for axis a the same encoding is used
    over the "side mesh" whose a-th dimension is k_a - 1.

    The mesh holds no mutable state once constructed. Integration scratch
    memory lives in :class:`~wgmesh.integration.face_integrals.IntegrationContext`
    objects; the integral methods here use one context per calling thread.
    """

    def __init__(self,
                 min_bounds: Sequence[float],
                 max_bounds: Sequence[float],
                 logical_dims: Sequence[int],
                 rel_err: float = DEFAULT_TOLERANCES.rel_err,
                 abs_err: float = DEFAULT_TOLERANCES.abs_err):
        min_bounds = np.array(min_bounds, dtype=float).ravel()
        max_bounds = np.array(max_bounds, dtype=float).ravel()
        ldims_in = np.asarray(logical_dims).ravel()
        d = min_bounds.shape[0]
        if d == 0:
            raise MeshValidationError("mesh must have at least one axis")
        if max_bounds.shape[0] != d:
            raise MeshValidationError("min and max bound lengths should match")
        if ldims_in.shape[0] != d:
            raise MeshValidationError("logical dimensions length does not match physical bounds length")
        if not np.all(max_bounds - min_bounds > 0.0):
            raise MeshValidationError(f"improper mesh bounds {min_bounds} - {max_bounds}")
        if not np.all(np.mod(ldims_in, 1) == 0):
            raise MeshValidationError(f"logical mesh dimensions must be integers, got {ldims_in}")
        mesh_ldims = ldims_in.astype(np.int64)
        if not np.all(mesh_ldims > 0):
            raise MeshValidationError(f"non-positive logical mesh dimension in {mesh_ldims}")
        try:
            self.tolerances = IntegrationTolerances(rel_err=float(rel_err), abs_err=float(abs_err))
        except ValueError as exc:
            raise MeshValidationError(str(exc)) from exc

        self.space_dim: int = d
        self.min_bounds = _readonly(min_bounds)
        self.max_bounds = _readonly(max_bounds)
        self.mesh_ldims = _readonly(mesh_ldims)

        # dimensions of any single finite element
        self.fe_dims = _readonly((max_bounds - min_bounds) / mesh_ldims)
        self.fe_dims_wo_dim: Tuple[np.ndarray, ...] = tuple(
            _readonly(np.delete(self.fe_dims, r)) for r in range(d))

        self.cumprods_mesh_ldims = _readonly(np.cumprod(mesh_ldims))
        self.cumprods_nb_side_mesh_ldims_by_perp_axis: Tuple[np.ndarray, ...] = tuple(
            _readonly(np.cumprod(self._nb_side_mesh_ldims(a))) for a in range(1, d + 1))

        nb_side_counts = np.array([cp[-1] for cp in self.cumprods_nb_side_mesh_ldims_by_perp_axis],
                                  dtype=np.int64)
        self.nb_side_counts_by_perp_axis = _readonly(nb_side_counts)
        self.first_nb_side_nums_by_perp_axis = _readonly(
            np.cumsum(np.concatenate(([1], nb_side_counts[:-1]))))

        self.num_fes: int = int(self.cumprods_mesh_ldims[-1])
        self.num_nb_sides: int = int(nb_side_counts.sum())
        self.num_side_faces_per_fe: int = 2 * d
        self.fe_diameter_inv: float = 1.0 / float(np.sqrt(np.dot(self.fe_dims, self.fe_dims)))
        self.one_mon = Monomial.one(d)

        self._contexts = threading.local()

        logger.debug(f"RectMesh: d={d}, ldims={mesh_ldims.tolist()}, fe_dims={self.fe_dims.tolist()}, "
                     f"num_fes={self.num_fes}, num_nb_sides={self.num_nb_sides}")

    # ------------------------------------------------------------------
    # construction helpers
    # ------------------------------------------------------------------
    def _nb_side_mesh_ldims(self, perp_axis: int) -> np.ndarray:
        """Logical dimensions of the mesh of sides perpendicular to ``perp_axis``."""
        dims = self.mesh_ldims.copy()
        dims[perp_axis - 1] -= 1
        return dims

    def __repr__(self):
        return (f"RectMesh(min_bounds={self.min_bounds.tolist()}, max_bounds={self.max_bounds.tolist()}, "
                f"logical_dims={self.mesh_ldims.tolist()})")

    # ------------------------------------------------------------------
    # validation helpers
    # ------------------------------------------------------------------
    def _check_axis(self, r: int):
        if not 1 <= r <= self.space_dim:
            raise MeshIndexError(f"coordinate number {r} out of range 1..{self.space_dim}")

    def _check_fe(self, fe: int):
        if not 1 <= fe <= self.num_fes:
            raise MeshIndexError(f"finite element number {fe} out of range 1..{self.num_fes}")

    def _check_nb_side(self, n: int):
        if not 1 <= n <= self.num_nb_sides:
            raise MeshIndexError(f"non-boundary side number {n} out of range 1..{self.num_nb_sides}")

    def _check_coords(self, coords: Sequence[int], ldims: np.ndarray):
        if len(coords) != self.space_dim:
            raise MeshIndexError(f"expected {self.space_dim} mesh coordinates, got {len(coords)}")
        for r, (c, k) in enumerate(zip(coords, ldims), start=1):
            if not float(c).is_integer():
                raise MeshIndexError(f"mesh coordinate {c} on axis {r} is not an integer")
            if not 1 <= c <= k:
                raise MeshIndexError(f"mesh coordinate {c} on axis {r} out of range 1..{k}")

    # ------------------------------------------------------------------
    # finite element indexing
    # ------------------------------------------------------------------
    def fe_mesh_coord(self, r: int, fe: int) -> int:
        """
        The r-th logical coordinate of a finite element:
            pi(r, fe) = ((fe - 1) mod (k_1 ... k_r)) div (k_1 ... k_(r-1)) + 1
        """
        self._check_axis(r)
        self._check_fe(fe)
        below = 1 if r == 1 else int(self.cumprods_mesh_ldims[r - 2])
        return int((fe - 1) % int(self.cumprods_mesh_ldims[r - 1]) // below) + 1

    def fe_mesh_coords(self, fe: int) -> Tuple[int, ...]:
        return tuple(self.fe_mesh_coord(r, fe) for r in range(1, self.space_dim + 1))

    def fe_with_mesh_coords(self, coords: Sequence[int]) -> int:
        """
        Finite element number for logical coordinates (c_1, ..., c_d):
            fe = c_1 + sum_{i=2..d} (c_i - 1) * k_1 ... k_(i-1)
        """
        self._check_coords(coords, self.mesh_ldims)
        fe = int(coords[0])
        for i in range(1, self.space_dim):
            fe += (int(coords[i]) - 1) * int(self.cumprods_mesh_ldims[i - 1])
        return fe

    def all_fe_mesh_coords(self) -> np.ndarray:
        """Logical coordinates of every element; row i belongs to element i+1."""
        fes = np.arange(self.num_fes, dtype=np.int64)
        below = np.concatenate(([1], self.cumprods_mesh_ldims[:-1]))
        return (fes[:, None] % self.cumprods_mesh_ldims[None, :]) // below[None, :] + 1

    def fe_coords_into(self, fe: int, coords: np.ndarray) -> np.ndarray:
        """Fill ``coords`` with the element's range-minimum corner."""
        for r in range(1, self.space_dim + 1):
            coords[r - 1] = self.min_bounds[r - 1] + (self.fe_mesh_coord(r, fe) - 1) * self.fe_dims[r - 1]
        return coords

    def fe_coords(self, fe: int) -> np.ndarray:
        return self.fe_coords_into(fe, np.empty(self.space_dim))

    def num_side_faces_for_fe(self, fe: int) -> int:
        self._check_fe(fe)
        return self.num_side_faces_per_fe

    def fe_diameter_inv_for_fe(self, fe: int) -> float:
        self._check_fe(fe)
        return self.fe_diameter_inv

    # ------------------------------------------------------------------
    # sides
    # ------------------------------------------------------------------
    def is_boundary_side(self, fe: int, face) -> bool:
        sf = side_face(face, self.space_dim)
        a = sf.axis
        coord_a = self.fe_mesh_coord(a, fe)
        return bool((sf.is_lesser and coord_a == 1)
                    or (not sf.is_lesser and coord_a == self.mesh_ldims[a - 1]))

    def perp_axis_for_nb_side(self, n: int) -> int:
        self._check_nb_side(n)
        for a in range(self.space_dim, 0, -1):
            if n >= self.first_nb_side_nums_by_perp_axis[a - 1]:
                return a
        raise MeshInvariantError(f"cannot find perpendicular axis for non-boundary side number {n}")

    def nb_side_geom(self, n: int) -> NBSideGeom:
        """
        Perpendicular axis a(n) of side n and its coordinates in the mesh of
        sides perpendicular to a(n):
            pi_s(r, n) = ((n - s_a) mod (k_a1 ... k_ar)) div (k_a1 ... k_a(r-1)) + 1
        where s_a is the first side number perpendicular to a and k_ai the i-th
        logical dimension of that side mesh.
        """
        a = self.perp_axis_for_nb_side(n)
        rel_ix = n - int(self.first_nb_side_nums_by_perp_axis[a - 1])
        cumprods = self.cumprods_nb_side_mesh_ldims_by_perp_axis[a - 1]
        coords = [rel_ix % int(cumprods[0]) + 1]
        for r in range(1, self.space_dim):
            coords.append(rel_ix % int(cumprods[r]) // int(cumprods[r - 1]) + 1)
        return NBSideGeom(a, tuple(coords))

    def nb_side_with_geom(self, perp_axis: int, coords: Sequence[int]) -> int:
        """Inverse of :meth:`nb_side_geom`."""
        self._check_axis(perp_axis)
        self._check_coords(coords, self._nb_side_mesh_ldims(perp_axis))
        cumprods = self.cumprods_nb_side_mesh_ldims_by_perp_axis[perp_axis - 1]
        n = int(self.first_nb_side_nums_by_perp_axis[perp_axis - 1]) + int(coords[0]) - 1
        for i in range(1, self.space_dim):
            n += (int(coords[i]) - 1) * int(cumprods[i - 1])
        return n

    def fe_inclusions_of_nb_side(self, n: int) -> NBSideInclusions:
        sgeom = self.nb_side_geom(n)
        a = sgeom.perp_axis
        lesser_fe = self.fe_with_mesh_coords(sgeom.mesh_coords)
        greater_fe = lesser_fe + (1 if a == 1 else int(self.cumprods_mesh_ldims[a - 2]))
        return NBSideInclusions(fe1=lesser_fe,
                                face_in_fe1=greater_side_face_perp_to_axis(a),
                                fe2=greater_fe,
                                face_in_fe2=lesser_side_face_perp_to_axis(a),
                                nb_side_num=n)

    def nb_side_for_fe_face(self, fe: int, face) -> int:
        """Number of the non-boundary side occupying a face of ``fe``."""
        if self.is_boundary_side(fe, face):
            raise MeshIndexError(f"face {face} of finite element {fe} is a boundary side")
        sf = side_face(face, self.space_dim)
        coords = list(self.fe_mesh_coords(fe))
        if sf.is_lesser:
            coords[sf.axis - 1] -= 1
        return self.nb_side_with_geom(sf.axis, coords)

    def neighbor_fe(self, fe: int, face) -> Optional[int]:
        """The element across a side face of ``fe``, or None on the boundary."""
        if self.is_boundary_side(fe, face):
            return None
        sf = side_face(face, self.space_dim)
        stride = 1 if sf.axis == 1 else int(self.cumprods_mesh_ldims[sf.axis - 2])
        return fe - stride if sf.is_lesser else fe + stride

    @property
    def num_boundary_sides(self) -> int:
        return 2 * sum(self.num_fes // int(k) for k in self.mesh_ldims)

    def boundary_sides(self) -> Iterator[Tuple[int, int]]:
        """(fe, face) for every boundary face, in element then face order."""
        for fe in range(1, self.num_fes + 1):
            for sf in range(1, self.num_side_faces_per_fe + 1):
                if self.is_boundary_side(fe, sf):
                    yield fe, sf

    def dependent_dim_for_nb_side(self, n: int) -> int:
        return self.perp_axis_for_nb_side(n)

    def dependent_dim_for_ref_side_face(self, face) -> int:
        return side_face(face, self.space_dim).axis

    # ------------------------------------------------------------------
    # integration
    # ------------------------------------------------------------------
    def integration_context(self):
        """A new context with its own scratch buffers, for use by one worker."""
        from wgmesh.integration.face_integrals import IntegrationContext
        return IntegrationContext(self)

    def _thread_context(self):
        ctx = getattr(self._contexts, "ctx", None)
        if ctx is None:
            ctx = self._contexts.ctx = self.integration_context()
        return ctx

    def integral_face_rel_on_face(self, mon, face) -> float:
        return self._thread_context().integral_face_rel_on_face(mon, face)

    def integral_global_x_face_rel_on_fe_face(self, f, mon, fe: int, face) -> float:
        return self._thread_context().integral_global_x_face_rel_on_fe_face(f, mon, fe, face)

    def integral_side_rel_x_fe_rel_vs_outward_normal_on_side(self, m, q, side) -> float:
        return self._thread_context().integral_side_rel_x_fe_rel_vs_outward_normal_on_side(m, q, side)

    def integral_fe_rel_x_side_rel_on_side(self, fe_mon, side_mon, side) -> float:
        return self._thread_context().integral_fe_rel_x_side_rel_on_side(fe_mon, side_mon, side)
