"""Example: piecewise-polynomial L2 projection on a structured rectangular mesh"""
import itertools
import logging
import numpy as np
import matplotlib.pyplot as plt
from wgmesh.core import RectMesh
from wgmesh.fem.polynomial import Monomial
from wgmesh.io.visualization import plot_mesh

logging.basicConfig(level=logging.INFO)

u = lambda x: np.sin(np.pi * x[0]) * np.cos(np.pi * x[1])
deg = 2

mesh = RectMesh([0.0, 0.0], [2.0, 1.0], [8, 4], rel_err=1e-8, abs_err=1e-10)
mons = [Monomial(e) for e in itertools.product(range(deg + 1), repeat=2) if sum(e) <= deg]

# the element mass matrix is the same for every cell of the mesh
M = np.array([[mesh.integral_face_rel_on_face(p * q, 0) for q in mons] for p in mons])

coefs = np.zeros((mesh.num_fes, len(mons)))
for fe in range(1, mesh.num_fes + 1):
    b = np.array([mesh.integral_global_x_face_rel_on_fe_face(u, m, fe, 0) for m in mons])
    coefs[fe - 1] = np.linalg.solve(M, b)

# projected cell averages against exact cell centre values
area = np.prod(mesh.fe_dims)
means = coefs @ np.array([mesh.integral_face_rel_on_face(m, 0) for m in mons]) / area
centres = np.array([mesh.fe_coords(fe) + 0.5 * mesh.fe_dims for fe in range(1, mesh.num_fes + 1)])
print('max |mean - centre value| =', np.abs(means - np.apply_along_axis(u, 1, centres)).max())
print('boundary sides:', mesh.num_boundary_sides, ' shared sides:', mesh.num_nb_sides)

plot_mesh(mesh, fe_values=means, nb_side_numbers=True, show=False)
plt.show()
