"""wgmesh.io.visualization"""
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection, PolyCollection

from wgmesh.core.sideconvention import side_face_perp_axis, side_face_is_lesser_on_perp_axis

_EDGE_COLOR = {
    "boundary": "black",
    "interior": "dimgray",
}


def _fe_corners(mesh, fe):
    x0, y0 = mesh.fe_coords(fe)
    dx, dy = mesh.fe_dims
    return np.array([[x0, y0], [x0 + dx, y0], [x0 + dx, y0 + dy], [x0, y0 + dy]])


def _side_segment(mesh, fe, side):
    """End points of a side face of a 2-D element."""
    origin = mesh.fe_coords(fe)
    a = side_face_perp_axis(side) - 1
    other = 1 - a
    p0 = origin.copy()
    if not side_face_is_lesser_on_perp_axis(side):
        p0[a] += mesh.fe_dims[a]
    p1 = p0.copy()
    p1[other] += mesh.fe_dims[other]
    return np.array([p0, p1])


def plot_mesh(mesh, *, fe_numbers=True, nb_side_numbers=False, boundary=True,
              fe_values=None, show=True, ax=None):
    """
    Plots a 2D RectMesh.

    Args:
        mesh (RectMesh): The mesh to plot; must have space_dim == 2.
        fe_numbers (bool, optional): Label each cell with its FE number.
        nb_side_numbers (bool, optional): Label each shared side with its NB side number.
        boundary (bool, optional): Draw boundary sides heavier than shared sides.
        fe_values (array-like, optional): One value per FE, shown as cell colours.
        show (bool, optional): If True, calls plt.show() at the end.
        ax (matplotlib.axes.Axes, optional): An existing axes object to plot on.
    Returns:
        matplotlib.axes.Axes: The axes object containing the plot.
    """
    if mesh.space_dim != 2:
        raise ValueError(f"plot_mesh only draws 2D meshes, got space_dim={mesh.space_dim}")
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 8))

    fes = range(1, mesh.num_fes + 1)
    cells = [_fe_corners(mesh, fe) for fe in fes]
    if fe_values is not None:
        fe_values = np.asarray(fe_values, dtype=float)
        if fe_values.shape != (mesh.num_fes,):
            raise ValueError("Length of fe_values must match the number of finite elements.")
        coll = PolyCollection(cells, array=fe_values, cmap="viridis", edgecolors="none", zorder=0)
        ax.add_collection(coll)
        plt.colorbar(coll, ax=ax, label="FE value")

    # shared sides, one segment each
    nb_segments = []
    for n in range(1, mesh.num_nb_sides + 1):
        incl = mesh.fe_inclusions_of_nb_side(n)
        nb_segments.append(_side_segment(mesh, incl.fe1, incl.face_in_fe1))
    ax.add_collection(LineCollection(nb_segments, colors=_EDGE_COLOR["interior"],
                                     linewidths=0.8, zorder=2))

    b_segments = [_side_segment(mesh, fe, sf) for fe, sf in mesh.boundary_sides()]
    ax.add_collection(LineCollection(b_segments, colors=_EDGE_COLOR["boundary"],
                                     linewidths=2.0 if boundary else 0.8, zorder=3))

    if fe_numbers:
        for fe, corners in zip(fes, cells):
            cx, cy = corners.mean(axis=0)
            ax.text(cx, cy, str(fe), ha="center", va="center", fontsize=8, zorder=4)
    if nb_side_numbers:
        for n, seg in enumerate(nb_segments, start=1):
            mx, my = seg.mean(axis=0)
            ax.text(mx, my, str(n), ha="center", va="center", fontsize=7, color="tab:red", zorder=4)

    xmin, ymin = mesh.min_bounds
    xmax, ymax = mesh.max_bounds
    xpad = (xmax - xmin) * 0.05
    ypad = (ymax - ymin) * 0.05
    ax.set_xlim(xmin - xpad, xmax + xpad)
    ax.set_ylim(ymin - ypad, ymax + ypad)
    ax.set_aspect('equal', 'box')
    ax.set_title("Rectangular Mesh")
    ax.set_xlabel("X-coordinate")
    ax.set_ylabel("Y-coordinate")

    if show:
        plt.show()

    return ax
