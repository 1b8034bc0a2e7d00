"""wgmesh.core.errors
Error kinds raised by the mesh and its integration engine.
"""


class MeshError(Exception):
    """Base class for all mesh errors."""


class MeshValidationError(MeshError, ValueError):
    """Invalid construction arguments (lengths, bounds, logical dimensions)."""


class MeshIndexError(MeshError, IndexError):
    """An axis, FE number, side number, face id or coordinate is out of range."""


class MeshInvariantError(MeshError, RuntimeError):
    """Internal tables are inconsistent. Not recoverable; never caught internally."""
