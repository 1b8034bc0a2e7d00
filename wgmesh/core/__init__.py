from .mesh import RectMesh
from .errors import MeshError, MeshValidationError, MeshIndexError, MeshInvariantError
from .topology import NBSideGeom, NBSideInclusions
__all__=['RectMesh','MeshError','MeshValidationError','MeshIndexError','MeshInvariantError',
         'NBSideGeom','NBSideInclusions']
