from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class NBSideGeom:
    perp_axis: int                  # axis the side is perpendicular to, 1-based
    mesh_coords: Tuple[int, ...]    # coordinates in the side mesh of that orientation


@dataclass(frozen=True, slots=True)
class NBSideInclusions:
    fe1: int            # element on the lesser side along perp axis
    face_in_fe1: int    # greater face of fe1
    fe2: int            # element on the greater side
    face_in_fe2: int    # lesser face of fe2
    nb_side_num: int
