# wgmesh/core/sideconvention.py
"""
Face numbering convention for rectangular cells.

A cell in R^d has 2d side faces, numbered 1..2d. Face ``f`` is perpendicular
to axis ``ceil(f/2)``; odd faces lie on the lesser end of that axis, even faces
on the greater end. Face id 0 denotes the cell interior.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Union

from wgmesh.core.errors import MeshIndexError

INTERIOR_FACE_ID = 0


class Polarity(Enum):
    LESSER = "lesser"
    GREATER = "greater"


@dataclass(frozen=True, slots=True)
class InteriorFace:
    """The interior of a cell, viewed as its one d-dimensional face."""

    @property
    def face_id(self) -> int:
        return INTERIOR_FACE_ID


@dataclass(frozen=True, slots=True)
class SideFace:
    axis: int               # perpendicular axis, 1-based
    polarity: Polarity

    @property
    def face_id(self) -> int:
        return 2 * self.axis - 1 if self.polarity is Polarity.LESSER else 2 * self.axis

    @property
    def is_lesser(self) -> bool:
        return self.polarity is Polarity.LESSER


Face = Union[InteriorFace, SideFace]
INTERIOR = InteriorFace()


def side_face_perp_axis(side: int) -> int:
    """Axis perpendicular to the given side face id."""
    return (side - 1) // 2 + 1


def side_face_is_lesser_on_perp_axis(side: int) -> bool:
    return (side - 1) % 2 == 0


def lesser_side_face_perp_to_axis(a: int) -> int:
    return 2 * a - 1


def greater_side_face_perp_to_axis(a: int) -> int:
    return 2 * a


def fe_face(face: Union[int, Face], space_dim: int) -> Face:
    """
    Normalise a face id (or an already built face) to the tagged face variant,
    checking it against the 2*space_dim sides of a cell.
    """
    if isinstance(face, InteriorFace):
        return face
    if isinstance(face, SideFace):
        if not 1 <= face.axis <= space_dim:
            raise MeshIndexError(f"side face axis {face.axis} out of range 1..{space_dim}")
        return face
    face = int(face)
    if face == INTERIOR_FACE_ID:
        return INTERIOR
    if not 1 <= face <= 2 * space_dim:
        raise MeshIndexError(f"face id {face} out of range 0..{2 * space_dim}")
    polarity = Polarity.LESSER if side_face_is_lesser_on_perp_axis(face) else Polarity.GREATER
    return SideFace(side_face_perp_axis(face), polarity)


def side_face(face: Union[int, Face], space_dim: int) -> SideFace:
    """Like :func:`fe_face` but rejects the interior."""
    f = fe_face(face, space_dim)
    if not isinstance(f, SideFace):
        raise MeshIndexError("expected a side face (1..2d), got the interior face")
    return f
