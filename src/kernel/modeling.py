"""Primitive solids, booleans and placement.

Thin wrappers over BRepPrimAPI, BRepAlgoAPI and BRepBuilderAPI_Transform.
Each wrapper checks the builder's done flag and raises ModelingError
instead of handing a null shape downstream.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

import numpy as np
import structlog

from .binding import occ

logger = structlog.get_logger(__name__)

Vec3 = Sequence[float]


class ModelingError(Exception):
    """Raised when a kernel modeling operation does not complete."""

    pass


def _shape_of(builder: Any, operation: str) -> Any:
    # Shape() runs Build() for builders that defer it (primitives)
    try:
        shape = builder.Shape()
    except Exception as e:
        raise ModelingError(f"{operation} failed: {e}") from e

    if not builder.IsDone():
        raise ModelingError(f"{operation} failed")
    if shape.IsNull():
        raise ModelingError(f"{operation} produced a null shape")
    return shape


def make_box(corner: Vec3, size: Vec3) -> Any:
    """Axis-aligned box from its lower-left corner and edge lengths."""
    gp = occ("gp")
    prim = occ("BRepPrimAPI")

    dx, dy, dz = (float(v) for v in size)
    if min(dx, dy, dz) <= 0:
        raise ModelingError(f"Box size must be positive, got {tuple(size)}")

    maker = prim.BRepPrimAPI_MakeBox(gp.gp_Pnt(*(float(v) for v in corner)), dx, dy, dz)
    return _shape_of(maker, "Box")


def make_cylinder(radius: float, height: float, origin: Vec3 = (0.0, 0.0, 0.0)) -> Any:
    """Cylinder standing on ``origin`` along +Z."""
    gp = occ("gp")
    prim = occ("BRepPrimAPI")

    axis = gp.gp_Ax2(gp.gp_Pnt(*(float(v) for v in origin)), gp.gp_Dir(0.0, 0.0, 1.0))
    maker = prim.BRepPrimAPI_MakeCylinder(axis, float(radius), float(height))
    return _shape_of(maker, "Cylinder")


def cut(shape: Any, tool: Any) -> Any:
    """Boolean difference ``shape - tool``."""
    algo = occ("BRepAlgoAPI")
    return _shape_of(algo.BRepAlgoAPI_Cut(shape, tool), "Cut")


def fuse(first: Any, second: Any) -> Any:
    """Boolean union of two shapes."""
    algo = occ("BRepAlgoAPI")
    return _shape_of(algo.BRepAlgoAPI_Fuse(first, second), "Fuse")


def make_compound(shapes: Iterable[Any]) -> Any:
    """Group shapes in a compound without any boolean processing."""
    brep = occ("BRep")
    topods = occ("TopoDS")

    compound = topods.TopoDS_Compound()
    builder = brep.BRep_Builder()
    builder.MakeCompound(compound)
    for shape in shapes:
        builder.Add(compound, shape)
    return compound


def placement_transform(scale: float = 1.0, rotation_deg: float = 0.0,
                        translation: Vec3 = (0.0, 0.0, 0.0)) -> Any:
    """Build the gp_Trsf for scale, then rotation about +Z, then translation."""
    gp = occ("gp")
    origin = gp.gp_Pnt(0.0, 0.0, 0.0)

    scaling = gp.gp_Trsf()
    if scale != 1.0:
        scaling.SetScale(origin, float(scale))

    rotation = gp.gp_Trsf()
    if rotation_deg:
        rotation.SetRotation(gp.gp_Ax1(origin, gp.gp_Dir(0.0, 0.0, 1.0)), math.radians(rotation_deg))

    shift = gp.gp_Trsf()
    shift.SetTranslation(gp.gp_Vec(*(float(v) for v in translation)))

    # Multiplied(t) applies t first
    return shift.Multiplied(rotation).Multiplied(scaling)


def place(shape: Any, scale: float = 1.0, rotation_deg: float = 0.0,
          translation: Vec3 = (0.0, 0.0, 0.0)) -> Any:
    """Copy ``shape`` into the shared coordinate system."""
    builder_api = occ("BRepBuilderAPI")

    trsf = placement_transform(scale, rotation_deg, translation)
    transform = builder_api.BRepBuilderAPI_Transform(shape, trsf, True)
    placed = _shape_of(transform, "Placement")

    logger.debug("Placed shape", scale=scale, rotation_deg=rotation_deg, translation=tuple(translation))
    return placed


def place_points(points: np.ndarray, scale: float = 1.0, rotation_deg: float = 0.0,
                 translation: Vec3 = (0.0, 0.0, 0.0)) -> np.ndarray:
    """Apply the same map as :func:`place` to an (n, 3) point array."""
    pts = np.asarray(points, dtype=float).reshape(-1, 3) * float(scale)

    angle = math.radians(rotation_deg)
    c, s = math.cos(angle), math.sin(angle)
    rotation = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])

    return pts @ rotation.T + np.asarray(translation, dtype=float)


def level_plane(z: float, half_extent: float, center: Vec3 = (0.0, 0.0)) -> Any:
    """Bounded horizontal face at height ``z``, used as a splitting tool."""
    gp = occ("gp")
    builder_api = occ("BRepBuilderAPI")

    cx, cy = float(center[0]), float(center[1])
    plane = gp.gp_Pln(gp.gp_Pnt(cx, cy, float(z)), gp.gp_Dir(0.0, 0.0, 1.0))
    h = float(half_extent)
    face = builder_api.BRepBuilderAPI_MakeFace(plane, -h, h, -h, h)
    if not face.IsDone():
        raise ModelingError(f"Level plane at z={z} failed")
    return face.Face()
