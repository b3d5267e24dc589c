"""Free-form surface approximation.

The soil surface is a B-spline fitted by GeomAPI_PointsToBSplineSurface to a
regular grid of points. Terrain vertices are scattered, so they are first
binned onto such a grid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import structlog

from .binding import occ

logger = structlog.get_logger(__name__)


@dataclass
class SurfaceFit:
    """Outcome of a surface approximation."""

    is_done: bool
    surface: Any = None  # Geom_BSplineSurface
    face: Any = None  # TopoDS_Face
    nu: int = 0
    nv: int = 0
    degree_min: int = 0
    degree_max: int = 0
    message: str = ""


def grid_from_scattered(points: np.ndarray, nu: int, nv: int) -> np.ndarray:
    """Bin scattered points onto a regular ``nu`` x ``nv`` XY grid.

    Each node sits at its cell centre and takes the mean Z of the points in
    the cell. Empty cells take the mean of their populated 8-neighbours, or
    the global mean when the neighbourhood is empty too.

    Returns:
        Array of shape (nu, nv, 3); index ``[i, j]`` is U row i, V column j
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) == 0:
        raise ValueError("Cannot build a grid from zero points")
    if nu < 2 or nv < 2:
        raise ValueError(f"Grid needs at least 2x2 nodes, got {nu}x{nv}")

    xmin, ymin = pts[:, 0].min(), pts[:, 1].min()
    xmax, ymax = pts[:, 0].max(), pts[:, 1].max()
    # Flat extents still need a non-zero cell size
    width = max(xmax - xmin, 1e-9)
    depth = max(ymax - ymin, 1e-9)

    ix = np.clip(((pts[:, 0] - xmin) / width * nu).astype(int), 0, nu - 1)
    iy = np.clip(((pts[:, 1] - ymin) / depth * nv).astype(int), 0, nv - 1)

    sums = np.zeros((nu, nv))
    counts = np.zeros((nu, nv), dtype=int)
    np.add.at(sums, (ix, iy), pts[:, 2])
    np.add.at(counts, (ix, iy), 1)

    populated = counts > 0
    z = np.where(populated, sums / np.maximum(counts, 1), 0.0)
    global_mean = float(pts[:, 2].mean())

    filled = z.copy()
    for i in range(nu):
        for j in range(nv):
            if populated[i, j]:
                continue
            window = (slice(max(i - 1, 0), i + 2), slice(max(j - 1, 0), j + 2))
            neighbours = z[window][populated[window]]
            filled[i, j] = float(neighbours.mean()) if neighbours.size else global_mean

    xs = xmin + (np.arange(nu) + 0.5) * width / nu
    ys = ymin + (np.arange(nv) + 0.5) * depth / nv
    gx, gy = np.meshgrid(xs, ys, indexing="ij")

    empty = int((~populated).sum())
    if empty:
        logger.debug("Filled empty grid cells", empty=empty, total=nu * nv)

    return np.stack([gx, gy, filled], axis=-1)


def continuity_for(degree: int) -> str:
    """Highest GeomAbs continuity a B-spline of ``degree`` can carry."""
    if degree >= 3:
        return "GeomAbs_C2"
    if degree == 2:
        return "GeomAbs_C1"
    return "GeomAbs_C0"


def approximate_surface(
    grid: Sequence[Sequence[Sequence[float]]],
    degree_min: int = 3,
    degree_max: int = 8,
    tolerance: float = 1e-3,
    face_tolerance: float = 1e-6,
) -> SurfaceFit:
    """Approximate a B-spline surface through a point grid and make a face.

    Args:
        grid: Rows along U of points along V, each ``(x, y, z)``
        degree_min: Lowest B-spline degree to try
        degree_max: Highest B-spline degree to try
        tolerance: 3D approximation tolerance
        face_tolerance: Degeneracy tolerance for the face

    Returns:
        SurfaceFit; ``is_done`` is False when the kernel could not build it
    """
    nodes = np.asarray(grid, dtype=float)
    if nodes.ndim != 3 or nodes.shape[2] != 3:
        return SurfaceFit(is_done=False, message=f"Grid must be rows of XYZ points, got shape {nodes.shape}")

    nu, nv = nodes.shape[0], nodes.shape[1]
    if nu < 2 or nv < 2:
        return SurfaceFit(is_done=False, nu=nu, nv=nv, message=f"Grid {nu}x{nv} is smaller than 2x2")

    # The approximation cannot exceed degree n-1 in either direction
    deg_max = max(1, min(degree_max, nu - 1, nv - 1))
    deg_min = max(1, min(degree_min, deg_max))

    gp = occ("gp")
    tcolgp = occ("TColgp")
    geom_api = occ("GeomAPI")
    geom_abs = occ("GeomAbs")
    builder_api = occ("BRepBuilderAPI")

    fit = SurfaceFit(is_done=False, nu=nu, nv=nv, degree_min=deg_min, degree_max=deg_max)

    try:
        points = tcolgp.TColgp_Array2OfPnt(1, nu, 1, nv)
        for i in range(nu):
            for j in range(nv):
                x, y, z = nodes[i, j]
                points.SetValue(i + 1, j + 1, gp.gp_Pnt(float(x), float(y), float(z)))

        continuity = getattr(geom_abs, continuity_for(deg_max))
        approximation = geom_api.GeomAPI_PointsToBSplineSurface(
            points, deg_min, deg_max, continuity, float(tolerance)
        )
    except Exception as e:
        fit.message = f"Surface approximation raised: {e}"
        logger.warning("Surface approximation failed", nu=nu, nv=nv, error=str(e))
        return fit

    if not approximation.IsDone():
        fit.message = "Surface approximation not done"
        logger.warning("Surface approximation not done", nu=nu, nv=nv)
        return fit

    surface = approximation.Surface()
    face_maker = builder_api.BRepBuilderAPI_MakeFace(surface, float(face_tolerance))
    if not face_maker.IsDone():
        fit.message = "Face from surface not done"
        logger.warning("Face construction from surface failed", nu=nu, nv=nv)
        return fit

    fit.is_done = True
    fit.surface = surface
    fit.face = face_maker.Face()

    logger.info("Surface approximated", nu=nu, nv=nv, degree_min=deg_min, degree_max=deg_max)
    return fit
