"""Geometry analysis and summary generation.

This module computes volumetric properties, bounding boxes and topology
counts of kernel shapes for logging, the CLI and the run manifest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from .binding import occ, static
from .sections import explore

logger = structlog.get_logger(__name__)


@dataclass
class GeometrySummary:
    """Summary of geometric properties and topology."""

    model_id: str
    units: str

    # Topological counts
    solids: int = 0
    shells: int = 0
    faces: int = 0
    edges: int = 0
    vertices: int = 0

    # Geometric properties
    bounding_box: dict[str, float] | None = None
    surface_area: float | None = None
    volume: float | None = None

    analysis_warnings: list[str] = field(default_factory=list)


def volume_of(shape: Any) -> float:
    """Volume of ``shape``; zero for shapes without solids."""
    gprop = occ("GProp")
    props = gprop.GProp_GProps()
    static("BRepGProp", "BRepGProp", "VolumeProperties")(shape, props)
    return float(props.Mass())


def area_of(shape: Any) -> float:
    """Total face area of ``shape``."""
    gprop = occ("GProp")
    props = gprop.GProp_GProps()
    static("BRepGProp", "BRepGProp", "SurfaceProperties")(shape, props)
    return float(props.Mass())


def bounding_box(shape: Any) -> dict[str, float] | None:
    """Axis-aligned bounding box, or None for an empty shape."""
    bnd = occ("Bnd")
    bbox = bnd.Bnd_Box()
    static("BRepBndLib", "BRepBndLib", "Add")(shape, bbox)

    if bbox.IsVoid():
        return None

    lo, hi = bbox.CornerMin(), bbox.CornerMax()
    return {
        "min_x": float(lo.X()),
        "min_y": float(lo.Y()),
        "min_z": float(lo.Z()),
        "max_x": float(hi.X()),
        "max_y": float(hi.Y()),
        "max_z": float(hi.Z()),
    }


def count_topology(shape: Any) -> dict[str, int]:
    """Count topological entities of each kind."""
    type_mappings = [
        ("SOLID", "solids"),
        ("SHELL", "shells"),
        ("FACE", "faces"),
        ("EDGE", "edges"),
        ("VERTEX", "vertices"),
    ]
    return {key: len(explore(shape, kind)) for kind, key in type_mappings}


def summarize_shape(shape: Any, model_id: str, units: str = "m") -> GeometrySummary:
    """Generate a summary of a shape.

    Property computations that fail are logged and left as None; the
    summary carries a warning for each.
    """
    logger.info("Generating geometry summary", model_id=model_id)

    warnings = []
    counts = count_topology(shape)

    try:
        bbox = bounding_box(shape)
    except Exception as e:
        logger.warning("Failed to compute bounding box", model_id=model_id, error=str(e))
        bbox = None

    try:
        surface_area = area_of(shape)
    except Exception as e:
        logger.debug("Failed to compute surface area", error=str(e))
        surface_area = None

    volume = None
    if counts["solids"]:
        try:
            volume = volume_of(shape)
        except Exception as e:
            logger.debug("Failed to compute volume", error=str(e))

    if counts["faces"] == 0 and counts["edges"] > 0:
        warnings.append("Model contains only wireframe geometry (no surfaces)")

    if counts["solids"] == 0 and counts["faces"] > 0:
        warnings.append("Model contains surface geometry but no solids")

    if bbox is None:
        warnings.append("Could not compute bounding box")

    if surface_area is None:
        warnings.append("Could not compute surface area")

    if volume is None and counts["solids"]:
        warnings.append("Could not compute volume")

    summary = GeometrySummary(
        model_id=model_id,
        units=units,
        bounding_box=bbox,
        surface_area=surface_area,
        volume=volume,
        analysis_warnings=warnings,
        **counts,
    )

    logger.info(
        "Geometry summary completed",
        model_id=model_id,
        solids=summary.solids,
        faces=summary.faces,
        warnings_count=len(warnings),
    )
    return summary
