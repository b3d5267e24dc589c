"""STL file import as an Open CASCADE shell.

Tessellated terrain and building models arrive as STL triangle soups. The
loader turns every triangle into one planar face and collects the faces in a
single shell. Vertices are not merged and topology is not healed, so shared
edges between neighbouring faces stay duplicated unless sewing is requested.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import structlog
import trimesh

from .binding import occ, resolve_binding

logger = structlog.get_logger(__name__)

# Twice the triangle area below which a facet is treated as collinear
DEGENERATE_AREA_TOLERANCE = 1e-12


class StlImportError(Exception):
    """Raised when STL file import fails."""

    pass


@dataclass
class LoadedModel:
    """Container for a successfully loaded STL model."""

    model_id: str
    file_path: str
    occt_shape: Any  # TopoDS_Shape (kept opaque for type safety)
    units: str
    metadata: dict[str, Any] = field(default_factory=dict)

    occt_binding: str = ""
    triangle_count: int = 0
    skipped_triangles: int = 0

    # Raw triangle soup, shape (n, 3, 3), in the file's own coordinates
    triangles: Any = None

    def __post_init__(self) -> None:
        """Validate loaded model."""
        if not self.model_id:
            self.model_id = Path(self.file_path).stem

        if "file_size" not in self.metadata:
            try:
                self.metadata["file_size"] = os.path.getsize(self.file_path)
            except OSError:
                self.metadata["file_size"] = -1

    def vertices(self) -> np.ndarray:
        """All triangle corners as an (n*3, 3) array, duplicates included."""
        if self.triangles is None:
            return np.zeros((0, 3))
        return np.asarray(self.triangles, dtype=float).reshape(-1, 3)


def _validate_stl_file(file_path: str | Path) -> Path:
    """Validate STL file exists and is readable.

    Raises:
        StlImportError: If file validation fails
    """
    path = Path(file_path).resolve()

    if not path.exists():
        raise StlImportError(f"STL file not found: {path}")

    if not path.is_file():
        raise StlImportError(f"Path is not a file: {path}")

    if path.stat().st_size == 0:
        raise StlImportError(f"STL file is empty: {path}")

    return path


def read_triangles(file_path: str | Path) -> np.ndarray:
    """Read the triangle soup of an ASCII or binary STL file.

    Returns:
        Array of shape (n, 3, 3): n triangles of three XYZ corners

    Raises:
        StlImportError: If the file cannot be parsed or has no triangles
    """
    path = Path(file_path)

    try:
        # process=False keeps trimesh from merging vertices
        mesh = trimesh.load_mesh(str(path), file_type="stl", process=False)
    except Exception as e:
        raise StlImportError(f"Could not parse STL file {path}: {e}") from e

    triangles = np.asarray(getattr(mesh, "triangles", np.zeros((0, 3, 3))), dtype=float)
    if triangles.size == 0:
        raise StlImportError(f"STL file contains no triangles: {path}")

    logger.debug("Read STL triangles", file=str(path), count=len(triangles))
    return triangles.reshape(-1, 3, 3)


def degenerate_triangles(triangles: np.ndarray, tolerance: float = DEGENERATE_AREA_TOLERANCE) -> np.ndarray:
    """Boolean mask of triangles with (near) zero area."""
    tri = np.asarray(triangles, dtype=float).reshape(-1, 3, 3)
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    return np.linalg.norm(normals, axis=1) <= tolerance


def shell_from_triangles(triangles: np.ndarray) -> tuple[Any, int, int]:
    """Build a shell with one planar face per triangle.

    Args:
        triangles: Array of shape (n, 3, 3)

    Returns:
        Tuple of (shell, faces_built, triangles_skipped)
    """
    gp = occ("gp")
    builder_api = occ("BRepBuilderAPI")
    brep = occ("BRep")
    topods = occ("TopoDS")

    shell = topods.TopoDS_Shell()
    builder = brep.BRep_Builder()
    builder.MakeShell(shell)

    # MakePolygon and MakeFace both report done for collinear points
    degenerate = degenerate_triangles(triangles)

    built = 0
    skipped = 0
    for tri, flat in zip(triangles, degenerate):
        if flat:
            skipped += 1
            continue

        p1, p2, p3 = (gp.gp_Pnt(float(x), float(y), float(z)) for x, y, z in tri)

        polygon = builder_api.BRepBuilderAPI_MakePolygon(p1, p2, p3, True)
        if not polygon.IsDone():
            skipped += 1
            continue

        face = builder_api.BRepBuilderAPI_MakeFace(polygon.Wire(), True)
        if not face.IsDone():
            skipped += 1
            continue

        builder.Add(shell, face.Face())
        built += 1

    if skipped:
        logger.warning("Skipped degenerate triangles", skipped=skipped, built=built)

    return shell, built, skipped


def _sew(shape: Any, tolerance: float) -> Any:
    builder_api = occ("BRepBuilderAPI")

    sewing = builder_api.BRepBuilderAPI_Sewing(tolerance)
    sewing.Add(shape)
    sewing.Perform()
    sewed = sewing.SewedShape()

    logger.debug("Sewed shell", tolerance=tolerance, free_edges=sewing.NbFreeEdges())
    return sewed


def load_stl(
    file_path: str | Path,
    model_id: str | None = None,
    units: str = "m",
    sew_tolerance: float | None = None,
) -> LoadedModel:
    """Load an STL file as a BREP shell.

    Args:
        file_path: Path to the STL file
        model_id: Identifier, defaults to the file stem
        units: Length unit the file's coordinates are expressed in
        sew_tolerance: If given, sew the face soup with this tolerance

    Returns:
        LoadedModel containing the shell and its triangle soup

    Raises:
        StlImportError: If validation, parsing or shell construction fails
        OCCTNotAvailableError: If no OCCT binding is available
    """
    validated_path = _validate_stl_file(file_path)
    binding = resolve_binding()

    logger.info("Loading STL file", file=str(validated_path), binding=binding.name)

    triangles = read_triangles(validated_path)
    shape, built, skipped = shell_from_triangles(triangles)

    if built == 0 or shape.IsNull():
        raise StlImportError(f"Failed to build shape from STL file, null shape after load: {validated_path}")

    if sew_tolerance is not None:
        shape = _sew(shape, sew_tolerance)
        if shape.IsNull():
            raise StlImportError(f"Sewing produced a null shape: {validated_path}")

    model = LoadedModel(
        model_id=model_id or validated_path.stem,
        file_path=str(validated_path),
        occt_shape=shape,
        units=units,
        metadata={
            "file_size": validated_path.stat().st_size,
            "faces": built,
            "sewn": sew_tolerance is not None,
        },
        occt_binding=binding.name,
        triangle_count=len(triangles),
        skipped_triangles=skipped,
        triangles=triangles,
    )

    logger.info(
        "Successfully loaded STL file",
        file=str(validated_path),
        model_id=model.model_id,
        triangles=model.triangle_count,
        skipped=skipped,
    )
    return model
