"""STEP and STL export of kernel shapes.

STEP keeps the exact BREP; STL needs a triangulation, so shapes are meshed
with BRepMesh_IncrementalMesh before writing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import structlog

from .binding import occ

logger = structlog.get_logger(__name__)

SUPPORTED_FORMATS = ("stp", "stl")


class ExportError(Exception):
    """Raised when export operations fail."""
    pass


def mesh_shape(shape: Any, deflection: float = 1e-2, relative: bool = True) -> Any:
    """Triangulate ``shape`` in place and return it."""
    mesh = occ("BRepMesh")
    mesher = mesh.BRepMesh_IncrementalMesh(shape, float(deflection), bool(relative))
    if not mesher.IsDone():
        raise ExportError("Meshing failed")
    return shape


def write_step(shape: Any, path: str | Path) -> Path:
    """Write ``shape`` to a STEP file.

    A new writer is used per file; a STEPControl_Writer accumulates every
    shape transferred to it.
    """
    step = occ("STEPControl")
    ifselect = occ("IFSelect")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    writer = step.STEPControl_Writer()
    transfer_status = writer.Transfer(shape, step.STEPControl_AsIs)
    if transfer_status != ifselect.IFSelect_RetDone:
        raise ExportError(f"STEP transfer failed for {path.name}: {transfer_status}")

    write_status = writer.Write(str(path))
    if write_status != ifselect.IFSelect_RetDone:
        raise ExportError(f"STEP write failed for {path}: {write_status}")

    logger.debug("Wrote STEP file", path=str(path))
    return path


def write_stl(shape: Any, path: str | Path, deflection: float = 1e-2,
              relative: bool = True, ascii: bool = False) -> Path:
    """Mesh ``shape`` and write it to an STL file."""
    stl = occ("StlAPI")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    meshed = mesh_shape(shape, deflection, relative)

    writer = stl.StlAPI_Writer()
    if hasattr(writer, "SetASCIIMode"):
        writer.SetASCIIMode(ascii)
    else:
        writer.ASCIIMode = ascii

    if not writer.Write(meshed, str(path)):
        raise ExportError(f"STL write failed for {path}")

    logger.debug("Wrote STL file", path=str(path), ascii=ascii)
    return path


def export_shape(shape: Any, stem: str, output_dir: str | Path,
                 deflection: float = 1e-2, relative: bool = True, ascii: bool = False,
                 formats: Iterable[str] = SUPPORTED_FORMATS) -> list[Path]:
    """Write ``shape`` as ``<stem>.<fmt>`` for each requested format.

    Returns:
        The written file paths, in ``formats`` order

    Raises:
        ExportError: If a format is unsupported or a writer fails
    """
    output_dir = Path(output_dir)
    written = []

    for fmt in formats:
        fmt = fmt.lower()
        target = output_dir / f"{stem}.{fmt}"
        if fmt == "stp":
            written.append(write_step(shape, target))
        elif fmt == "stl":
            written.append(write_stl(shape, target, deflection, relative, ascii))
        else:
            raise ExportError(f"Unsupported export format: {fmt}")

    logger.info("Exported shape", stem=stem, files=[p.name for p in written])
    return written
