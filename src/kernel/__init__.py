"""Kernel package for CAD geometry processing.

This package wraps the Open CASCADE calls of the BIM2SE pipeline: STL
ingestion, primitives and booleans, surface approximation, section and
split, volumetric properties and STEP/STL export.
"""

from .binding import Binding, OCCTNotAvailableError, get_occt_info, resolve_binding
from .export import ExportError, export_shape, write_step, write_stl
from .modeling import ModelingError, cut, make_box, make_compound, make_cylinder, place
from .sections import SectionResult, SplitResult, section, split
from .stl_io import LoadedModel, StlImportError, load_stl
from .summary import GeometrySummary, summarize_shape, volume_of
from .surface import SurfaceFit, approximate_surface, grid_from_scattered

__version__ = "0.1.0"
__all__ = [
    "Binding", "OCCTNotAvailableError", "get_occt_info", "resolve_binding",
    "ExportError", "export_shape", "write_step", "write_stl",
    "ModelingError", "cut", "make_box", "make_compound", "make_cylinder", "place",
    "SectionResult", "SplitResult", "section", "split",
    "LoadedModel", "StlImportError", "load_stl",
    "GeometrySummary", "summarize_shape", "volume_of",
    "SurfaceFit", "approximate_surface", "grid_from_scattered",
]
