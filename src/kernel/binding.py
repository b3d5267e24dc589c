"""Open CASCADE binding detection and resolution.

Two Python bindings of OCCT are supported: OCP (the pip-installable
``cadquery-ocp`` wheel) and OCC.Core (conda ``pythonocc-core``). Both expose
the same class names, so the rest of the kernel imports OCCT packages through
:func:`occ` and only reaches for :func:`static` where the bindings disagree
on how C++ static methods are named.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from functools import lru_cache
from types import ModuleType
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)


class OCCTNotAvailableError(Exception):
    """Raised when no OCCT binding is available."""

    pass


@dataclass(frozen=True)
class Binding:
    """The active OCCT binding."""

    name: str  # "OCP" or "pythonOCC"
    root: str  # import prefix, "OCP" or "OCC.Core"
    version: str


def get_occt_info() -> dict[str, Any]:
    """Get information about available OCCT bindings.

    Returns:
        Dictionary with binding availability and version info
    """
    info = {
        "OCP_available": False,
        "pythonOCC_available": False,
        "recommended_binding": None,
        "occt_version": None,
    }

    try:
        import OCP

        info["OCP_available"] = True
        info["recommended_binding"] = "OCP"
        info["occt_version"] = getattr(OCP, "__version__", None)
        logger.info("OCP binding detected")
    except ImportError:
        logger.debug("OCP not available")

    try:
        import OCC
        import OCC.Core  # noqa: F401

        info["pythonOCC_available"] = True
        if not info["recommended_binding"]:
            info["recommended_binding"] = "pythonOCC"
        if not info["occt_version"]:
            info["occt_version"] = getattr(OCC, "VERSION", None)
        logger.info("pythonocc-core binding detected")
    except ImportError:
        logger.debug("OCC.Core not available")

    return info


@lru_cache(maxsize=1)
def resolve_binding() -> Binding:
    """Pick the OCCT binding used for all kernel calls.

    Raises:
        OCCTNotAvailableError: If neither OCP nor pythonocc-core is importable
    """
    info = get_occt_info()

    if info["OCP_available"]:
        binding = Binding("OCP", "OCP", str(info["occt_version"] or "unknown"))
    elif info["pythonOCC_available"]:
        binding = Binding("pythonOCC", "OCC.Core", str(info["occt_version"] or "unknown"))
    else:
        raise OCCTNotAvailableError(
            "No OCCT Python binding available. "
            "Please install OCP (recommended) or pythonocc-core:\n"
            "  pip install cadquery-ocp\n"
            "  OR\n"
            "  conda install -c conda-forge pythonocc-core"
        )

    logger.debug("Resolved OCCT binding", binding=binding.name, version=binding.version)
    return binding


def occ(package: str) -> ModuleType:
    """Import an OCCT package (e.g. ``"BRepPrimAPI"``) from the active binding."""
    binding = resolve_binding()
    return importlib.import_module(f"{binding.root}.{package}")


def static(package: str, cls: str, method: str) -> Callable[..., Any]:
    """Resolve a C++ static method across binding naming conventions.

    OCP appends ``_s`` (``BRepGProp.VolumeProperties_s``), recent
    pythonocc-core exposes lower-case holder classes
    (``brepgprop.VolumeProperties``) and older releases flat functions
    (``brepgprop_VolumeProperties``).
    """
    module = occ(package)
    upper = getattr(module, cls, None)
    lower = getattr(module, cls.lower(), None)

    candidates = [
        (upper, f"{method}_s"),
        (lower, method),
        (upper, method),
        (module, f"{cls.lower()}_{method}"),
        (module, f"{cls}_{method}"),
    ]
    for owner, attr in candidates:
        if owner is not None and hasattr(owner, attr):
            return getattr(owner, attr)

    raise OCCTNotAvailableError(f"{cls}.{method} not found in {module.__name__}")
