"""Section and split of solids against cutting tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

from .binding import occ

logger = structlog.get_logger(__name__)


@dataclass
class SectionResult:
    """Intersection curves of a shape with a tool."""

    is_done: bool
    shape: Any = None
    edge_count: int = 0


@dataclass
class SplitResult:
    """Sub-volumes produced by splitting a shape."""

    is_done: bool
    shape: Any = None
    solids: list[Any] = field(default_factory=list)


def explore(shape: Any, kind: str) -> list[Any]:
    """Collect sub-shapes of ``kind`` ("SOLID", "FACE", "EDGE", ...)."""
    top_abs = occ("TopAbs")
    top_exp = occ("TopExp")

    explorer = top_exp.TopExp_Explorer(shape, getattr(top_abs, f"TopAbs_{kind}"))
    found = []
    while explorer.More():
        found.append(explorer.Current())
        explorer.Next()
    return found


def _failed(builder: Any) -> bool:
    if not builder.IsDone():
        return True
    # OCP does not wrap the Message_Report accessors of BOPAlgo builders
    has_errors = getattr(builder, "HasErrors", None)
    return bool(has_errors()) if has_errors is not None else False


def section(shape: Any, tool: Any) -> SectionResult:
    """Compute the section edges of ``shape`` with ``tool``."""
    algo = occ("BRepAlgoAPI")

    maker = algo.BRepAlgoAPI_Section(shape, tool, False)
    maker.ComputePCurveOn1(True)
    maker.Approximation(True)
    maker.Build()

    if _failed(maker):
        logger.warning("Section build failed")
        return SectionResult(is_done=False)

    result = maker.Shape()
    edges = len(explore(result, "EDGE"))
    if edges == 0:
        logger.warning("Section is empty; tool does not intersect the shape")

    logger.info("Section computed", edges=edges)
    return SectionResult(is_done=True, shape=result, edge_count=edges)


def split(shape: Any, tools: Iterable[Any]) -> SplitResult:
    """Split ``shape`` by ``tools`` without consuming either.

    Uses the general splitter, so a tool that only partially crosses the
    shape still yields valid pieces.
    """
    algo = occ("BRepAlgoAPI")
    top_tools = occ("TopTools")

    tools = list(tools)
    try:
        arguments = top_tools.TopTools_ListOfShape()
        arguments.Append(shape)

        tool_list = top_tools.TopTools_ListOfShape()
        for tool in tools:
            tool_list.Append(tool)

        splitter = algo.BRepAlgoAPI_Splitter()
        splitter.SetArguments(arguments)
        splitter.SetTools(tool_list)
        splitter.Build()
    except Exception as e:
        logger.warning("Split raised", tools=len(tools), error=str(e))
        return SplitResult(is_done=False)

    if _failed(splitter):
        logger.warning("Split build failed", tools=len(tools))
        return SplitResult(is_done=False)

    result = splitter.Shape()
    solids = explore(result, "SOLID")

    logger.info("Split computed", tools=len(tools), solids=len(solids))
    return SplitResult(is_done=True, shape=result, solids=solids)
