"""Run manifest for pipeline outputs.

Every exported shape is recorded as an artifact with its files and
properties. The manifest is written as deterministic JSON, so two runs over
the same inputs produce the same file apart from the run id and timestamp.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import orjson

MANIFEST_VERSION = "0.1.0"

ArtifactKind = Literal[
    "model",
    "combined",
    "volume",
    "surface",
    "section",
    "slice",
    "fallback",
]

_KIND_PRIORITY = {
    "model": 0,
    "combined": 1,
    "volume": 2,
    "surface": 3,
    "section": 4,
    "slice": 5,
    "fallback": 6,
}


@dataclass
class Artifact:
    """One exported shape."""

    name: str
    kind: ArtifactKind
    paths: List[str] = field(default_factory=list)
    volume: Optional[float] = None
    area: Optional[float] = None
    bounding_box: Optional[Dict[str, float]] = None
    attrs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineReport:
    """Outcome of a pipeline run."""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    config: Dict[str, Any] = field(default_factory=dict)
    artifacts: List[Artifact] = field(default_factory=list)
    volumes: Dict[str, float] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    surface_done: bool = False
    split_done: bool = False
    occt_binding: str = ""
    units: str = "m"

    def add_artifact(self, artifact: Artifact) -> Artifact:
        self.artifacts.append(artifact)
        return artifact

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def artifact(self, name: str) -> Optional[Artifact]:
        """Look up an artifact by name."""
        for artifact in self.artifacts:
            if artifact.name == name:
                return artifact
        return None

    @property
    def slices(self) -> List[Artifact]:
        return [a for a in self.artifacts if a.kind == "slice"]


def _sort_dict_recursive(obj: Any) -> Any:
    """Recursively sort dictionaries for deterministic output."""
    if isinstance(obj, dict):
        return {k: _sort_dict_recursive(v) for k, v in sorted(obj.items())}
    elif isinstance(obj, (list, tuple)):
        return [_sort_dict_recursive(item) for item in obj]
    else:
        return obj


def _artifact_sort_key(artifact: Artifact) -> tuple[int, str]:
    """Sort artifacts by pipeline stage, then by name.

    Slice names sort numerically so that slice10 follows slice9.
    """
    priority = _KIND_PRIORITY.get(artifact.kind, 999)
    name = artifact.name
    match = re.fullmatch(r"(\D*)(\d+)", name)
    if match:
        name = f"{match.group(1)}{int(match.group(2)):06d}"
    return (priority, name)


def to_json_dict(report: PipelineReport, deterministic: bool = True) -> Dict[str, Any]:
    """Convert a report to a JSON-serializable dictionary."""
    artifacts = report.artifacts
    if deterministic:
        artifacts = sorted(artifacts, key=_artifact_sort_key)

    artifacts_data = []
    for artifact in artifacts:
        entry = {
            "name": artifact.name,
            "kind": artifact.kind,
            "paths": list(artifact.paths),
            "volume": artifact.volume,
            "area": artifact.area,
            "bounding_box": artifact.bounding_box,
            "attrs": _sort_dict_recursive(artifact.attrs) if deterministic else artifact.attrs,
        }
        artifacts_data.append(entry)

    return {
        "manifest_version": MANIFEST_VERSION,
        "run_id": report.run_id,
        "created_at": report.created_at,
        "occt_binding": report.occt_binding,
        "units": report.units,
        "surface_done": report.surface_done,
        "split_done": report.split_done,
        "volumes": _sort_dict_recursive(report.volumes) if deterministic else report.volumes,
        "warnings": list(report.warnings),
        "artifacts": artifacts_data,
        "config": _sort_dict_recursive(report.config) if deterministic else report.config,
    }


def to_json_string(report: PipelineReport, deterministic: bool = True, pretty: bool = False) -> str:
    """Convert a report to a JSON string."""
    data = to_json_dict(report, deterministic=deterministic)

    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    else:
        return orjson.dumps(data).decode("utf-8")


def dump_manifest(report: PipelineReport, path: Union[str, Path], deterministic: bool = True) -> Path:
    """Write a report to ``path`` as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = to_json_dict(report, deterministic=deterministic)
    path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
    return path


def load_manifest(path: Union[str, Path]) -> PipelineReport:
    """Load a report written by :func:`dump_manifest`.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the content is not a manifest
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    try:
        data = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Failed to parse manifest {path}: {e}") from e

    if not isinstance(data, dict) or "artifacts" not in data:
        raise ValueError(f"Not a pipeline manifest: {path}")

    artifacts = [
        Artifact(
            name=a["name"],
            kind=a["kind"],
            paths=a.get("paths", []),
            volume=a.get("volume"),
            area=a.get("area"),
            bounding_box=a.get("bounding_box"),
            attrs=a.get("attrs", {}),
        )
        for a in data["artifacts"]
    ]

    return PipelineReport(
        run_id=data.get("run_id", ""),
        created_at=data.get("created_at", ""),
        config=data.get("config", {}),
        artifacts=artifacts,
        volumes=data.get("volumes", {}),
        warnings=data.get("warnings", []),
        surface_done=data.get("surface_done", False),
        split_done=data.get("split_done", False),
        occt_binding=data.get("occt_binding", ""),
        units=data.get("units", "m"),
    )
