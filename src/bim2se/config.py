"""Pipeline configuration.

The defaults reproduce the reference scenario: a 100 x 100 x 100 box with a
cylindrical hole, sectioned and split by a soil surface approximated from
four points. Terrain and building models are optional inputs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import orjson
import structlog

from .units import UnitConversionError, length_scale

logger = structlog.get_logger(__name__)

Vec3 = Tuple[float, float, float]

# Soil surface control points as U rows of V columns
DEFAULT_SURFACE_POINTS: List[List[Vec3]] = [
    [(79.0, 87.0, 26.0), (-62.0, 93.0, 84.0)],
    [(65.0, -65.0, 65.0), (-97.0, -61.0, 3.0)],
]


class ConfigError(Exception):
    """Raised when a pipeline configuration is invalid."""
    pass


@dataclass
class Placement:
    """Rotation about +Z through the origin, then translation."""

    translation: Vec3 = (0.0, 0.0, 0.0)
    rotation_deg: float = 0.0


@dataclass
class ModelSource:
    """A tessellated input model."""

    path: str
    model_id: Optional[str] = None
    units: str = "m"
    placement: Placement = field(default_factory=Placement)


@dataclass
class VolumeConfig:
    """The generated volume: a box with an optional cylindrical hole."""

    box_corner: Vec3 = (-50.0, -50.0, 0.0)
    box_size: Vec3 = (100.0, 100.0, 100.0)
    hole_radius: float = 25.0
    hole_height: float = 50.0
    hole_origin: Vec3 = (0.0, 0.0, 0.0)


@dataclass
class SurfaceConfig:
    """Soil surface approximation."""

    points: List[List[Vec3]] = field(default_factory=lambda: [list(row) for row in DEFAULT_SURFACE_POINTS])
    grid_size: Tuple[int, int] = (8, 8)
    degree_min: int = 3
    degree_max: int = 8
    tolerance: float = 1e-3
    face_tolerance: float = 1e-6
    from_terrain: bool = True


@dataclass
class SplitConfig:
    """Extra horizontal cutting planes, as z values in target units."""

    levels: List[float] = field(default_factory=list)


@dataclass
class MeshConfig:
    """Triangulation settings for STL export."""

    deflection: float = 1e-2
    relative: bool = True
    ascii: bool = False


@dataclass
class PipelineConfig:
    """Complete configuration of one pipeline run."""

    terrain: Optional[ModelSource] = None
    building: Optional[ModelSource] = None
    output_dir: str = "output"
    target_units: str = "m"
    volume: VolumeConfig = field(default_factory=VolumeConfig)
    surface: SurfaceConfig = field(default_factory=SurfaceConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)
    export_intermediate: bool = True
    sew_tolerance: Optional[float] = None

    def models(self) -> List[Tuple[str, ModelSource]]:
        """Configured input models as (role, source) pairs."""
        return [(role, src) for role, src in (("terrain", self.terrain), ("building", self.building))
                if src is not None]


def default_config() -> PipelineConfig:
    """Configuration of the reference scenario."""
    return PipelineConfig()


def _vec3(value: Any, name: str) -> Vec3:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ConfigError(f"{name} must be a list of 3 numbers, got {value!r}")
    try:
        return (float(value[0]), float(value[1]), float(value[2]))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be numeric: {e}") from e


def _flag(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


def _check_keys(data: Dict[str, Any], cls: type, name: str) -> None:
    if not isinstance(data, dict):
        raise ConfigError(f"{name} must be an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown {name} keys: {', '.join(unknown)}")


def _placement_from_dict(data: Dict[str, Any], name: str) -> Placement:
    _check_keys(data, Placement, name)
    return Placement(
        translation=_vec3(data.get("translation", (0.0, 0.0, 0.0)), f"{name}.translation"),
        rotation_deg=float(data.get("rotation_deg", 0.0)),
    )


def _model_from_dict(data: Optional[Dict[str, Any]], name: str) -> Optional[ModelSource]:
    if data is None:
        return None
    _check_keys(data, ModelSource, name)
    if "path" not in data:
        raise ConfigError(f"{name}.path is required")
    return ModelSource(
        path=str(data["path"]),
        model_id=data.get("model_id"),
        units=str(data.get("units", "m")),
        placement=_placement_from_dict(data.get("placement", {}), f"{name}.placement"),
    )


def _surface_from_dict(data: Dict[str, Any]) -> SurfaceConfig:
    _check_keys(data, SurfaceConfig, "surface")
    surface = SurfaceConfig()

    if "points" in data:
        rows = data["points"]
        if not isinstance(rows, list) or not rows or not all(isinstance(r, list) for r in rows):
            raise ConfigError("surface.points must be a non-empty list of rows")
        widths = {len(r) for r in rows}
        if len(widths) != 1:
            raise ConfigError("surface.points rows must all have the same length")
        surface.points = [[_vec3(p, f"surface.points[{i}][{j}]") for j, p in enumerate(row)]
                          for i, row in enumerate(rows)]

    if "grid_size" in data:
        grid = data["grid_size"]
        if not isinstance(grid, (list, tuple)) or len(grid) != 2 or min(int(g) for g in grid) < 2:
            raise ConfigError(f"surface.grid_size must be two integers >= 2, got {grid!r}")
        surface.grid_size = (int(grid[0]), int(grid[1]))

    for key in ("degree_min", "degree_max"):
        if key in data:
            setattr(surface, key, int(data[key]))
    for key in ("tolerance", "face_tolerance"):
        if key in data:
            setattr(surface, key, float(data[key]))
    if "from_terrain" in data:
        surface.from_terrain = _flag(data["from_terrain"], "surface.from_terrain")

    if surface.degree_min < 1 or surface.degree_max < surface.degree_min:
        raise ConfigError(
            f"surface degrees must satisfy 1 <= degree_min <= degree_max, "
            f"got {surface.degree_min}, {surface.degree_max}"
        )
    return surface


def config_from_dict(data: Dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from plain data.

    Raises:
        ConfigError: On unknown keys or malformed values
    """
    try:
        return _config_from_dict(data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e


def _config_from_dict(data: Dict[str, Any]) -> PipelineConfig:
    _check_keys(data, PipelineConfig, "config")
    config = PipelineConfig()

    config.terrain = _model_from_dict(data.get("terrain"), "terrain")
    config.building = _model_from_dict(data.get("building"), "building")
    config.output_dir = str(data.get("output_dir", config.output_dir))
    config.target_units = str(data.get("target_units", config.target_units))
    config.export_intermediate = _flag(data.get("export_intermediate", config.export_intermediate),
                                       "export_intermediate")
    if data.get("sew_tolerance") is not None:
        config.sew_tolerance = float(data["sew_tolerance"])

    if "volume" in data:
        volume = data["volume"]
        _check_keys(volume, VolumeConfig, "volume")
        config.volume = VolumeConfig(
            box_corner=_vec3(volume.get("box_corner", config.volume.box_corner), "volume.box_corner"),
            box_size=_vec3(volume.get("box_size", config.volume.box_size), "volume.box_size"),
            hole_radius=float(volume.get("hole_radius", config.volume.hole_radius)),
            hole_height=float(volume.get("hole_height", config.volume.hole_height)),
            hole_origin=_vec3(volume.get("hole_origin", config.volume.hole_origin), "volume.hole_origin"),
        )
        if min(config.volume.box_size) <= 0:
            raise ConfigError(f"volume.box_size must be positive, got {config.volume.box_size}")

    if "surface" in data:
        config.surface = _surface_from_dict(data["surface"])

    if "split" in data:
        _check_keys(data["split"], SplitConfig, "split")
        config.split = SplitConfig(levels=sorted(float(z) for z in data["split"].get("levels", [])))

    if "mesh" in data:
        mesh = data["mesh"]
        _check_keys(mesh, MeshConfig, "mesh")
        config.mesh = MeshConfig(
            deflection=float(mesh.get("deflection", config.mesh.deflection)),
            relative=_flag(mesh.get("relative", config.mesh.relative), "mesh.relative"),
            ascii=_flag(mesh.get("ascii", config.mesh.ascii), "mesh.ascii"),
        )
        if config.mesh.deflection <= 0:
            raise ConfigError("mesh.deflection must be positive")

    # Fail early on unit typos rather than midway through a run
    try:
        for _, source in config.models():
            length_scale(source.units, config.target_units)
    except UnitConversionError as e:
        raise ConfigError(str(e)) from e

    return config


def config_to_dict(config: PipelineConfig) -> Dict[str, Any]:
    """Plain-data form of a configuration, suitable for JSON."""
    return asdict(config)


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load a configuration from a JSON file.

    Relative model paths and output directories are resolved against the
    configuration file's directory.

    Raises:
        ConfigError: If the file is missing, not JSON, or invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ConfigError(f"Configuration file is not valid JSON: {path}: {e}") from e

    config = config_from_dict(data)

    base = path.parent
    for _, source in config.models():
        if not Path(source.path).is_absolute():
            source.path = str(base / source.path)
    if not Path(config.output_dir).is_absolute():
        config.output_dir = str(base / config.output_dir)

    logger.info("Loaded configuration", file=str(path), models=[role for role, _ in config.models()])
    return config


def dump_config(config: PipelineConfig, path: Union[str, Path]) -> None:
    """Write a configuration as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(config_to_dict(config), option=orjson.OPT_INDENT_2))
