"""The BIM2SE geometry pipeline.

A linear sequence of kernel calls: load and place the tessellated models,
combine them, build the volume, approximate the soil surface, section and
split the volume with it, and export every stage. Kernel success flags
decide between the surface branch and the original-geometry fallback.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import structlog

from kernel.binding import resolve_binding
from kernel.export import export_shape
from kernel.modeling import cut, level_plane, make_box, make_compound, make_cylinder, place, place_points
from kernel.sections import section, split
from kernel.stl_io import StlImportError, load_stl
from kernel.summary import area_of, bounding_box, volume_of
from kernel.surface import SurfaceFit, approximate_surface, grid_from_scattered

from .config import PipelineConfig, config_to_dict
from .manifest import Artifact, ArtifactKind, PipelineReport, dump_manifest
from .units import length_scale

logger = structlog.get_logger(__name__)

MANIFEST_NAME = "manifest.json"

# Relative mismatch tolerated between the volume and the sum of its slices
VOLUME_BALANCE_TOLERANCE = 1e-3


class Bim2sePipeline:
    """One run of the pipeline over a configuration."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.output_dir = Path(config.output_dir)
        self.report = PipelineReport(config=config_to_dict(config), units=config.target_units)

        self.placed: Dict[str, Any] = {}
        self.terrain_points: Optional[np.ndarray] = None

    def run(self) -> PipelineReport:
        """Execute every stage and write the manifest.

        Raises:
            OCCTNotAvailableError: If no OCCT binding is available
            ModelingError: If the volume cannot be built
            ExportError: If a writer fails
        """
        binding = resolve_binding()
        self.report.occt_binding = binding.name
        self.output_dir.mkdir(parents=True, exist_ok=True)

        with structlog.contextvars.bound_contextvars(run_id=self.report.run_id):
            logger.info("Pipeline started", output_dir=str(self.output_dir), binding=binding.name)

            self.load_models()
            self.combine_models()
            box, volume = self.build_volume()

            fit = self.fit_surface()
            if fit.is_done:
                self.cut_with_surface(volume, fit)
            else:
                self.export_fallback(box, volume)

            self.check_volume_balance()

            manifest = dump_manifest(self.report, self.output_dir / MANIFEST_NAME)
            logger.info(
                "Pipeline finished",
                manifest=str(manifest),
                artifacts=len(self.report.artifacts),
                warnings=len(self.report.warnings),
            )

        return self.report

    def _export(self, shape: Any, name: str, kind: ArtifactKind,
                formats: tuple[str, ...] = ("stp", "stl"), volume: Optional[float] = None,
                **attrs: Any) -> Artifact:
        mesh = self.config.mesh
        paths = export_shape(
            shape, name, self.output_dir,
            deflection=mesh.deflection, relative=mesh.relative, ascii=mesh.ascii,
            formats=formats,
        )
        return self.report.add_artifact(Artifact(
            name=name,
            kind=kind,
            paths=[str(p) for p in paths],
            volume=volume,
            area=area_of(shape),
            bounding_box=bounding_box(shape),
            attrs=attrs,
        ))

    def _warn(self, message: str, **kwargs: Any) -> None:
        logger.warning(message, **kwargs)
        self.report.add_warning(message)

    def load_models(self) -> None:
        """Load the tessellated models and move them into shared coordinates."""
        target = self.config.target_units

        for role, source in self.config.models():
            try:
                model = load_stl(source.path, source.model_id, source.units, self.config.sew_tolerance)
            except StlImportError as e:
                self._warn(f"Skipping {role} model: {e}", role=role, path=source.path)
                continue

            scale = length_scale(model.units, target)
            placement = source.placement
            shape = place(model.occt_shape, scale, placement.rotation_deg, placement.translation)
            self.placed[role] = shape

            if role == "terrain":
                self.terrain_points = place_points(
                    model.vertices(), scale, placement.rotation_deg, placement.translation
                )

            logger.info("Placed model", role=role, model_id=model.model_id, scale=scale)

            if self.config.export_intermediate:
                self._export(
                    shape, model.model_id, "model",
                    role=role,
                    source=model.file_path,
                    triangles=model.triangle_count,
                    skipped_triangles=model.skipped_triangles,
                    scale=scale,
                )

    def combine_models(self) -> Optional[Any]:
        """Group the placed models into one compound and export it."""
        if not self.placed:
            logger.info("No input models loaded; skipping combination")
            return None

        combined = make_compound(self.placed.values())
        self._export(combined, "combined", "combined", roles=sorted(self.placed))
        return combined

    def build_volume(self) -> tuple[Any, Any]:
        """Build the box and cut the cylindrical hole out of it.

        Returns:
            Tuple of (box, volume); they are the same shape when the hole is
            disabled
        """
        spec = self.config.volume
        box = make_box(spec.box_corner, spec.box_size)

        if spec.hole_radius > 0 and spec.hole_height > 0:
            cylinder = make_cylinder(spec.hole_radius, spec.hole_height, spec.hole_origin)
            volume = cut(box, cylinder)
        else:
            volume = box

        self.report.volumes["box"] = volume_of(box)
        self.report.volumes["volume"] = volume_of(volume)

        logger.info("Volume built", box=self.report.volumes["box"], volume=self.report.volumes["volume"])

        if self.config.export_intermediate:
            self._export(volume, "volume", "volume", volume=self.report.volumes["volume"])

        return box, volume

    def fit_surface(self) -> SurfaceFit:
        """Approximate the soil surface from terrain vertices or control points."""
        surface = self.config.surface

        if surface.from_terrain and self.terrain_points is not None and len(self.terrain_points):
            grid = grid_from_scattered(self.terrain_points, *surface.grid_size)
            source = "terrain"
        else:
            grid = surface.points
            source = "points"

        fit = approximate_surface(
            grid,
            degree_min=surface.degree_min,
            degree_max=surface.degree_max,
            tolerance=surface.tolerance,
            face_tolerance=surface.face_tolerance,
        )
        self.report.surface_done = fit.is_done

        logger.info("Surface fit", source=source, done=fit.is_done, nu=fit.nu, nv=fit.nv)
        return fit

    def _level_planes(self, volume: Any) -> list[Any]:
        levels = self.config.split.levels
        if not levels:
            return []

        bbox = bounding_box(volume)
        if bbox is None:
            return []

        cx = (bbox["min_x"] + bbox["max_x"]) / 2
        cy = (bbox["min_y"] + bbox["max_y"]) / 2
        half_extent = math.hypot(bbox["max_x"] - bbox["min_x"], bbox["max_y"] - bbox["min_y"])
        return [level_plane(z, half_extent, (cx, cy)) for z in levels]

    def cut_with_surface(self, volume: Any, fit: SurfaceFit) -> None:
        """Export the surface, then section and split the volume with it."""
        logger.info("Creation of Surface succeeded!")
        self._export(fit.face, "soilSurface", "surface", nu=fit.nu, nv=fit.nv,
                     degree_min=fit.degree_min, degree_max=fit.degree_max)

        cross_section = section(volume, fit.face)
        if cross_section.is_done and cross_section.edge_count:
            # Section edges have no triangles to write as STL
            self._export(cross_section.shape, "section", "section", formats=("stp",),
                         edges=cross_section.edge_count)
        elif cross_section.is_done:
            self._warn("Soil surface does not intersect the volume")
        else:
            self._warn("Section build failed")

        tools = [fit.face] + self._level_planes(volume)
        result = split(volume, tools)
        self.report.split_done = result.is_done and bool(result.solids)

        if not self.report.split_done:
            self._warn("Split build failed; writing unsplit geometry")
            self._export(volume, "originalGeometry", "fallback", volume=self.report.volumes.get("volume"))
            return

        for index, solid in enumerate(result.solids, start=1):
            name = f"slice{index}"
            solid_volume = volume_of(solid)
            self.report.volumes[name] = solid_volume
            self._export(solid, name, "slice", volume=solid_volume, index=index)

        logger.info("Volume split", slices=len(result.solids), tools=len(tools))

    def export_fallback(self, box: Any, volume: Any) -> None:
        """Write the unmodified volume when no surface could be built."""
        self._warn("Surface approximation failed; writing original geometry")
        self._export(volume, "originalGeometry", "fallback", volume=self.report.volumes["volume"])

        logger.info("Volume of the model", volume=round(self.report.volumes["volume"], 5))
        logger.info("Volume of the original model", volume=round(self.report.volumes["box"], 5))

    def check_volume_balance(self) -> None:
        """Warn when the slices do not add up to the volume they came from."""
        slices = [v for k, v in self.report.volumes.items() if k.startswith("slice")]
        reference = self.report.volumes.get("volume", 0.0)
        if not slices or reference <= 0:
            return

        total = sum(slices)
        mismatch = abs(total - reference) / reference
        if mismatch > VOLUME_BALANCE_TOLERANCE:
            self._warn(
                f"Slice volumes sum to {total:.6g}, volume is {reference:.6g}",
                mismatch=mismatch,
            )


def run_pipeline(config: PipelineConfig) -> PipelineReport:
    """Run the pipeline over ``config`` and return its report."""
    return Bim2sePipeline(config).run()
