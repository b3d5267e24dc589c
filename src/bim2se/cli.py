"""BIM2SE command-line interface.

Runs the geometry pipeline, inspects STL models and reports on the
available Open CASCADE binding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kernel.binding import OCCTNotAvailableError, get_occt_info
from kernel.export import ExportError
from kernel.modeling import ModelingError
from kernel.stl_io import StlImportError, load_stl
from kernel.summary import GeometrySummary, summarize_shape

from .config import ConfigError, ModelSource, PipelineConfig, default_config, dump_config, load_config
from .logging_setup import configure_logging
from .manifest import PipelineReport
from .pipeline import MANIFEST_NAME, run_pipeline
from .units import volume_unit_for

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="bim2se",
    help="BIM2SE geometry pipeline: terrain and building models to structural volumes",
    add_completion=False,
)

console = Console()


def _display_error(message: str, error: Optional[Exception] = None) -> None:
    """Display error message with styling."""
    error_text = Text(f"❌ {message}", style="bold red")
    if error:
        error_text.append(f"\n   {str(error)}", style="red")
    console.print(Panel(error_text, title="Error", border_style="red"))


def _display_success(message: str) -> None:
    """Display success message with styling."""
    success_text = Text(f"✅ {message}", style="bold green")
    console.print(Panel(success_text, title="Success", border_style="green"))


def _display_warning(message: str) -> None:
    """Display warning message with styling."""
    warning_text = Text(f"⚠️  {message}", style="bold yellow")
    console.print(Panel(warning_text, title="Warning", border_style="yellow"))


def _setup_logging(verbose: bool, json_logs: bool) -> None:
    configure_logging(level="DEBUG" if verbose else "WARNING", enable_json=json_logs)


@app.command()
def info() -> None:
    """Display OCCT binding status."""
    console.print(Panel(
        "BIM2SE\n"
        "BIM to structural engineering geometry pipeline",
        title="BIM2SE",
        border_style="blue"
    ))

    occt_info = get_occt_info()

    table = Table(title="OCCT Binding Status")
    table.add_column("Binding", style="cyan")
    table.add_column("Available", style="green")

    table.add_row("OCP", "✅" if occt_info["OCP_available"] else "❌")
    table.add_row("pythonOCC", "✅" if occt_info["pythonOCC_available"] else "❌")

    console.print(table)

    if occt_info["recommended_binding"]:
        _display_success(
            f"Using binding: {occt_info['recommended_binding']} "
            f"(OCCT {occt_info['occt_version'] or 'unknown'})"
        )
    else:
        _display_error(
            "No OCCT binding available",
            Exception("Install cadquery-ocp or pythonocc-core to enable geometry processing")
        )


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Pipeline configuration (JSON)"),
    terrain: Optional[Path] = typer.Option(None, "--terrain", help="Terrain STL, overrides the configuration"),
    building: Optional[Path] = typer.Option(None, "--building", help="Building STL, overrides the configuration"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Directory for exported files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
) -> None:
    """Run the pipeline and export every stage."""
    _setup_logging(verbose, json_logs)

    try:
        config = load_config(config_path) if config_path else default_config()
    except ConfigError as e:
        _display_error("Invalid configuration", e)
        raise typer.Exit(1)

    _apply_overrides(config, terrain, building, output_dir)

    console.print(f"🔄 Running pipeline into: {config.output_dir}")

    try:
        report = run_pipeline(config)
    except OCCTNotAvailableError as e:
        _display_error("No OCCT binding available", e)
        raise typer.Exit(1)
    except ModelingError as e:
        _display_error("Failed to build geometry", e)
        raise typer.Exit(1)
    except ExportError as e:
        _display_error("Failed to export geometry", e)
        raise typer.Exit(1)

    _display_report(report)

    for warning in report.warnings:
        _display_warning(warning)

    _display_success(f"Manifest written to: {Path(config.output_dir) / MANIFEST_NAME}")


def _apply_overrides(config: PipelineConfig, terrain: Optional[Path],
                     building: Optional[Path], output_dir: Optional[Path]) -> None:
    if terrain is not None:
        if config.terrain is None:
            config.terrain = ModelSource(path=str(terrain))
        else:
            config.terrain.path = str(terrain)
    if building is not None:
        if config.building is None:
            config.building = ModelSource(path=str(building))
        else:
            config.building.path = str(building)
    if output_dir is not None:
        config.output_dir = str(output_dir)


def _display_report(report: PipelineReport) -> None:
    """Display artifacts and volumes of a run."""
    artifacts = Table(title="Exported Shapes")
    artifacts.add_column("Name", style="cyan")
    artifacts.add_column("Kind", style="magenta")
    artifacts.add_column("Files", style="white")

    for artifact in report.artifacts:
        files = ", ".join(Path(p).name for p in artifact.paths)
        artifacts.add_row(artifact.name, artifact.kind, files)

    console.print(artifacts)

    volume_unit = volume_unit_for(report.units)
    volumes = Table(title="Volumes")
    volumes.add_column("Shape", style="cyan")
    volumes.add_column(f"Volume ({volume_unit})", style="yellow", justify="right")

    for name, value in report.volumes.items():
        volumes.add_row(name, f"{value:.5g}")

    console.print(volumes)

    status = Table(title="Kernel Status")
    status.add_column("Step", style="cyan")
    status.add_column("Succeeded", style="green")
    status.add_row("Surface", "✅" if report.surface_done else "❌")
    status.add_row("Split", "✅" if report.split_done else "❌")
    console.print(status)


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="Path to STL file"),
    units: str = typer.Option("m", "--units", help="Length unit of the file"),
    sew: Optional[float] = typer.Option(None, "--sew", help="Sew faces with this tolerance"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Load an STL file as a BREP shell and summarize it."""
    _setup_logging(verbose, False)

    try:
        console.print(f"🔄 Loading STL file: {path}")
        model = load_stl(path, units=units, sew_tolerance=sew)
        summary = summarize_shape(model.occt_shape, model.model_id, units)
    except (StlImportError, OCCTNotAvailableError) as e:
        _display_error("Failed to load STL file", e)
        raise typer.Exit(1)

    table = Table(title="Loaded Model Information")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Model ID", model.model_id)
    table.add_row("File Path", model.file_path)
    table.add_row("OCCT Binding", model.occt_binding)
    table.add_row("Triangles", str(model.triangle_count))
    table.add_row("Skipped", str(model.skipped_triangles))
    console.print(table)

    _display_summary(summary)


def _display_summary(summary: GeometrySummary) -> None:
    """Display geometry summary in a formatted table."""
    topology_table = Table(title="Topology")
    topology_table.add_column("Entity", style="cyan")
    topology_table.add_column("Count", style="yellow")

    topology_table.add_row("Solids", str(summary.solids))
    topology_table.add_row("Shells", str(summary.shells))
    topology_table.add_row("Faces", str(summary.faces))
    topology_table.add_row("Edges", str(summary.edges))
    topology_table.add_row("Vertices", str(summary.vertices))

    console.print(topology_table)

    props_table = Table(title="Properties")
    props_table.add_column("Property", style="cyan")
    props_table.add_column("Value", style="white")

    props_table.add_row("Units", summary.units)

    if summary.bounding_box:
        bbox = summary.bounding_box
        bbox_str = (f"({bbox['min_x']:.2f}, {bbox['min_y']:.2f}, {bbox['min_z']:.2f}) → "
                    f"({bbox['max_x']:.2f}, {bbox['max_y']:.2f}, {bbox['max_z']:.2f})")
        props_table.add_row("Bounding Box", bbox_str)

    if summary.surface_area is not None:
        props_table.add_row("Surface Area", f"{summary.surface_area:.2f}")

    if summary.volume is not None:
        props_table.add_row("Volume", f"{summary.volume:.2f}")

    console.print(props_table)

    if summary.analysis_warnings:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for warning in summary.analysis_warnings:
            console.print(f"  ⚠️  {warning}")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("bim2se.json"), help="Where to write the configuration"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write the default pipeline configuration as JSON."""
    if path.exists() and not force:
        _display_error(f"{path} already exists", Exception("Use --force to overwrite"))
        raise typer.Exit(1)

    dump_config(default_config(), path)
    _display_success(f"Configuration written to: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
