"""CLI application entry point for lensmag.

This module provides the main CLI interface using Typer.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from lensmag import __version__
from lensmag.cli.output import (
    console,
    print_band_table,
    print_configuration,
    print_error,
    print_header,
    print_result,
    print_step,
    print_written,
)
from lensmag.config import (
    LensMagSettings,
    LimbDarkeningConfig,
    LimbDarkeningKind,
    LoggingConfig,
    ToleranceConfig,
)
from lensmag.core import MagnificationEngine
from lensmag.domain import MagnificationResult
from lensmag.exceptions import LensMagError
from lensmag.io import write_contour_set, write_curves
from lensmag.utils import configure_logging

# Create the Typer app
app = typer.Typer(
    name="lensmag",
    help="Binary-lens microlensing magnification.",
    add_completion=False,
    no_args_is_help=True,
)

Separation = Annotated[float, typer.Option("--separation", "-s", help="Lens separation")]
MassRatio = Annotated[float, typer.Option("--mass-ratio", "-q", help="Mass ratio m2/m1")]
SourceY1 = Annotated[float, typer.Option("--y1", help="Source center along the lens axis")]
SourceY2 = Annotated[float, typer.Option("--y2", help="Source center perpendicular to the axis")]
Radius = Annotated[float, typer.Option("--rho", "-r", help="Source radius", min=0.0)]
Tolerance = Annotated[float, typer.Option("--tol", help="Absolute accuracy goal")]
RelTolerance = Annotated[float, typer.Option("--rel-tol", help="Relative accuracy goal (0 disables)")]
LogLevel = Annotated[
    str, typer.Option("--log-level", help="Logging level (DEBUG|INFO|WARNING|ERROR)")
]
JsonOutput = Annotated[bool, typer.Option("--json", help="Print the result as JSON")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]lensmag[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    _version: Annotated[  # noqa: ARG001
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Binary-lens microlensing magnification."""


def _build_engine(
    tol: float,
    rel_tol: float,
    log_level: str,
    limb_darkening: str = "uniform",
    a1: float = 0.0,
    a2: float = 0.0,
    astrometry: bool = False,
) -> MagnificationEngine:
    """Create settings from CLI arguments and an engine using them."""
    try:
        kind = LimbDarkeningKind(limb_darkening.lower())
    except ValueError:
        valid = ", ".join(k.value for k in LimbDarkeningKind if k is not LimbDarkeningKind.CUSTOM)
        print_error(f"Invalid limb-darkening law: {limb_darkening}", details=f"Valid values: {valid}")
        raise typer.Exit(code=1)
    if kind is LimbDarkeningKind.CUSTOM:
        print_error("Custom profiles are only available from Python")
        raise typer.Exit(code=1)

    try:
        settings = LensMagSettings(
            tolerance=ToleranceConfig(tol=tol, rel_tol=rel_tol),
            limb_darkening=LimbDarkeningConfig(kind=kind, a1=a1, a2=a2),
            logging=LoggingConfig(log_level=log_level),
            astrometry=astrometry,
        )
    except ValidationError as e:
        print_error("Invalid settings", details=str(e))
        raise typer.Exit(code=1)

    configure_logging(
        log_file=settings.logging.log_file,
        console_level=settings.logging.log_level,
        file_level=settings.logging.file_log_level,
    )
    return MagnificationEngine(settings)


def _emit(result: MagnificationResult, as_json: bool, label: str = "Magnification") -> None:
    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        print_result(result, label)


@app.command()
def magnify(
    s: Separation,
    q: MassRatio,
    y1: SourceY1 = 0.0,
    y2: SourceY2 = 0.0,
    rho: Radius = 0.0,
    tol: Tolerance = 1e-2,
    rel_tol: RelTolerance = 0.0,
    limb_darkening: Annotated[
        str,
        typer.Option(
            "--limb-darkening",
            "-l",
            help="Brightness law (uniform|linear|square_root|quadratic|logarithmic)",
        ),
    ] = "uniform",
    a1: Annotated[float, typer.Option("--a1", help="First limb-darkening coefficient")] = 0.0,
    a2: Annotated[float, typer.Option("--a2", help="Second limb-darkening coefficient")] = 0.0,
    astrometry: Annotated[
        bool, typer.Option("--astrometry", help="Also compute the image centroid")
    ] = False,
    log_level: LogLevel = "WARNING",
    as_json: JsonOutput = False,
) -> None:
    """Evaluate the magnification with the full staged evaluation.

    Example:
        lensmag magnify -s 0.8 -q 0.1 --y1 0.01 --y2 0.01 --rho 0.01 --tol 1e-3
    """
    engine = _build_engine(tol, rel_tol, log_level, limb_darkening, a1, a2, astrometry)
    if not as_json:
        print_header(__version__)
        print_configuration(s, q, y1, y2, rho)
    try:
        result = engine.adaptive(s, q, y1, y2, rho)
    except LensMagError as e:
        engine.evaluation_logger.log_evaluation_error("adaptive", e)
        print_error(str(e))
        raise typer.Exit(code=1)
    _emit(result, as_json)


@app.command()
def point(
    s: Separation,
    q: MassRatio,
    y1: SourceY1 = 0.0,
    y2: SourceY2 = 0.0,
    astrometry: Annotated[
        bool, typer.Option("--astrometry", help="Also compute the image centroid")
    ] = False,
    log_level: LogLevel = "WARNING",
    as_json: JsonOutput = False,
) -> None:
    """Evaluate the point-source magnification."""
    engine = _build_engine(1e-2, 0.0, log_level, astrometry=astrometry)
    try:
        result = engine.point_source(s, q, y1, y2)
    except LensMagError as e:
        engine.evaluation_logger.log_evaluation_error("point_source", e)
        print_error(str(e))
        raise typer.Exit(code=1)
    _emit(result, as_json, "Point-source magnification")


@app.command()
def bands(
    s: Separation,
    q: MassRatio,
    coefficients: Annotated[
        list[float],
        typer.Option("--a1", help="Linear limb-darkening coefficient (repeat per band)"),
    ],
    y1: SourceY1 = 0.0,
    y2: SourceY2 = 0.0,
    rho: Radius = 0.01,
    tol: Tolerance = 1e-2,
    log_level: LogLevel = "WARNING",
) -> None:
    """Evaluate limb-darkened magnifications for several bands at once."""
    engine = _build_engine(tol, 0.0, log_level, "linear")
    print_header(__version__)
    print_configuration(s, q, y1, y2, rho)
    print_step(f"Evaluating {len(coefficients)} bands")
    try:
        results = engine.multi_band(s, q, y1, y2, rho, coefficients)
    except LensMagError as e:
        engine.evaluation_logger.log_evaluation_error("multi_band", e)
        print_error(str(e))
        raise typer.Exit(code=1)
    print_band_table(coefficients, results)


@app.command()
def caustics(
    s: Separation,
    q: MassRatio,
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file (x y lines, 'c' between curves)"),
    ] = Path("caustics.txt"),
    points: Annotated[
        int, typer.Option("--points", "-n", help="Phase samples per root track", min=8)
    ] = 256,
    log_level: LogLevel = "WARNING",
) -> None:
    """Write critical curves followed by caustics to a text file."""
    engine = _build_engine(1e-2, 0.0, log_level)
    print_header(__version__)
    print_step("Tracing critical curves")
    try:
        contours = engine.critical_curves(s, q, points)
    except LensMagError as e:
        engine.evaluation_logger.log_evaluation_error("critical_curves", e)
        print_error(str(e))
        raise typer.Exit(code=1)
    half = len(contours) // 2
    console.print(f"  {half} critical curves, {half} caustics")
    print_written(str(output), write_curves(output, contours.curves))


@app.command()
def contours(
    s: Separation,
    q: MassRatio,
    y1: SourceY1 = 0.0,
    y2: SourceY2 = 0.0,
    rho: Radius = 0.01,
    tol: Tolerance = 1e-3,
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file (x y lines, 'c' between curves)"),
    ] = Path("contours.txt"),
    log_level: LogLevel = "WARNING",
) -> None:
    """Write the image contours of a uniform source to a text file."""
    engine = _build_engine(tol, 0.0, log_level)
    print_header(__version__)
    print_configuration(s, q, y1, y2, rho)
    print_step("Tracing image contours")
    try:
        result = engine.uniform_source(s, q, y1, y2, rho, return_contours=True)
    except LensMagError as e:
        engine.evaluation_logger.log_evaluation_error("uniform_source", e)
        print_error(str(e))
        raise typer.Exit(code=1)
    print_result(result)
    if result.contours is None:
        print_error("No image contours were traced")
        raise typer.Exit(code=1)
    print_written(str(output), write_contour_set(output, result.contours))


def cli() -> None:
    """Entry point for the CLI application."""
    app()


def main() -> None:
    """Entry point for the CLI application (alias for cli)."""
    cli()


if __name__ == "__main__":
    cli()
