"""Rich console output helpers for the CLI.

This module provides user-friendly console output using Rich library
with result tables and formatted messages.
"""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from lensmag.domain import MagnificationResult, QualityFlag

console = Console()

# Unicode symbols for consistent visual language
SYM_STEP = "▸"  # Step indicator
SYM_OK = "✓"  # Success
SYM_ERR = "✗"  # Error
SYM_DOT = "·"  # Separator/secondary info


def print_header(version: str) -> None:
    """Print application header.

    Args:
        version: Application version string
    """
    console.print(f"\n[bold]lensmag[/bold] v{version}")
    console.print("─" * 44)


def print_step(message: str) -> None:
    """Print a processing step indicator.

    Args:
        message: Step description message
    """
    console.print(f"\n{SYM_STEP} {message}")


def print_configuration(s: float, q: float, y1: float, y2: float, rho: float) -> None:
    """Print lens and source parameters.

    Args:
        s: Lens separation
        q: Mass ratio
        y1: Source center along the lens axis
        y2: Source center perpendicular to the lens axis
        rho: Source radius
    """
    console.print(f"  s={s:g} {SYM_DOT} q={q:g}")
    console.print(f"  source ({y1:g}, {y2:g}) {SYM_DOT} rho={rho:g}")


def _flag_names(flags: QualityFlag) -> list[str]:
    return [flag.name.lower() for flag in QualityFlag if flag in flags]


def print_result(result: MagnificationResult, label: str = "Magnification") -> None:
    """Print a magnification result with its diagnostics.

    Args:
        result: Evaluation result
        label: Heading for the value
    """
    status = f"[green]{SYM_OK}[/green]" if result.is_reliable else f"[yellow]{SYM_ERR}[/yellow]"
    console.print(f"\n{status} [bold]{label}[/bold] {result.magnification:.6f}")
    console.print(
        f"  {result.stage.value} {SYM_DOT} {result.annuli} annuli {SYM_DOT} {result.points} points"
    )
    if result.centroid is not None:
        console.print(
            f"  centroid ({result.centroid.real:.6f}, {result.centroid.imag:.6f})"
        )
    names = _flag_names(result.flags)
    if names:
        console.print(f"  [yellow]flags: {', '.join(names)}[/yellow]")


def print_band_table(coefficients: list[float], results: list[MagnificationResult]) -> None:
    """Print one row per band.

    Args:
        coefficients: Linear limb-darkening coefficient per band
        results: Result per band
    """
    table = Table(show_header=True, header_style="bold")
    table.add_column("a1", justify="right")
    table.add_column("magnification", justify="right")
    table.add_column("annuli", justify="right")
    table.add_column("flags")
    for a1, result in zip(coefficients, results, strict=True):
        table.add_row(
            f"{a1:g}",
            f"{result.magnification:.6f}",
            str(result.annuli),
            ", ".join(_flag_names(result.flags)) or SYM_DOT,
        )
    console.print(table)


def print_written(path: str, curves: int) -> None:
    """Print output file summary.

    Args:
        path: Output file
        curves: Number of curves written
    """
    line = Text(f"\n{SYM_OK} ", style="bold green")
    line.append(path, style="bold")
    line.append(f" ({curves} curves)")
    console.print(line)


def print_error(message: str, details: str | None = None) -> None:
    """Print error message.

    Args:
        message: Main error message
        details: Optional detailed error information
    """
    console.print(f"\n[bold red]{SYM_ERR} Error:[/bold red] {message}")
    if details:
        console.print(f"  {details}")
