"""Plain-text table and curve files.

Single-lens extended-source tables are whitespace-separated numbers. The
first row holds ``nan`` followed by the grid of z = u / rho. Every following
row holds log10(rho) followed by the uniform-source magnification at each z.

Curve files list one ``x y`` pair per line, with a line holding only ``c``
between consecutive curves.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import structlog

from lensmag.domain import ContourSet, Curve, ImagePoint
from lensmag.exceptions import TableFormatError, TableLoadError

logger = structlog.get_logger(__name__)

CURVE_SEPARATOR = "c"


@dataclass(frozen=True)
class ESPLTableData:
    """Grid of uniform-source single-lens magnifications.

    Attributes:
        log_rho: Ascending log10 source radii (rows)
        z: Ascending u / rho values (columns)
        values: Magnifications, shape (len(log_rho), len(z))
    """

    log_rho: np.ndarray
    z: np.ndarray
    values: np.ndarray


def read_espl_table(path: Path) -> ESPLTableData:
    """Read a single-lens table.

    Args:
        path: Table file

    Returns:
        Parsed table

    Raises:
        FileNotFoundError: If the file does not exist
        TableLoadError: If the file cannot be parsed as numbers
        TableFormatError: If the layout is not the expected grid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Table file not found: {path}")
    try:
        data = np.loadtxt(path, ndmin=2)
    except ValueError as e:
        raise TableLoadError(str(path), str(e)) from e

    if data.shape[0] < 3 or data.shape[1] < 3:
        raise TableFormatError(str(path), f"grid too small: {data.shape[0]}x{data.shape[1]}")
    if not np.isnan(data[0, 0]):
        raise TableFormatError(str(path), "first entry must be nan")

    z = data[0, 1:]
    log_rho = data[1:, 0]
    values = data[1:, 1:]
    if np.any(z < 0.0) or np.any(np.diff(z) <= 0.0):
        raise TableFormatError(str(path), "z grid must be non-negative and increasing")
    if np.any(np.diff(log_rho) <= 0.0):
        raise TableFormatError(str(path), "log10(rho) grid must be increasing")
    if not np.all(np.isfinite(values)) or np.any(values <= 0.0):
        raise TableFormatError(str(path), "magnifications must be finite and positive")

    logger.info("Table loaded", path=str(path), rows=len(log_rho), columns=len(z))
    return ESPLTableData(log_rho=log_rho, z=z, values=values)


def write_espl_table(
    path: Path,
    log_rho: np.ndarray,
    z: np.ndarray,
    values: np.ndarray,
) -> None:
    """Write a single-lens table in the layout read_espl_table() expects.

    Args:
        path: Output file
        log_rho: Ascending log10 source radii
        z: Ascending u / rho values
        values: Magnifications, shape (len(log_rho), len(z))
    """
    log_rho = np.asarray(log_rho, dtype=float)
    z = np.asarray(z, dtype=float)
    values = np.asarray(values, dtype=float)
    if values.shape != (len(log_rho), len(z)):
        raise TableFormatError(str(path), f"values shape {values.shape} does not match grid")
    grid = np.empty((len(log_rho) + 1, len(z) + 1))
    grid[0, 0] = np.nan
    grid[0, 1:] = z
    grid[1:, 0] = log_rho
    grid[1:, 1:] = values
    np.savetxt(Path(path), grid, fmt="%.12g")


def write_curves(path: Path, curves: Iterable[Curve]) -> int:
    """Write curves as ``x y`` lines separated by ``c`` lines.

    Args:
        path: Output file
        curves: Curves to write

    Returns:
        Number of curves written
    """
    blocks = []
    for curve in curves:
        blocks.append("\n".join(f"{p.z.real:.12g} {p.z.imag:.12g}" for p in curve.points))
    Path(path).write_text(f"\n{CURVE_SEPARATOR}\n".join(blocks) + "\n", encoding="utf-8")
    return len(blocks)


def write_contour_set(path: Path, contours: ContourSet) -> int:
    """Write every curve of a contour set.

    Returns:
        Number of curves written
    """
    return write_curves(path, contours.curves)


def read_curves(path: Path) -> list[Curve]:
    """Read curves written by write_curves().

    Args:
        path: Curve file

    Returns:
        Curves with positions only
    """
    curves: list[Curve] = []
    current: list[ImagePoint] = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        if line == CURVE_SEPARATOR:
            curves.append(Curve(points=tuple(current)))
            current = []
            continue
        x, y = (float(v) for v in line.split())
        current.append(ImagePoint(z=complex(x, y)))
    if current:
        curves.append(Curve(points=tuple(current)))
    return curves
