"""Single-lens extended-source magnification.

Uniform-source values come from a precomputed table interpolated bilinearly
in (log10 rho, z = u / rho). The interpolated quantity is the ratio to the
exact on-axis value sqrt(rho**2 + 4) / rho, which is nearly independent of
rho for small sources. Outside the tabulated z range the analytic point lens
plus its quadrupole correction is accurate and used directly. Outside the
validated rho range the analytic point lens is used and the result is
flagged.
"""

import math
from functools import lru_cache
from pathlib import Path

import numpy as np
import structlog
from scipy.interpolate import RegularGridInterpolator

from lensmag.domain import QualityFlag
from lensmag.io import ESPLTableData, read_espl_table

logger = structlog.get_logger(__name__)

RHO_MIN = 1e-4
RHO_MAX = 1e2


def point_lens_magnification(u: float) -> float:
    """Point-source single-lens magnification (u**2 + 2) / (u sqrt(u**2 + 4))."""
    if u == 0.0:
        return math.inf
    v = u * u
    return (v + 2.0) / math.sqrt(v * (v + 4.0))


def point_lens_quadrupole(u: float, rho: float, mean_square_radius: float = 0.5) -> float:
    """Quadrupole finite-source correction of the single lens.

    This is rho_eff**2 / 8 times the Laplacian of the point-lens
    magnification, with rho_eff**2 = 2 <x**2> rho**2.

    Args:
        u: Source-lens distance, > 0
        rho: Source radius
        mean_square_radius: Brightness-weighted <x**2> of the profile

    Returns:
        Correction to add to the point-lens magnification
    """
    v = u * u
    w = v * (v + 4.0)
    return 4.0 * rho * rho * 2.0 * mean_square_radius * v * (v + 1.0) / w**2.5


def uniform_disk_on_axis(rho: float) -> float:
    """Exact magnification of a uniform disk centered on the lens."""
    return math.sqrt(rho * rho + 4.0) / rho


class ESPLTable:
    """Read-only lookup of uniform-source single-lens magnifications.

    Example:
        table = load_espl_table("espl.tbl")
        value, flags = table.magnification(0.1, 0.01)
    """

    def __init__(self, data: ESPLTableData, path: Path | None = None) -> None:
        """Initialize lookup.

        Args:
            data: Parsed table
            path: File the table came from
        """
        self.path = path
        self.log_rho_range = (float(data.log_rho[0]), float(data.log_rho[-1]))
        self.z_max = float(data.z[-1])
        rho = 10.0 ** np.asarray(data.log_rho, dtype=float)
        on_axis = np.sqrt(rho * rho + 4.0) / rho
        self._interpolator = RegularGridInterpolator(
            (data.log_rho, data.z),
            data.values / on_axis[:, np.newaxis],
            method="linear",
        )

    def in_domain(self, rho: float) -> bool:
        """Check whether rho is inside the validated and tabulated range."""
        if not RHO_MIN < rho < RHO_MAX:
            return False
        log_rho = math.log10(rho)
        return self.log_rho_range[0] <= log_rho <= self.log_rho_range[1]

    def _fallback(self, u: float, rho: float) -> tuple[float, QualityFlag]:
        logger.debug("Table domain exceeded", u=u, rho=rho)
        if u == 0.0:
            return uniform_disk_on_axis(rho), QualityFlag.TABLE_DOMAIN_EXCEEDED
        return point_lens_magnification(u), QualityFlag.TABLE_DOMAIN_EXCEEDED

    def magnification(self, u: float, rho: float) -> tuple[float, QualityFlag]:
        """Uniform-source magnification.

        Args:
            u: Source-lens distance
            rho: Source radius, > 0

        Returns:
            Tuple of (magnification, flags)
        """
        u = abs(u)
        if not RHO_MIN < rho < RHO_MAX:
            return self._fallback(u, rho)
        z = u / rho
        if z > self.z_max:
            return point_lens_magnification(u) + point_lens_quadrupole(u, rho), QualityFlag(0)
        if not self.in_domain(rho):
            return self._fallback(u, rho)
        ratio = self._interpolator(np.array([[math.log10(rho), z]]))[0]
        return float(ratio) * uniform_disk_on_axis(rho), QualityFlag(0)


@lru_cache(maxsize=8)
def _load_cached(path: str) -> ESPLTable:
    return ESPLTable(read_espl_table(Path(path)), Path(path))


def load_espl_table(path: Path | str) -> ESPLTable:
    """Load a single-lens table once per process.

    Repeated loads of the same file return the same read-only instance.

    Args:
        path: Table file

    Returns:
        Shared ESPLTable
    """
    return _load_cached(str(Path(path).resolve()))
