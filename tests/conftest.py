"""Shared fixtures: a small single-lens table built by direct quadrature."""

import math
from pathlib import Path

import numpy as np
import pytest
from scipy.integrate import quad

from lensmag.core.espl import point_lens_magnification
from lensmag.io import write_espl_table

TABLE_LOG_RHO = np.arange(-3.0, -0.99, 0.25)
TABLE_Z = np.linspace(0.0, 10.0, 161)


def uniform_disk_magnification(u: float, rho: float) -> float:
    """Uniform-source point-lens magnification by quadrature over lens-centered rings."""

    def integrand(r: float) -> float:
        if u == 0.0 or r == 0.0:
            arc = 2.0 * math.pi if r < rho - u else 0.0
        else:
            c = (r * r + u * u - rho * rho) / (2.0 * r * u)
            arc = 2.0 * math.acos(min(1.0, max(-1.0, c)))
        # A(r) * r stays finite at the lens.
        return (r * r + 2.0) / math.sqrt(r * r + 4.0) * arc

    lo = max(0.0, u - rho)
    hi = u + rho
    kink = abs(u - rho)
    points = [kink] if lo < kink < hi else None
    value, _ = quad(integrand, lo, hi, points=points, limit=200)
    return value / (math.pi * rho * rho)


def limb_darkened_reference(u: float, rho: float, intensity) -> float:
    """Limb-darkened point-lens magnification by nested quadrature over the source."""

    def ring_average(r: float) -> float:
        def along(phi: float) -> float:
            return point_lens_magnification(abs(complex(u + r * math.cos(phi), r * math.sin(phi))))

        value, _ = quad(along, 0.0, math.pi, limit=200)
        return value / math.pi

    def integrand(x: float) -> float:
        return intensity(x) * ring_average(x * rho) * 2.0 * x

    value, _ = quad(integrand, 0.0, 1.0, limit=200)
    return value


@pytest.fixture(scope="session")
def espl_table_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Single-lens table over 1e-3 <= rho <= 1e-1 and 0 <= z <= 10."""
    values = np.array(
        [
            [uniform_disk_magnification(z * 10.0**log_rho, 10.0**log_rho) for z in TABLE_Z]
            for log_rho in TABLE_LOG_RHO
        ]
    )
    path = tmp_path_factory.mktemp("espl") / "espl.tbl"
    write_espl_table(path, TABLE_LOG_RHO, TABLE_Z, values)
    return path


@pytest.fixture(scope="session")
def disk_reference():
    """Uniform-disk quadrature, as a callable (u, rho) -> magnification."""
    return uniform_disk_magnification


@pytest.fixture(scope="session")
def limb_darkened_reference_fn():
    """Limb-darkened quadrature, as a callable (u, rho, intensity) -> magnification."""
    return limb_darkened_reference
