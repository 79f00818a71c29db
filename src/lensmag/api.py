"""Functional evaluation surface.

Thin wrappers over MagnificationEngine that return plain floats. Each
function takes an optional engine; the default engine uses default settings
and is never mutated, so calls do not influence each other.
"""

from collections.abc import Sequence
from pathlib import Path

from lensmag.config import LimbDarkeningKind
from lensmag.core.engine import BandCoefficients, MagnificationEngine
from lensmag.core.espl import ESPLTable, load_espl_table
from lensmag.core.limb_darkening import BrightnessFunction
from lensmag.domain import ContourSet

_DEFAULT_ENGINE: MagnificationEngine | None = None


def default_engine() -> MagnificationEngine:
    """Shared engine with default settings."""
    global _DEFAULT_ENGINE
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = MagnificationEngine()
    return _DEFAULT_ENGINE


def point_source_magnification(
    s: float,
    q: float,
    y1: float,
    y2: float,
    engine: MagnificationEngine | None = None,
) -> float:
    """Point-source binary-lens magnification."""
    return (engine or default_engine()).point_source(s, q, y1, y2).magnification


def uniform_source_magnification(
    s: float,
    q: float,
    y1: float,
    y2: float,
    rho: float,
    accuracy: float | None = None,
    engine: MagnificationEngine | None = None,
    return_contours: bool = False,
) -> float | tuple[float, ContourSet | None]:
    """Uniform-source binary-lens magnification.

    Args:
        s: Lens separation
        q: Mass ratio m2/m1
        y1: Source center along the lens axis
        y2: Source center perpendicular to the lens axis
        rho: Source radius
        accuracy: Absolute goal (engine tolerance if None)
        engine: Engine to use (default engine if None)
        return_contours: Also return the traced image contours

    Returns:
        Magnification, or (magnification, contours) when requested
    """
    result = (engine or default_engine()).uniform_source(
        s, q, y1, y2, rho, accuracy=accuracy, return_contours=return_contours
    )
    if return_contours:
        return result.magnification, result.contours
    return result.magnification


def limb_darkened_magnification(
    s: float,
    q: float,
    y1: float,
    y2: float,
    rho: float,
    engine: MagnificationEngine | None = None,
) -> float:
    """Limb-darkened binary-lens magnification using the engine profile."""
    return (engine or default_engine()).limb_darkened(s, q, y1, y2, rho).magnification


def adaptive_magnification(
    s: float,
    q: float,
    y1: float,
    y2: float,
    rho: float,
    engine: MagnificationEngine | None = None,
) -> float:
    """Binary-lens magnification with the full staged evaluation."""
    return (engine or default_engine()).adaptive(s, q, y1, y2, rho).magnification


def multi_wavelength_magnification(
    s: float,
    q: float,
    y1: float,
    y2: float,
    rho: float,
    coefficients: Sequence[BandCoefficients],
    accuracy: float | None = None,
    engine: MagnificationEngine | None = None,
) -> list[float]:
    """Limb-darkened magnifications for several bands sharing contours."""
    results = (engine or default_engine()).multi_band(
        s, q, y1, y2, rho, coefficients, accuracy=accuracy
    )
    return [r.magnification for r in results]


def configure_limb_darkening_profile(
    kind: LimbDarkeningKind | str | BrightnessFunction,
    a1: float = 0.0,
    a2: float = 0.0,
    resolution: int | None = None,
    engine: MagnificationEngine | None = None,
) -> MagnificationEngine:
    """Engine with the requested limb-darkening profile.

    Returns:
        New engine; the one passed in is unchanged
    """
    return (engine or default_engine()).with_limb_darkening(kind, a1, a2, resolution)


def load_single_point_lens_table(path: Path | str) -> ESPLTable:
    """Load a single-lens table (cached per process)."""
    return load_espl_table(path)
