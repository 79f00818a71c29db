"""Limb-darkening profiles.

A profile is a tagged variant over the supported brightness laws, written
in terms of mu = sqrt(1 - x**2) with x = r / rho:

- UNIFORM:      I = 1
- LINEAR:       I = 1 - a1 (1 - mu)
- SQUARE_ROOT:  I = 1 - a1 (1 - mu) - a2 (1 - sqrt(mu))
- QUADRATIC:    I = 1 - a1 (1 - mu) - a2 (1 - mu)**2
- LOGARITHMIC:  I = 1 - a1 (1 - mu) - a2 mu ln(mu)
- CUSTOM:       I = f(x), sampled on a uniform mu grid

Every profile exposes the same interface: normalized intensity, cumulative
flux fraction and brightness-weighted mean square radius.
"""

from collections.abc import Callable
from dataclasses import dataclass
from functools import cached_property

import numpy as np
from scipy.integrate import cumulative_trapezoid, trapezoid

from lensmag.config import LimbDarkeningConfig, LimbDarkeningKind
from lensmag.exceptions import InvalidProfileError

# Samples used for moments of the analytic laws.
MOMENT_SAMPLES = 4001

BrightnessFunction = Callable[[float], float]


def _mu_log_mu(mu: np.ndarray) -> np.ndarray:
    safe = np.where(mu > 0.0, mu, 1.0)
    return np.where(mu > 0.0, mu * np.log(safe), 0.0)


@dataclass(frozen=True)
class LimbDarkeningProfile:
    """Radial brightness law of a source disk.

    Attributes:
        kind: Brightness law
        a1: First coefficient
        a2: Second coefficient (two-parameter laws)
        resolution: Grid size for custom profiles
        function: Brightness as a function of x = r / rho (custom only)
    """

    kind: LimbDarkeningKind = LimbDarkeningKind.UNIFORM
    a1: float = 0.0
    a2: float = 0.0
    resolution: int = 1000
    function: BrightnessFunction | None = None

    def __post_init__(self) -> None:
        if self.kind is LimbDarkeningKind.CUSTOM:
            if self.function is None:
                raise InvalidProfileError(self.kind.value, "custom profile needs a brightness function")
            if self.resolution < 16:
                raise InvalidProfileError(self.kind.value, "resolution must be at least 16")
        elif self.function is not None:
            raise InvalidProfileError(self.kind.value, "only custom profiles take a function")
        if not self.total_flux > 0.0:
            raise InvalidProfileError(self.kind.value, "total flux must be positive")
        if self.kind is not LimbDarkeningKind.CUSTOM and self.brightness(np.array([0.0]))[0] < 0.0:
            raise InvalidProfileError(self.kind.value, "brightness is negative at the limb")

    @classmethod
    def from_config(
        cls,
        config: LimbDarkeningConfig,
        function: BrightnessFunction | None = None,
    ) -> "LimbDarkeningProfile":
        """Build a profile from settings.

        Args:
            config: Limb-darkening settings
            function: Brightness function for custom profiles

        Returns:
            New LimbDarkeningProfile
        """
        return cls(
            kind=config.kind,
            a1=config.a1,
            a2=config.a2,
            resolution=config.resolution,
            function=function,
        )

    @property
    def is_uniform(self) -> bool:
        """Check whether the brightness is constant over the disk."""
        if self.kind is LimbDarkeningKind.UNIFORM:
            return True
        if self.kind is LimbDarkeningKind.LINEAR:
            return self.a1 == 0.0
        if self.kind is LimbDarkeningKind.CUSTOM:
            return False
        return self.a1 == 0.0 and self.a2 == 0.0

    def brightness(self, mu: np.ndarray) -> np.ndarray:
        """Unnormalized brightness at viewing-angle cosine mu."""
        mu = np.clip(np.asarray(mu, dtype=float), 0.0, 1.0)
        kind = self.kind
        if kind is LimbDarkeningKind.UNIFORM:
            return np.ones_like(mu)
        if kind is LimbDarkeningKind.CUSTOM:
            return self._custom_table[1](mu)
        value = 1.0 - self.a1 * (1.0 - mu)
        if kind is LimbDarkeningKind.SQUARE_ROOT:
            value = value - self.a2 * (1.0 - np.sqrt(mu))
        elif kind is LimbDarkeningKind.QUADRATIC:
            value = value - self.a2 * (1.0 - mu) ** 2
        elif kind is LimbDarkeningKind.LOGARITHMIC:
            value = value - self.a2 * _mu_log_mu(mu)
        return value

    def _outer_flux(self, mu0: np.ndarray) -> np.ndarray:
        """Integral of I(mu) 2 mu dmu from mu0 to 1 (flux inside x(mu0), over pi)."""
        mu0 = np.clip(np.asarray(mu0, dtype=float), 0.0, 1.0)
        kind = self.kind
        if kind is LimbDarkeningKind.CUSTOM:
            grid, _, cumulative = self._custom_table
            return cumulative[-1] - np.interp(mu0, grid, cumulative)
        base = 1.0 - mu0**2
        linear = base - (2.0 / 3.0) * (1.0 - mu0**3)
        value = base - self.a1 * linear
        if kind is LimbDarkeningKind.UNIFORM:
            return base
        if kind is LimbDarkeningKind.SQUARE_ROOT:
            value = value - self.a2 * (base - 0.8 * (1.0 - mu0**2.5))
        elif kind is LimbDarkeningKind.QUADRATIC:
            value = value - self.a2 * (base - (4.0 / 3.0) * (1.0 - mu0**3) + 0.5 * (1.0 - mu0**4))
        elif kind is LimbDarkeningKind.LOGARITHMIC:
            mu3 = mu0**3
            log_term = np.where(mu0 > 0.0, mu3 * np.log(np.where(mu0 > 0.0, mu0, 1.0)), 0.0)
            value = value - self.a2 * (-(2.0 / 9.0) * (1.0 - mu3) - (2.0 / 3.0) * log_term)
        return value

    @cached_property
    def _custom_table(self) -> tuple[np.ndarray, Callable[[np.ndarray], np.ndarray], np.ndarray]:
        function = self.function
        if function is None:
            raise InvalidProfileError(self.kind.value, "custom profile needs a brightness function")
        grid = np.linspace(0.0, 1.0, self.resolution)
        radii = np.sqrt(1.0 - grid**2)
        samples = np.array([float(function(float(x))) for x in radii])
        if not np.all(np.isfinite(samples)):
            raise InvalidProfileError(self.kind.value, "brightness function returned non-finite values")
        cumulative = cumulative_trapezoid(samples * 2.0 * grid, grid, initial=0.0)

        def sampled(mu: np.ndarray) -> np.ndarray:
            return np.interp(mu, grid, samples)

        return grid, sampled, cumulative

    @cached_property
    def total_flux(self) -> float:
        """Disk flux over pi, for unnormalized brightness."""
        return float(self._outer_flux(np.array([0.0]))[0])

    def intensity(self, x: float) -> float:
        """Brightness at radius x = r / rho, normalized to unit total flux."""
        mu = np.sqrt(max(0.0, 1.0 - x * x))
        return float(self.brightness(np.array([mu]))[0]) / self.total_flux

    def cumulative_flux(self, x: float) -> float:
        """Fraction of the total flux within radius x = r / rho."""
        if x <= 0.0:
            return 0.0
        if x >= 1.0:
            return 1.0
        mu0 = np.sqrt(1.0 - x * x)
        return float(self._outer_flux(np.array([mu0]))[0]) / self.total_flux

    @cached_property
    def mean_square_radius(self) -> float:
        """Brightness-weighted mean of x**2 over the disk (1/2 when uniform)."""
        if self.is_uniform:
            return 0.5
        mu = np.linspace(0.0, 1.0, MOMENT_SAMPLES)
        weight = self.brightness(mu) * 2.0 * mu
        return float(trapezoid(weight * (1.0 - mu**2), mu) / trapezoid(weight, mu))


UNIFORM_PROFILE = LimbDarkeningProfile()
