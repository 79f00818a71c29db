"""Unit tests for limb-darkening profiles."""

import math

import numpy as np
import pytest
from scipy.integrate import quad

from lensmag.config import LimbDarkeningConfig, LimbDarkeningKind
from lensmag.core.limb_darkening import UNIFORM_PROFILE, LimbDarkeningProfile
from lensmag.exceptions import InvalidProfileError

ANALYTIC_LAWS = [
    LimbDarkeningProfile(LimbDarkeningKind.LINEAR, a1=0.51),
    LimbDarkeningProfile(LimbDarkeningKind.SQUARE_ROOT, a1=0.51, a2=0.3),
    LimbDarkeningProfile(LimbDarkeningKind.QUADRATIC, a1=0.51, a2=0.3),
    LimbDarkeningProfile(LimbDarkeningKind.LOGARITHMIC, a1=0.51, a2=0.3),
]


def square_root_law(x: float) -> float:
    """Square-root law with a1=0.51, a2=0.3 as a function of x = r / rho."""
    mu = math.sqrt(max(0.0, 1.0 - x * x))
    return 1.0 - 0.51 * (1.0 - mu) - 0.3 * (1.0 - math.sqrt(mu))


def numeric_cumulative(profile: LimbDarkeningProfile, x: float) -> float:
    """Flux inside x by direct integration over the disk."""

    def integrand(r: float) -> float:
        mu = math.sqrt(max(0.0, 1.0 - r * r))
        return float(profile.brightness(np.array([mu]))[0]) * 2.0 * r

    inside, _ = quad(integrand, 0.0, x, limit=200)
    total, _ = quad(integrand, 0.0, 1.0, limit=200)
    return inside / total


class TestUniformProfile:
    """Tests for the uniform profile."""

    def test_cumulative_is_area_fraction(self) -> None:
        """Test that uniform flux grows like x^2."""
        for x in (0.1, 0.5, 0.9):
            assert UNIFORM_PROFILE.cumulative_flux(x) == pytest.approx(x * x)

    def test_intensity_normalized(self) -> None:
        """Test unit total flux over pi."""
        assert UNIFORM_PROFILE.intensity(0.3) == pytest.approx(1.0)

    def test_mean_square_radius(self) -> None:
        """Test <x^2> of a uniform disk."""
        assert UNIFORM_PROFILE.mean_square_radius == 0.5
        assert UNIFORM_PROFILE.is_uniform


class TestAnalyticLaws:
    """Tests for the closed-form laws."""

    @pytest.mark.parametrize("profile", ANALYTIC_LAWS, ids=lambda p: p.kind.value)
    def test_limits(self, profile: LimbDarkeningProfile) -> None:
        """Test cumulative flux at the center and the limb."""
        assert profile.cumulative_flux(0.0) == 0.0
        assert profile.cumulative_flux(1.0) == 1.0
        assert profile.cumulative_flux(-1.0) == 0.0
        assert profile.cumulative_flux(2.0) == 1.0

    @pytest.mark.parametrize("profile", ANALYTIC_LAWS, ids=lambda p: p.kind.value)
    def test_monotonic(self, profile: LimbDarkeningProfile) -> None:
        """Test that cumulative flux increases with radius."""
        values = [profile.cumulative_flux(x) for x in np.linspace(0.0, 1.0, 51)]
        assert all(b > a for a, b in zip(values[:-1], values[1:], strict=True))

    @pytest.mark.parametrize("profile", ANALYTIC_LAWS, ids=lambda p: p.kind.value)
    def test_matches_numeric_integral(self, profile: LimbDarkeningProfile) -> None:
        """Test closed forms against quadrature."""
        for x in (0.25, 0.6, 0.95):
            assert profile.cumulative_flux(x) == pytest.approx(
                numeric_cumulative(profile, x), rel=1e-7
            )

    @pytest.mark.parametrize("profile", ANALYTIC_LAWS, ids=lambda p: p.kind.value)
    def test_limb_darker_than_center(self, profile: LimbDarkeningProfile) -> None:
        """Test that positive coefficients darken the limb."""
        assert profile.intensity(0.99) < profile.intensity(0.0)

    def test_linear_mean_square_radius(self) -> None:
        """Test <x^2> for linear a1 = 0.51, (1/2 - 7 a1 / 30) / (1 - a1 / 3)."""
        profile = LimbDarkeningProfile(LimbDarkeningKind.LINEAR, a1=0.51)
        expected = (0.5 - 7.0 * 0.51 / 30.0) / (1.0 - 0.51 / 3.0)
        assert profile.mean_square_radius == pytest.approx(expected, rel=1e-5)

    def test_linear_total_flux(self) -> None:
        """Test total flux 1 - a1 / 3."""
        profile = LimbDarkeningProfile(LimbDarkeningKind.LINEAR, a1=0.6)
        assert profile.total_flux == pytest.approx(0.8)

    @pytest.mark.parametrize(
        "kind",
        [
            LimbDarkeningKind.LINEAR,
            LimbDarkeningKind.SQUARE_ROOT,
            LimbDarkeningKind.QUADRATIC,
            LimbDarkeningKind.LOGARITHMIC,
        ],
    )
    def test_zero_coefficients_are_uniform(self, kind: LimbDarkeningKind) -> None:
        """Test that every law reduces to the uniform disk."""
        profile = LimbDarkeningProfile(kind)
        assert profile.is_uniform
        assert profile.cumulative_flux(0.5) == pytest.approx(0.25)

    def test_from_config(self) -> None:
        """Test building a profile from settings."""
        config = LimbDarkeningConfig(kind=LimbDarkeningKind.QUADRATIC, a1=0.4, a2=0.2)
        profile = LimbDarkeningProfile.from_config(config)
        assert profile.kind is LimbDarkeningKind.QUADRATIC
        assert (profile.a1, profile.a2) == (0.4, 0.2)
        assert not profile.is_uniform


class TestCustomProfile:
    """Tests for sampled custom profiles."""

    def test_matches_square_root_law(self) -> None:
        """Test that a sampled square-root law reproduces the closed form."""
        custom = LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, function=square_root_law)
        exact = LimbDarkeningProfile(LimbDarkeningKind.SQUARE_ROOT, a1=0.51, a2=0.3)
        for x in (0.2, 0.5, 0.8, 0.99):
            assert custom.cumulative_flux(x) == pytest.approx(exact.cumulative_flux(x), abs=2e-4)
        assert custom.mean_square_radius == pytest.approx(exact.mean_square_radius, abs=2e-4)

    def test_custom_is_never_uniform(self) -> None:
        """Test that custom profiles always go through annuli."""
        custom = LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, function=lambda x: 1.0)
        assert not custom.is_uniform
        assert custom.cumulative_flux(0.5) == pytest.approx(0.25, abs=1e-6)

    def test_resolution(self) -> None:
        """Test that a finer grid reduces the sampling error."""
        exact = LimbDarkeningProfile(LimbDarkeningKind.SQUARE_ROOT, a1=0.51, a2=0.3)
        coarse = LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, resolution=50, function=square_root_law)
        fine = LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, resolution=5000, function=square_root_law)
        x = 0.7
        target = exact.cumulative_flux(x)
        assert abs(fine.cumulative_flux(x) - target) < abs(coarse.cumulative_flux(x) - target)


class TestProfileValidation:
    """Tests for rejected profiles."""

    def test_custom_needs_function(self) -> None:
        """Test that a custom profile without a function is rejected."""
        with pytest.raises(InvalidProfileError):
            LimbDarkeningProfile(LimbDarkeningKind.CUSTOM)

    def test_function_only_for_custom(self) -> None:
        """Test that analytic laws do not take a function."""
        with pytest.raises(InvalidProfileError):
            LimbDarkeningProfile(LimbDarkeningKind.LINEAR, a1=0.5, function=lambda x: 1.0)

    def test_negative_limb(self) -> None:
        """Test that a law that goes negative at the limb is rejected."""
        with pytest.raises(InvalidProfileError) as exc_info:
            LimbDarkeningProfile(LimbDarkeningKind.LINEAR, a1=1.5)
        assert exc_info.value.kind == "linear"

    def test_non_finite_custom(self) -> None:
        """Test that a custom function returning NaN is rejected."""
        with pytest.raises(InvalidProfileError):
            LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, function=lambda x: math.nan)

    def test_small_resolution(self) -> None:
        """Test that a too coarse custom grid is rejected."""
        with pytest.raises(InvalidProfileError):
            LimbDarkeningProfile(LimbDarkeningKind.CUSTOM, resolution=4, function=lambda x: 1.0)
