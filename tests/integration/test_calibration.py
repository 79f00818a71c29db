"""Integration tests against published reference magnifications.

The reference case is a planetary lens with s=0.8, q=0.1 and a source of
radius 0.01 centered at (0.01, 0.01), inside the central caustic.
"""

import math

import pytest

from lensmag import MagnificationEngine
from lensmag.api import (
    adaptive_magnification,
    configure_limb_darkening_profile,
    limb_darkened_magnification,
    multi_wavelength_magnification,
    point_source_magnification,
    uniform_source_magnification,
)
from lensmag.config import LimbDarkeningKind
from lensmag.domain import ContourSet, EvaluationStage, QualityFlag

S, Q, Y1, Y2, RHO = 0.8, 0.1, 0.01, 0.01, 0.01


def square_root_law(x: float) -> float:
    """Square-root law with a1=0.51, a2=0.3 as a function of x = r / rho."""
    mu = math.sqrt(max(0.0, 1.0 - x * x))
    return 1.0 - 0.51 * (1.0 - mu) - 0.3 * (1.0 - math.sqrt(mu))


@pytest.fixture(scope="module")
def engine() -> MagnificationEngine:
    """Engine with default settings."""
    return MagnificationEngine()


class TestUniformSource:
    """Tests for uniform-source reference values."""

    def test_point_source(self, engine: MagnificationEngine) -> None:
        """Test the point-source value."""
        result = engine.point_source(S, Q, Y1, Y2)
        assert result.magnification == pytest.approx(18.18, abs=0.01)
        assert result.stage is EvaluationStage.POINT_SOURCE

    @pytest.mark.parametrize(
        ("tol", "expected", "margin"),
        [(1e-2, 18.28, 2e-2), (1e-3, 18.283, 3e-3), (1e-4, 18.2833, 5e-4)],
    )
    def test_absolute_tolerance(
        self, engine: MagnificationEngine, tol: float, expected: float, margin: float
    ) -> None:
        """Test the adaptive value at decreasing absolute goals."""
        result = engine.with_tolerance(tol=tol).adaptive(S, Q, Y1, Y2, RHO)
        assert result.magnification == pytest.approx(expected, abs=margin)
        assert result.stage is EvaluationStage.CONVERGED
        assert QualityFlag.TOLERANCE_UNREACHABLE not in result.flags

    def test_relative_tolerance(self, engine: MagnificationEngine) -> None:
        """Test that a loose relative goal gives a coarse but sane value."""
        loose = engine.with_tolerance(tol=1.0, rel_tol=0.1).adaptive(S, Q, Y1, Y2, RHO)
        tight = engine.with_tolerance(tol=1e-2).adaptive(S, Q, Y1, Y2, RHO)
        assert loose.magnification == pytest.approx(18.28, rel=0.1)
        assert loose.points <= tight.points

    def test_full_contour_matches_adaptive(self, engine: MagnificationEngine) -> None:
        """Test that a uniform adaptive call is one traced disk."""
        tight = engine.with_tolerance(tol=1e-3)
        uniform = tight.uniform_source(S, Q, Y1, Y2, RHO)
        adaptive = tight.adaptive(S, Q, Y1, Y2, RHO)
        assert uniform.stage is EvaluationStage.FULL_CONTOUR
        assert uniform.magnification == pytest.approx(adaptive.magnification, abs=2e-3)

    def test_small_source_tends_to_point_source(self, engine: MagnificationEngine) -> None:
        """Test convergence to the point source away from caustics."""
        point = engine.point_source(1.0, 0.1, 0.6, 0.7).magnification
        for rho in (1e-2, 1e-3, 1e-4):
            value = engine.adaptive(1.0, 0.1, 0.6, 0.7, rho).magnification
            assert value == pytest.approx(point, abs=1e-2)
        assert point >= 1.0


class TestAstrometry:
    """Tests for image centroids."""

    def test_centroid_shift(self, engine: MagnificationEngine) -> None:
        """Test the reference astrometric shift."""
        result = engine.with_astrometry().adaptive(S, Q, Y1, Y2, RHO)
        assert result.centroid is not None
        shift = result.centroid - complex(Y1, Y2)
        assert shift.real == pytest.approx(-0.1645, abs=5e-3)
        assert shift.imag == pytest.approx(-0.0743, abs=5e-3)

    def test_off_by_default(self, engine: MagnificationEngine) -> None:
        """Test that centroids are only computed on request."""
        assert engine.adaptive(S, Q, Y1, Y2, RHO).centroid is None

    def test_point_source_centroid(self, engine: MagnificationEngine) -> None:
        """Test that the point-source centroid is close to the finite one."""
        astrometric = engine.with_astrometry()
        point = astrometric.point_source(S, Q, Y1, Y2).centroid
        finite = astrometric.adaptive(S, Q, Y1, Y2, RHO).centroid
        assert point is not None and finite is not None
        assert abs(point - finite) < 0.02


class TestLimbDarkening:
    """Tests for limb-darkened reference values."""

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("linear", 18.2753),
            ("square_root", 18.2712),
            ("quadratic", 18.2709),
            ("logarithmic", 18.2779),
        ],
    )
    def test_laws(self, engine: MagnificationEngine, kind: str, expected: float) -> None:
        """Test each analytic law at a tight goal."""
        a2 = 0.0 if kind == "linear" else 0.3
        darkened = engine.with_limb_darkening(kind, a1=0.51, a2=a2).with_tolerance(tol=1e-4)
        result = darkened.limb_darkened(S, Q, Y1, Y2, RHO)
        assert result.magnification == pytest.approx(expected, abs=3e-3)
        assert result.annuli > 1

    def test_default_tolerance(self, engine: MagnificationEngine) -> None:
        """Test the linear law through the adaptive entry point."""
        result = engine.with_limb_darkening("linear", a1=0.51).adaptive(S, Q, Y1, Y2, RHO)
        assert result.magnification == pytest.approx(18.27, abs=2e-2)
        assert result.stage in (EvaluationStage.CONVERGED, EvaluationStage.ANNULUS_LOOP)

    def test_custom_profile(self, engine: MagnificationEngine) -> None:
        """Test a user-supplied brightness function."""
        darkened = engine.with_limb_darkening(square_root_law).with_tolerance(tol=1e-3)
        assert darkened.profile.kind is LimbDarkeningKind.CUSTOM
        result = darkened.limb_darkened(S, Q, Y1, Y2, RHO)
        assert result.magnification == pytest.approx(18.2712, abs=3e-3)

    def test_zero_coefficient_is_uniform(self, engine: MagnificationEngine) -> None:
        """Test that a1 = 0 reproduces the uniform value."""
        tight = engine.with_tolerance(tol=1e-3)
        uniform = tight.adaptive(S, Q, Y1, Y2, RHO).magnification
        darkened = tight.with_limb_darkening("linear", a1=0.0).limb_darkened(S, Q, Y1, Y2, RHO)
        assert darkened.magnification == pytest.approx(uniform, abs=2e-3)

    def test_contours_on_request(self, engine: MagnificationEngine) -> None:
        """Test that limb-darkened calls can attach the outer contours."""
        result = engine.limb_darkened(S, Q, Y1, Y2, RHO, return_contours=True)
        assert isinstance(result.contours, ContourSet)
        assert result.contours.radius == RHO


class TestMultiBand:
    """Tests for multi-band evaluation."""

    BANDS = [0.2, 0.3, 0.51, 0.6]

    def test_matches_single_band_calls(self, engine: MagnificationEngine) -> None:
        """Test shared contours against one call per band."""
        results = engine.multi_band(S, Q, Y1, Y2, RHO, self.BANDS, accuracy=1e-3)
        assert len(results) == len(self.BANDS)
        for a1, result in zip(self.BANDS, results, strict=True):
            single = (
                engine.with_limb_darkening("linear", a1=a1)
                .with_tolerance(tol=1e-3)
                .limb_darkened(S, Q, Y1, Y2, RHO)
            )
            assert result.magnification == pytest.approx(single.magnification, abs=3e-3)

    def test_darker_limb_lowers_magnification(self, engine: MagnificationEngine) -> None:
        """Test monotonic dependence on the coefficient here."""
        values = [r.magnification for r in engine.multi_band(S, Q, Y1, Y2, RHO, self.BANDS, 1e-3)]
        assert all(b < a for a, b in zip(values[:-1], values[1:], strict=True))

    def test_bands_share_annuli(self, engine: MagnificationEngine) -> None:
        """Test that every band reports the same decomposition size."""
        results = engine.multi_band(S, Q, Y1, Y2, RHO, self.BANDS, accuracy=1e-3)
        assert len({r.annuli for r in results}) == 1

    def test_two_parameter_bands(self, engine: MagnificationEngine) -> None:
        """Test (a1, a2) pairs with a quadratic engine law."""
        quadratic = engine.with_limb_darkening("quadratic", a1=0.51, a2=0.3)
        (result,) = quadratic.multi_band(S, Q, Y1, Y2, RHO, [(0.51, 0.3)], accuracy=1e-3)
        assert result.magnification == pytest.approx(18.2709, abs=3e-3)


class TestFunctionalApi:
    """Tests for the module-level wrappers."""

    def test_point_source(self) -> None:
        """Test the point-source wrapper."""
        assert point_source_magnification(S, Q, Y1, Y2) == pytest.approx(18.18, abs=0.01)

    def test_uniform_with_contours(self) -> None:
        """Test that requested contours come back with the value."""
        value, contours = uniform_source_magnification(S, Q, Y1, Y2, RHO, return_contours=True)
        assert value == pytest.approx(18.28, abs=2e-2)
        assert isinstance(contours, ContourSet)
        assert len(contours) > 0

    def test_adaptive(self) -> None:
        """Test the adaptive wrapper."""
        assert adaptive_magnification(S, Q, Y1, Y2, RHO) == pytest.approx(18.28, abs=2e-2)

    def test_configured_profile(self) -> None:
        """Test wrappers with a configured engine."""
        darkened = configure_limb_darkening_profile("linear", a1=0.51)
        value = limb_darkened_magnification(S, Q, Y1, Y2, RHO, engine=darkened)
        assert value == pytest.approx(18.2753, abs=2e-2)
        values = multi_wavelength_magnification(S, Q, Y1, Y2, RHO, [0.51], engine=darkened)
        assert values[0] == pytest.approx(value, abs=2e-2)


class TestEngineImmutability:
    """Tests for engine cloning."""

    def test_with_methods_leave_original(self, engine: MagnificationEngine) -> None:
        """Test that derived engines do not change their parent."""
        derived = (
            engine.with_tolerance(tol=1e-4, rel_tol=1e-3)
            .with_limb_darkening("quadratic", a1=0.4, a2=0.2)
            .with_astrometry()
        )
        assert engine.settings.tolerance.tol == 1e-2
        assert engine.profile.is_uniform
        assert not engine.settings.astrometry
        assert derived.settings.tolerance.rel_tol == 1e-3
        assert derived.profile.kind is LimbDarkeningKind.QUADRATIC
        assert derived.settings.astrometry

    def test_with_settings_keeps_custom_profile(self, engine: MagnificationEngine) -> None:
        """Test that a custom profile survives a settings change."""
        custom = engine.with_limb_darkening(square_root_law)
        rebuilt = custom.with_settings(custom.settings.model_copy(update={"astrometry": True}))
        assert rebuilt.profile is custom.profile

    def test_shared_statistics(self, engine: MagnificationEngine) -> None:
        """Test that derived engines report to the same statistics."""
        derived = engine.with_tolerance(tol=1e-3)
        before = engine.evaluation_logger.stats.evaluation_count
        derived.point_source(S, Q, Y1, Y2)
        assert engine.evaluation_logger.stats.evaluation_count == before + 1
