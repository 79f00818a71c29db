"""Tests for domain models to verify they work correctly."""

import math

import pytest

from lensmag.domain import (
    NO_FLAGS,
    Annulus,
    ContourSet,
    Curve,
    EvaluationStage,
    Image,
    ImagePoint,
    LensConfig,
    MagnificationResult,
    QualityFlag,
    SourceConfig,
)
from lensmag.exceptions import InvalidConfigurationError, InvalidLensError, InvalidSourceError


class TestLensConfig:
    """Tests for LensConfig class."""

    def test_masses_sum_to_one(self) -> None:
        """Test that the two masses are fractions of the total."""
        lens = LensConfig(s=0.8, q=0.1)
        assert lens.m1 + lens.m2 == pytest.approx(1.0)
        assert lens.m2 / lens.m1 == pytest.approx(0.1)

    def test_origin_is_center_of_mass(self) -> None:
        """Test lens positions around the center of mass."""
        lens = LensConfig(s=1.5, q=0.3)
        assert lens.m1 * lens.z1 + lens.m2 * lens.z2 == pytest.approx(0.0, abs=1e-15)
        assert lens.z2 - lens.z1 == pytest.approx(1.5)
        assert lens.z1 < 0.0 < lens.z2

    def test_light_and_heavy(self) -> None:
        """Test that the lighter lens is identified for both orderings."""
        small = LensConfig(s=1.0, q=0.2)
        assert small.light == (small.z2, small.m2)
        assert small.heavy == (small.z1, small.m1)

        large = LensConfig(s=1.0, q=5.0)
        assert large.light == (large.z1, large.m1)
        assert large.heavy == (large.z2, large.m2)

    def test_equal_masses_use_second_lens_as_light(self) -> None:
        """Test the tie-break for q == 1."""
        lens = LensConfig(s=1.0, q=1.0)
        assert lens.light[0] == lens.z2

    @pytest.mark.parametrize("s,q", [(0.0, 1.0), (-1.0, 1.0), (1.0, 0.0), (1.0, -0.5)])
    def test_rejects_non_positive(self, s: float, q: float) -> None:
        """Test that non-positive separation or mass ratio is rejected."""
        with pytest.raises(InvalidLensError):
            LensConfig(s=s, q=q)

    def test_rejects_non_finite(self) -> None:
        """Test that NaN and infinity are rejected."""
        with pytest.raises(InvalidLensError):
            LensConfig(s=math.nan, q=1.0)
        with pytest.raises(InvalidLensError):
            LensConfig(s=1.0, q=math.inf)

    def test_error_is_configuration_error(self) -> None:
        """Test that lens errors belong to the configuration hierarchy."""
        with pytest.raises(InvalidConfigurationError) as exc_info:
            LensConfig(s=1.0, q=0.0)
        assert exc_info.value.mass_ratio == 0.0  # type: ignore[attr-defined]

    def test_serialization(self) -> None:
        """Test lens serialization and deserialization."""
        lens = LensConfig(s=0.8, q=0.1)
        assert LensConfig.from_dict(lens.to_dict()) == lens

    def test_immutable(self) -> None:
        """Test that lens is immutable."""
        lens = LensConfig(s=0.8, q=0.1)
        with pytest.raises(AttributeError):
            lens.s = 1.0  # type: ignore


class TestSourceConfig:
    """Tests for SourceConfig class."""

    def test_center(self) -> None:
        """Test complex center."""
        source = SourceConfig(0.1, -0.2, 0.01)
        assert source.center == complex(0.1, -0.2)
        assert not source.is_point

    def test_point_source_default(self) -> None:
        """Test that radius defaults to a point source."""
        assert SourceConfig(0.0, 0.0).is_point

    def test_rejects_negative_radius(self) -> None:
        """Test that negative radius is rejected."""
        with pytest.raises(InvalidSourceError):
            SourceConfig(0.0, 0.0, -0.01)

    def test_rejects_non_finite_position(self) -> None:
        """Test that non-finite positions are rejected."""
        with pytest.raises(InvalidSourceError):
            SourceConfig(math.nan, 0.0, 0.01)

    def test_serialization(self) -> None:
        """Test source serialization and deserialization."""
        source = SourceConfig(0.01, 0.02, 0.003)
        assert SourceConfig.from_dict(source.to_dict()) == source
        assert SourceConfig.from_dict({"y1": 1, "y2": 2}).rho == 0.0


class TestImage:
    """Tests for Image class."""

    def test_parity(self) -> None:
        """Test parity follows the Jacobian sign."""
        assert Image(z=1j, jacobian=0.5, residual=0.0).parity == 1
        assert Image(z=1j, jacobian=-0.5, residual=0.0).parity == -1


class TestImagePoint:
    """Tests for ImagePoint class."""

    def test_to_tuple(self) -> None:
        """Test point to tuple conversion."""
        assert ImagePoint(z=complex(1.5, -2.0)).to_tuple() == (1.5, -2.0)

    def test_serialization(self) -> None:
        """Test point serialization and deserialization."""
        p1 = ImagePoint(z=complex(0.3, 0.4), jacobian=-2.0, theta=1.25, dz=complex(0.1, -0.2))
        p2 = ImagePoint.from_dict(p1.to_dict())
        assert p2 == p1
        assert p2.parity == -1

    def test_immutable(self) -> None:
        """Test that point is immutable."""
        p = ImagePoint(z=0j)
        with pytest.raises(AttributeError):
            p.z = 1j  # type: ignore


class TestCurve:
    """Tests for Curve class."""

    def test_positions_and_length(self) -> None:
        """Test positions in traversal order."""
        curve = Curve(points=tuple(ImagePoint(z=complex(k, 0)) for k in range(4)))
        assert len(curve) == 4
        assert curve.positions() == [0j, 1 + 0j, 2 + 0j, 3 + 0j]

    def test_reversed(self) -> None:
        """Test reversed traversal keeps closure."""
        curve = Curve(points=(ImagePoint(z=0j), ImagePoint(z=1j)), closed=False)
        rev = curve.reversed()
        assert rev.positions() == [1j, 0j]
        assert rev.closed is False

    def test_serialization(self) -> None:
        """Test curve serialization and deserialization."""
        curve = Curve(points=(ImagePoint(z=0j, theta=0.1), ImagePoint(z=1j, theta=0.2)))
        assert Curve.from_dict(curve.to_dict()) == curve


class TestContourSet:
    """Tests for ContourSet class."""

    def test_iteration_and_counts(self) -> None:
        """Test iteration over curves and point totals."""
        a = Curve(points=(ImagePoint(z=0j), ImagePoint(z=1j), ImagePoint(z=1 + 0j)))
        b = Curve(points=(ImagePoint(z=2j), ImagePoint(z=3j)))
        contours = ContourSet(curves=(a, b), radius=0.1, sample_count=7)
        assert len(contours) == 2
        assert list(contours) == [a, b]
        assert contours.total_points == 5

    def test_to_dict_lists_flag_names(self) -> None:
        """Test flag names in serialized output."""
        contours = ContourSet(flags=QualityFlag.CONTOUR_DISCONTINUITY)
        assert contours.to_dict()["flags"] == ["CONTOUR_DISCONTINUITY"]


class TestQualityFlag:
    """Tests for QualityFlag combinations."""

    def test_flags_combine(self) -> None:
        """Test that flags combine and test independently."""
        flags = QualityFlag.ROOT_NONCONVERGENCE | QualityFlag.TOLERANCE_UNREACHABLE
        assert QualityFlag.ROOT_NONCONVERGENCE in flags
        assert QualityFlag.TABLE_DOMAIN_EXCEEDED not in flags
        assert NO_FLAGS == QualityFlag(0)
        assert not NO_FLAGS


class TestMagnificationResult:
    """Tests for MagnificationResult class."""

    def test_reliable_without_flags(self) -> None:
        """Test reliability follows the flags."""
        ok = MagnificationResult(magnification=2.0, stage=EvaluationStage.ACCEPT)
        bad = MagnificationResult(
            magnification=2.0,
            stage=EvaluationStage.ANNULUS_LOOP,
            flags=QualityFlag.TOLERANCE_UNREACHABLE,
        )
        assert ok.is_reliable
        assert not bad.is_reliable

    def test_astrometric_shift(self) -> None:
        """Test centroid offset from the source center."""
        result = MagnificationResult(
            magnification=3.0,
            stage=EvaluationStage.POINT_SOURCE,
            centroid=complex(0.5, 0.25),
        )
        assert result.astrometric_shift(0.25, 0.25) == pytest.approx((0.25, 0.0))
        no_centroid = MagnificationResult(magnification=3.0, stage=EvaluationStage.POINT_SOURCE)
        assert no_centroid.astrometric_shift(0.0, 0.0) is None

    def test_to_dict(self) -> None:
        """Test scalar serialization."""
        result = MagnificationResult(
            magnification=18.28,
            stage=EvaluationStage.CONVERGED,
            flags=QualityFlag.ROOT_NONCONVERGENCE,
            annuli=3,
            points=412,
            centroid=complex(0.1, 0.2),
            annulus_list=(Annulus(0.01, 1.0, 18.28, 18.3),),
        )
        data = result.to_dict()
        assert data["stage"] == "converged"
        assert data["flags"] == ["ROOT_NONCONVERGENCE"]
        assert data["annuli"] == 3
        assert data["centroid"] == [0.1, 0.2]
        assert "contours" not in data
