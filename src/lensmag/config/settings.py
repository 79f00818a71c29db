"""Configuration settings for lensmag.

Every model is frozen. An engine holds one settings value for its whole
lifetime, and changing configuration means building a new engine.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class LimbDarkeningKind(str, Enum):
    """Radial brightness law of the source disk."""

    UNIFORM = "uniform"
    LINEAR = "linear"
    SQUARE_ROOT = "square_root"
    QUADRATIC = "quadratic"
    LOGARITHMIC = "logarithmic"
    CUSTOM = "custom"


class ToleranceConfig(BaseModel):
    """Accuracy goals for finite-source evaluation.

    Computation stops as soon as either the absolute or the relative goal is
    met. A relative tolerance of zero disables the relative goal.
    """

    model_config = ConfigDict(frozen=True)

    tol: float = Field(
        default=1e-2,
        gt=0.0,
        le=1.0,
        description="Absolute accuracy goal on the magnification",
    )
    rel_tol: float = Field(
        default=0.0,
        ge=0.0,
        lt=1.0,
        description="Relative accuracy goal on the magnification (0 disables)",
    )
    min_annuli: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Minimum number of annuli in the limb-darkening loop",
    )
    max_annuli: int = Field(
        default=64,
        ge=1,
        le=1000,
        description="Hard cap on annuli before giving up on the goal",
    )

    def goal(self, magnification: float) -> float:
        """Effective absolute goal for a magnification of the given size.

        Args:
            magnification: Current best magnification estimate

        Returns:
            The looser of the absolute and relative goals
        """
        return max(self.tol, self.rel_tol * abs(magnification))


class RootSolverConfig(BaseModel):
    """Configuration for the Laguerre polynomial solver."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(
        default=80,
        ge=10,
        le=10_000,
        description="Iteration cap per root before reporting non-convergence",
    )
    cycle_length: int = Field(
        default=10,
        ge=2,
        le=100,
        description="Take a fractional step every this many iterations to break limit cycles",
    )
    polish: bool = Field(
        default=True,
        description="Polish deflated roots on the full polynomial",
    )


class ImageConfig(BaseModel):
    """Configuration for separating true images from spurious roots."""

    model_config = ConfigDict(frozen=True)

    image_tolerance: float = Field(
        default=1e-6,
        gt=0.0,
        le=1e-2,
        description="Lens-equation residual below which the fourth and fifth roots are images",
    )
    jacobian_floor: float = Field(
        default=1e-12,
        gt=0.0,
        le=1e-3,
        description="Smallest |J| used when inverting the Jacobian",
    )


class ContourConfig(BaseModel):
    """Configuration for image-boundary tracing."""

    model_config = ConfigDict(frozen=True)

    initial_samples: int = Field(
        default=32,
        ge=8,
        le=4096,
        description="Equally spaced source-boundary samples before refinement",
    )
    max_depth: int = Field(
        default=24,
        ge=1,
        le=50,
        description="Maximum bisections of one initial angular interval",
    )
    max_points: int = Field(
        default=20_000,
        ge=64,
        le=1_000_000,
        description="Maximum boundary samples per contour",
    )
    jump_factor: float = Field(
        default=3.0,
        ge=1.0,
        le=100.0,
        description="Split when a matched image moves further than this times |dz/dtheta| dtheta",
    )


class QuadrupoleConfig(BaseModel):
    """Constants of the quadrupole shortcut test."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        default=True,
        description="Try the quadrupole shortcut before tracing contours",
    )
    quadrupole_factor: float = Field(
        default=6.0,
        gt=0.0,
        description="Safety factor on the quadrupole and higher-order terms",
    )
    ring_factor: float = Field(
        default=2.0,
        gt=0.0,
        description="Radius of the ghost-image ring in units of the source radius",
    )
    ring_points: int = Field(
        default=8,
        ge=4,
        le=64,
        description="Number of points on the ghost-image ring",
    )
    planetary_factor: float = Field(
        default=2.0,
        gt=0.0,
        description="Safety factor on the planetary-caustic distance",
    )
    planetary_mass_ratio: float = Field(
        default=0.01,
        gt=0.0,
        le=1.0,
        description="Mass ratios below this get the planetary-caustic test",
    )


class LimbDarkeningConfig(BaseModel):
    """Limb-darkening law and its coefficients."""

    model_config = ConfigDict(frozen=True)

    kind: LimbDarkeningKind = Field(
        default=LimbDarkeningKind.UNIFORM,
        description="Brightness law",
    )
    a1: float = Field(
        default=0.0,
        ge=-1.0,
        le=2.0,
        description="First limb-darkening coefficient",
    )
    a2: float = Field(
        default=0.0,
        ge=-2.0,
        le=2.0,
        description="Second limb-darkening coefficient (two-parameter laws only)",
    )
    resolution: int = Field(
        default=1000,
        ge=16,
        le=1_000_000,
        description="Grid points used to tabulate a custom profile",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    log_file: Path | None = Field(
        default=None,
        description="Path to log file",
    )
    log_level: str = Field(
        default="WARNING",
        description="Console log level",
    )
    file_log_level: str = Field(
        default="DEBUG",
        description="File log level (more verbose)",
    )


class LensMagSettings(BaseModel):
    """Main engine settings."""

    model_config = ConfigDict(frozen=True)

    tolerance: ToleranceConfig = Field(default_factory=ToleranceConfig)
    roots: RootSolverConfig = Field(default_factory=RootSolverConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    contour: ContourConfig = Field(default_factory=ContourConfig)
    quadrupole: QuadrupoleConfig = Field(default_factory=QuadrupoleConfig)
    limb_darkening: LimbDarkeningConfig = Field(default_factory=LimbDarkeningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    astrometry: bool = Field(
        default=False,
        description="Also compute the flux-weighted image centroid",
    )


def get_default_settings() -> LensMagSettings:
    """Get default engine settings."""
    return LensMagSettings()
