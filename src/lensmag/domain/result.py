"""Evaluation outcomes.

This module defines what an evaluation hands back to the caller:
- QualityFlag: Recoverable numerical issues met on the way
- EvaluationStage: Where the staged evaluation stopped
- Annulus: One ring of the limb-darkening decomposition
- MagnificationResult: The magnification plus its diagnostics
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lensmag.domain.contour import ContourSet


class QualityFlag(Flag):
    """Reduced-accuracy markers attached to a result.

    An empty flag (QualityFlag(0)) means the result met every goal.
    """

    ROOT_NONCONVERGENCE = auto()
    CONTOUR_DISCONTINUITY = auto()
    TABLE_DOMAIN_EXCEEDED = auto()
    TOLERANCE_UNREACHABLE = auto()


NO_FLAGS = QualityFlag(0)


class EvaluationStage(Enum):
    """Stage of the finite-source state machine that produced a value."""

    POINT_SOURCE = "point_source"
    QUADRUPOLE_TEST = "quadrupole_test"
    ACCEPT = "accept"
    FULL_CONTOUR = "full_contour"
    ANNULUS_LOOP = "annulus_loop"
    CONVERGED = "converged"


@dataclass(frozen=True, slots=True)
class Annulus:
    """A ring of the source disk.

    Attributes:
        radius: Outer radius of the ring
        flux: Cumulative flux fraction inside the outer radius
        disk_magnification: Magnification of the uniform disk of this radius
        ring_magnification: Mean magnification of the ring itself
        error: Estimated limb-darkening error carried by this ring
    """

    radius: float
    flux: float
    disk_magnification: float
    ring_magnification: float
    error: float = 0.0


@dataclass(frozen=True, slots=True)
class MagnificationResult:
    """Magnification with diagnostics.

    Attributes:
        magnification: Best magnification estimate
        stage: Stage that produced the value
        flags: Reduced-accuracy markers
        annuli: Number of annuli used (0 for point-like evaluations)
        points: Number of source-boundary samples (or point evaluations)
        centroid: Flux-weighted image centroid, when astrometry is enabled
        contours: Image boundaries of the outer disk, when requested
        annulus_list: Final annulus decomposition, when one was built
    """

    magnification: float
    stage: EvaluationStage
    flags: QualityFlag = NO_FLAGS
    annuli: int = 0
    points: int = 0
    centroid: complex | None = None
    contours: ContourSet | None = None
    annulus_list: tuple[Annulus, ...] = field(default_factory=tuple)

    @property
    def is_reliable(self) -> bool:
        """Check whether no quality flag was raised."""
        return self.flags == NO_FLAGS

    def astrometric_shift(self, y1: float, y2: float) -> tuple[float, float] | None:
        """Centroid offset from the source center.

        Args:
            y1: Source center along the lens axis
            y2: Source center perpendicular to the lens axis

        Returns:
            (dx1, dx2) or None when no centroid was computed
        """
        if self.centroid is None:
            return None
        return (self.centroid.real - y1, self.centroid.imag - y2)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the scalar part of the result.

        Returns:
            Dictionary suitable for JSON output
        """
        data: dict[str, Any] = {
            "magnification": self.magnification,
            "stage": self.stage.value,
            "flags": [flag.name for flag in QualityFlag if flag in self.flags],
            "annuli": self.annuli,
            "points": self.points,
        }
        if self.centroid is not None:
            data["centroid"] = [self.centroid.real, self.centroid.imag]
        return data
