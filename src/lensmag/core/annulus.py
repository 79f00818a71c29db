"""Annulus refinement for limb-darkened sources.

A limb-darkened disk is decomposed into rings. With M(r) the magnification
of a uniform disk of radius r and F(r) the cumulative flux fraction, the
limb-darkened magnification is

    sum_i (F_i - F_{i-1}) * (M_i r_i**2 - M_{i-1} r_{i-1}**2) / (r_i**2 - r_{i-1}**2)

Each ring assumes constant brightness, so its error grows with both the
change of magnification and the change of brightness across it. The ring
with the largest estimated error is split at its area midpoint until the
estimate plus the change made by the last split falls below the goal.

The refiner only needs a function that returns M(r) for a radius, so it
serves binary lenses (contour integration) and single lenses (table
lookup) alike. Several profiles can share one set of disks, which is how
multi-band evaluation reuses contours.
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from lensmag.config import ToleranceConfig
from lensmag.core.limb_darkening import LimbDarkeningProfile
from lensmag.domain import Annulus, ContourSet, QualityFlag

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DiskSample:
    """Uniform-disk evaluation at one radius.

    Attributes:
        radius: Disk radius (0 for the point-source limit)
        magnification: Uniform-disk magnification M(r)
        moment: M(r) times the image centroid, when astrometry is on
        flags: Quality flags raised while evaluating
        points: Boundary samples spent
        contours: Image contours, when they were traced
    """

    radius: float
    magnification: float
    moment: complex | None = None
    flags: QualityFlag = QualityFlag(0)
    points: int = 0
    contours: ContourSet | None = None


DiskFunction = Callable[[float, float], DiskSample]


@dataclass(frozen=True, slots=True)
class AnnulusOutcome:
    """Limb-darkened magnification of one profile.

    Attributes:
        magnification: Limb-darkened magnification
        centroid: Flux-weighted image centroid, when moments were available
        annuli: Final ring decomposition
        error: Total estimated error
    """

    magnification: float
    centroid: complex | None
    annuli: tuple[Annulus, ...]
    error: float


@dataclass(frozen=True, slots=True)
class RefinementResult:
    """Outcome of one refinement run over one or more profiles.

    Attributes:
        outcomes: One outcome per profile, in input order
        flags: Union of all quality flags
        points: Boundary samples spent over all disks
        converged: Whether the goal was met before the annulus cap
        outer: Disk sample at the full source radius
    """

    outcomes: tuple[AnnulusOutcome, ...]
    flags: QualityFlag
    points: int
    converged: bool
    outer: DiskSample


def combine_annuli(
    disks: Sequence[DiskSample],
    rho: float,
    profile: LimbDarkeningProfile,
) -> AnnulusOutcome:
    """Combine uniform-disk magnifications into a limb-darkened value.

    Args:
        disks: Disk samples by increasing radius, starting at radius 0
        rho: Source radius
        profile: Brightness law

    Returns:
        AnnulusOutcome with per-ring error estimates
    """
    magnification = 0.0
    moment: complex | None = 0j
    rings = []
    fluxes = []
    flux_prev = 0.0
    for inner, outer in zip(disks[:-1], disks[1:], strict=True):
        flux = profile.cumulative_flux(outer.radius / rho)
        d_flux = flux - flux_prev
        a0 = inner.radius * inner.radius
        a1 = outer.radius * outer.radius
        inner_term = inner.magnification * a0 if a0 > 0.0 else 0.0
        ring = (outer.magnification * a1 - inner_term) / (a1 - a0)
        magnification += d_flux * ring
        if moment is not None and inner.moment is not None and outer.moment is not None:
            inner_moment = inner.moment * a0 if a0 > 0.0 else 0j
            moment += d_flux * (outer.moment * a1 - inner_moment) / (a1 - a0)
        else:
            moment = None
        rings.append(ring)
        fluxes.append((flux, d_flux))
        flux_prev = flux

    total_error = 0.0
    annuli = []
    for i, (inner, outer) in enumerate(zip(disks[:-1], disks[1:], strict=True)):
        flux, d_flux = fluxes[i]
        x0 = inner.radius / rho
        x1 = outer.radius / rho
        contrast = abs(outer.magnification - inner.magnification)
        if inner.radius == 0.0:
            # The point-source limit diverges on caustics.
            contrast = min(contrast, abs(outer.magnification))
        # Neighbouring ring values bound the local magnification swing
        # across a caustic inside the ring.
        for k in (i - 1, i + 1):
            if 0 <= k < len(rings):
                contrast = max(contrast, abs(rings[k] - rings[i]))
        error = 0.0
        mean_intensity = d_flux / (x1 * x1 - x0 * x0)
        if mean_intensity > 0.0:
            d_intensity = abs(profile.intensity(x0) - profile.intensity(x1))
            error = 0.5 * contrast * d_intensity / mean_intensity * d_flux
        total_error += error
        annuli.append(
            Annulus(
                radius=outer.radius,
                flux=flux,
                disk_magnification=outer.magnification,
                ring_magnification=rings[i],
                error=error,
            )
        )

    centroid = None
    if moment is not None and magnification != 0.0:
        centroid = moment / magnification
    return AnnulusOutcome(
        magnification=magnification,
        centroid=centroid,
        annuli=tuple(annuli),
        error=total_error,
    )


class AnnulusRefiner:
    """Adaptive ring decomposition of a limb-darkened source.

    Example:
        refiner = AnnulusRefiner(ToleranceConfig(tol=1e-3))
        result = refiner.refine(disk, rho, center, [profile])
    """

    def __init__(self, tolerance: ToleranceConfig | None = None) -> None:
        """Initialize refiner.

        Args:
            tolerance: Accuracy goals and annulus caps
        """
        self.tolerance = tolerance or ToleranceConfig()

    def disk_accuracy(self, goal: float, rho: float, radius: float) -> float:
        """Magnification goal for an inner disk.

        Inner disks carry less flux, so they can be traced more loosely.
        """
        return 0.5 * goal * (rho * rho) / (radius * radius)

    def refine(
        self,
        disk: DiskFunction,
        rho: float,
        center: DiskSample,
        profiles: Sequence[LimbDarkeningProfile],
        outer: DiskSample | None = None,
    ) -> RefinementResult:
        """Refine annuli until every profile meets the goal.

        Args:
            disk: Returns the uniform-disk sample for (radius, accuracy)
            rho: Source radius
            center: Point-source limit (radius 0)
            profiles: Brightness laws sharing the disks
            outer: Already computed sample at radius rho

        Returns:
            RefinementResult with one outcome per profile
        """
        tol = self.tolerance
        if outer is None:
            outer = disk(rho, tol.goal(center.magnification))
        disks = [center, outer]
        flags = center.flags | outer.flags
        points = center.points + outer.points
        previous: list[float] | None = None
        converged = False

        while True:
            outcomes = [combine_annuli(disks, rho, p) for p in profiles]
            mags = [o.magnification for o in outcomes]
            goal = min(tol.goal(m) for m in mags)
            change = 0.0
            if previous is not None:
                change = max(abs(m - p) for m, p in zip(mags, previous, strict=True))
            error = max(o.error for o in outcomes)
            n = len(disks) - 1

            # A pass counts once the last split confirms the estimate.
            confirmed = previous is not None or error == 0.0
            if n >= tol.min_annuli and confirmed and error + change < goal:
                converged = True
                break
            if n >= tol.max_annuli:
                flags |= QualityFlag.TOLERANCE_UNREACHABLE
                logger.warning(
                    "Annulus cap reached before tolerance",
                    annuli=n,
                    error=error,
                    goal=goal,
                )
                break

            ring_errors = [
                max(o.annuli[i].error for o in outcomes) for i in range(n)
            ]
            if max(ring_errors) > 0.0:
                idx = max(range(n), key=lambda i: ring_errors[i])
            else:
                idx = max(
                    range(n),
                    key=lambda i: disks[i + 1].radius ** 2 - disks[i].radius ** 2,
                )
            r_in = disks[idx].radius
            r_out = disks[idx + 1].radius
            radius = math.sqrt(0.5 * (r_in * r_in + r_out * r_out))
            sample = disk(radius, self.disk_accuracy(goal, rho, radius))
            disks.insert(idx + 1, sample)
            flags |= sample.flags
            points += sample.points
            previous = mags

        logger.debug(
            "Annulus refinement finished",
            annuli=len(disks) - 1,
            points=points,
            converged=converged,
        )
        return RefinementResult(
            outcomes=tuple(outcomes),
            flags=flags,
            points=points,
            converged=converged,
            outer=outer,
        )
