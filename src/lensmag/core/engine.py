"""Magnification engine.

The engine runs the staged evaluation for one call at a time:

    POINT_SOURCE -> QUADRUPOLE_TEST -> ACCEPT
                                    -> FULL_CONTOUR -> ANNULUS_LOOP -> CONVERGED

Engines are immutable. Settings, the limb-darkening profile and the
single-lens table are fixed at construction, and the with_* methods return
new engines. All scratch state lives inside a call.
"""

import cmath
import math
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from lensmag.config import LensMagSettings, LimbDarkeningKind, get_default_settings
from lensmag.core.annulus import AnnulusRefiner, DiskFunction, DiskSample, RefinementResult
from lensmag.core.espl import (
    ESPLTable,
    load_espl_table,
    point_lens_magnification,
    point_lens_quadrupole,
)
from lensmag.core.integrator import ContourIntegrator
from lensmag.core.lens_equation import ImageSolution, LensEquationSolver
from lensmag.core.limb_darkening import BrightnessFunction, LimbDarkeningProfile
from lensmag.core.tracer import ContourTracer
from lensmag.domain import (
    ContourSet,
    EvaluationStage,
    LensConfig,
    MagnificationResult,
    QualityFlag,
    SourceConfig,
)
from lensmag.exceptions import InvalidConfigurationError, InvalidSourceError, TableNotLoadedError
from lensmag.utils import EvaluationLogger

# Re-trace the outer disk at most this many times while the relative goal tightens.
MAX_GOAL_UPDATES = 3

BandCoefficients = float | tuple[float, float]


class MagnificationEngine:
    """Evaluates binary-lens and single-lens magnifications.

    Example:
        engine = MagnificationEngine().with_limb_darkening("linear", a1=0.51)
        result = engine.adaptive(s=0.8, q=0.1, y1=0.01, y2=0.01, rho=0.01)
        print(result.magnification, result.stage)
    """

    def __init__(
        self,
        settings: LensMagSettings | None = None,
        profile: LimbDarkeningProfile | None = None,
        table: ESPLTable | None = None,
        evaluation_logger: EvaluationLogger | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            settings: Engine settings (defaults if None)
            profile: Limb-darkening profile (built from settings if None)
            table: Single-lens lookup table
            evaluation_logger: Statistics collector (a fresh one if None)
        """
        self.settings = settings or get_default_settings()
        self.profile = profile or LimbDarkeningProfile.from_config(self.settings.limb_darkening)
        self.table = table
        self.evaluation_logger = evaluation_logger or EvaluationLogger()
        self._integrator = ContourIntegrator()
        self._refiner = AnnulusRefiner(self.settings.tolerance)

    # ------------------------------------------------------------------
    # Cloning
    # ------------------------------------------------------------------

    def with_settings(self, settings: LensMagSettings) -> "MagnificationEngine":
        """Return an engine with new settings.

        A custom profile is kept; any other profile is rebuilt from the new
        limb-darkening settings.
        """
        profile = self.profile if self.profile.kind is LimbDarkeningKind.CUSTOM else None
        return MagnificationEngine(settings, profile, self.table, self.evaluation_logger)

    def with_tolerance(
        self,
        tol: float | None = None,
        rel_tol: float | None = None,
        min_annuli: int | None = None,
        max_annuli: int | None = None,
    ) -> "MagnificationEngine":
        """Return an engine with different accuracy goals.

        Args:
            tol: Absolute goal
            rel_tol: Relative goal (0 disables)
            min_annuli: Minimum annuli in the limb-darkening loop
            max_annuli: Annulus cap

        Returns:
            New engine
        """
        changes = {
            key: value
            for key, value in {
                "tol": tol,
                "rel_tol": rel_tol,
                "min_annuli": min_annuli,
                "max_annuli": max_annuli,
            }.items()
            if value is not None
        }
        tolerance = self.settings.tolerance.model_validate(
            {**self.settings.tolerance.model_dump(), **changes}
        )
        return MagnificationEngine(
            self.settings.model_copy(update={"tolerance": tolerance}),
            self.profile,
            self.table,
            self.evaluation_logger,
        )

    def with_astrometry(self, enabled: bool = True) -> "MagnificationEngine":
        """Return an engine that also computes image centroids."""
        return MagnificationEngine(
            self.settings.model_copy(update={"astrometry": enabled}),
            self.profile,
            self.table,
            self.evaluation_logger,
        )

    def with_limb_darkening(
        self,
        kind: LimbDarkeningKind | str | BrightnessFunction,
        a1: float = 0.0,
        a2: float = 0.0,
        resolution: int | None = None,
    ) -> "MagnificationEngine":
        """Return an engine with another limb-darkening profile.

        Args:
            kind: Law name, or a brightness function of x = r / rho for a
                custom sampled profile
            a1: First coefficient
            a2: Second coefficient
            resolution: Grid size for custom profiles

        Returns:
            New engine
        """
        cfg = self.settings.limb_darkening
        function = None
        if callable(kind):
            function = kind
            law = LimbDarkeningKind.CUSTOM
        else:
            law = LimbDarkeningKind(kind)
        updated = cfg.model_validate(
            {
                "kind": law,
                "a1": a1,
                "a2": a2,
                "resolution": resolution if resolution is not None else cfg.resolution,
            }
        )
        settings = self.settings.model_copy(update={"limb_darkening": updated})
        profile = LimbDarkeningProfile.from_config(updated, function)
        return MagnificationEngine(settings, profile, self.table, self.evaluation_logger)

    def with_espl_table(self, path: Path | str) -> "MagnificationEngine":
        """Return an engine that uses the single-lens table at path."""
        return MagnificationEngine(
            self.settings,
            self.profile,
            load_espl_table(path),
            self.evaluation_logger,
        )

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def _solver(self, lens: LensConfig) -> LensEquationSolver:
        return LensEquationSolver(lens, self.settings.roots, self.settings.images)

    def _finish(self, kind: str, result: MagnificationResult, start: float) -> MagnificationResult:
        duration_ms = (time.perf_counter() - start) * 1000
        self.evaluation_logger.log_evaluation_complete(kind, result, duration_ms)
        return result

    @staticmethod
    def _finite_source(y1: float, y2: float, rho: float) -> SourceConfig:
        source = SourceConfig(y1, y2, rho)
        if source.is_point:
            raise InvalidSourceError("finite-source evaluation needs rho > 0")
        return source

    def _center_sample(self, sol: ImageSolution) -> DiskSample:
        moment = None
        if self.settings.astrometry:
            moment = sol.magnification * sol.centroid
        return DiskSample(
            radius=0.0,
            magnification=sol.magnification,
            moment=moment,
            flags=sol.flags,
            points=1,
        )

    def _disk_function(self, tracer: ContourTracer, center: complex) -> DiskFunction:
        astrometry = self.settings.astrometry
        integrator = self._integrator

        def disk(radius: float, accuracy: float) -> DiskSample:
            contours = tracer.trace(center, radius, accuracy)
            magnification = integrator.magnification(contours)
            moment = None
            if astrometry:
                centroid = integrator.centroid(contours)
                if centroid is not None:
                    moment = magnification * centroid
            return DiskSample(
                radius=radius,
                magnification=magnification,
                moment=moment,
                flags=contours.flags,
                points=contours.sample_count,
                contours=contours,
            )

        return disk

    def _outer_disk(self, disk: DiskFunction, rho: float, estimate: float) -> DiskSample:
        """Trace the full disk, tightening the goal as the estimate improves.

        Args:
            disk: Uniform-disk evaluator
            rho: Source radius
            estimate: Starting magnification estimate (point source)

        Returns:
            Disk sample at radius rho, with points summed over all passes
        """
        tol = self.settings.tolerance
        accuracy = tol.goal(estimate)
        sample = disk(rho, accuracy)
        points = sample.points
        for _ in range(MAX_GOAL_UPDATES):
            tighter = tol.goal(sample.magnification)
            if tighter >= 0.5 * accuracy:
                break
            accuracy = tighter
            sample = disk(rho, accuracy)
            points += sample.points
        return DiskSample(
            radius=sample.radius,
            magnification=sample.magnification,
            moment=sample.moment,
            flags=sample.flags,
            points=points,
            contours=sample.contours,
        )

    def _quadrupole(
        self,
        solver: LensEquationSolver,
        sol: ImageSolution,
        rho: float,
    ) -> tuple[float, float]:
        """Quadrupole correction and its error proxy.

        Returns:
            Tuple of (correction, sum of |quadrupole| and higher-order terms)
        """
        rho_eff2 = 2.0 * self.profile.mean_square_radius * rho * rho
        correction = 0.0
        size = 0.0
        for img in sol.images:
            k0, k1, k2 = solver.kappa_derivatives(img.z)
            jac = img.jacobian
            kb = k0.conjugate()
            kb2 = kb * kb
            k1sq = k1 * k1
            lead = kb2 * kb * k1sq
            term = 3.0 * lead - (3.0 - 3.0 * jac + 0.5 * jac * jac) * abs(k1) ** 2 + jac * kb2 * k2
            scale = abs(jac) ** 5
            mu_q = -rho_eff2 * term.real / scale
            mu_c = 6.0 * rho_eff2 * abs(lead.imag) / scale
            correction += mu_q
            size += abs(mu_q) + mu_c
        return correction, size

    def _quadrupole_accepts(
        self,
        solver: LensEquationSolver,
        sol: ImageSolution,
        source: SourceConfig,
        size: float,
    ) -> bool:
        """Check whether the quadrupole shortcut is safe for this source."""
        cfg = self.settings.quadrupole
        goal = self.settings.tolerance.goal(sol.magnification)
        if cfg.quadrupole_factor * size >= goal:
            return False

        count = len(sol.images)
        ring = cfg.ring_factor * source.rho
        for k in range(cfg.ring_points):
            w = source.center + cmath.rect(ring, 2.0 * math.pi * k / cfg.ring_points)
            if solver.image_count(w) != count:
                return False

        lens = solver.lens
        q_eff = min(lens.q, 1.0 / lens.q)
        if q_eff < cfg.planetary_mass_ratio:
            heavy, _ = lens.heavy
            light, _ = lens.light
            direction = 1.0 if light > heavy else -1.0
            caustic = heavy + (lens.s - 1.0 / lens.s) * direction
            reach = cfg.planetary_factor * (source.rho**2 + 9.0 * q_eff / lens.s**2)
            if abs(source.center - caustic) ** 2 <= reach:
                return False
        return True

    def _annulus_result(
        self,
        refinement: RefinementResult,
        index: int = 0,
        contours: ContourSet | None = None,
    ) -> MagnificationResult:
        outcome = refinement.outcomes[index]
        stage = EvaluationStage.CONVERGED if refinement.converged else EvaluationStage.ANNULUS_LOOP
        return MagnificationResult(
            magnification=outcome.magnification,
            stage=stage,
            flags=refinement.flags,
            annuli=len(outcome.annuli),
            points=refinement.points,
            centroid=outcome.centroid if self.settings.astrometry else None,
            contours=contours,
            annulus_list=outcome.annuli,
        )

    # ------------------------------------------------------------------
    # Binary lens
    # ------------------------------------------------------------------

    def point_source(self, s: float, q: float, y1: float, y2: float) -> MagnificationResult:
        """Point-source magnification.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            y1: Source position along the lens axis
            y2: Source position perpendicular to the lens axis

        Returns:
            MagnificationResult at stage POINT_SOURCE

        Raises:
            InvalidConfigurationError: If the lens or source is malformed
        """
        start = time.perf_counter()
        lens = LensConfig(s, q)
        source = SourceConfig(y1, y2)
        sol = self._solver(lens).solve(source.center)
        result = MagnificationResult(
            magnification=sol.magnification,
            stage=EvaluationStage.POINT_SOURCE,
            flags=sol.flags,
            points=1,
            centroid=sol.centroid if self.settings.astrometry else None,
        )
        return self._finish("point_source", result, start)

    def uniform_source(
        self,
        s: float,
        q: float,
        y1: float,
        y2: float,
        rho: float,
        accuracy: float | None = None,
        return_contours: bool = False,
    ) -> MagnificationResult:
        """Uniform-source magnification by contour integration.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            y1: Source center along the lens axis
            y2: Source center perpendicular to the lens axis
            rho: Source radius, > 0
            accuracy: Absolute goal (engine tolerance if None)
            return_contours: Attach the traced image contours to the result

        Returns:
            MagnificationResult at stage FULL_CONTOUR
        """
        start = time.perf_counter()
        lens = LensConfig(s, q)
        source = self._finite_source(y1, y2, rho)
        if accuracy is not None and not accuracy > 0.0:
            raise InvalidConfigurationError(f"accuracy must be positive, got {accuracy}")
        solver = self._solver(lens)
        sol = solver.solve(source.center)
        disk = self._disk_function(ContourTracer(solver, self.settings.contour), source.center)
        if accuracy is None:
            outer = self._outer_disk(disk, rho, sol.magnification)
        else:
            outer = disk(rho, accuracy)

        centroid = None
        if self.settings.astrometry and outer.moment is not None and outer.magnification != 0.0:
            centroid = outer.moment / outer.magnification
        result = MagnificationResult(
            magnification=outer.magnification,
            stage=EvaluationStage.FULL_CONTOUR,
            flags=outer.flags | sol.flags,
            annuli=1,
            points=outer.points,
            centroid=centroid,
            contours=outer.contours if return_contours else None,
        )
        return self._finish("uniform_source", result, start)

    def limb_darkened(
        self,
        s: float,
        q: float,
        y1: float,
        y2: float,
        rho: float,
        return_contours: bool = False,
    ) -> MagnificationResult:
        """Limb-darkened magnification by annulus refinement.

        Always traces contours, skipping the quadrupole shortcut.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            y1: Source center along the lens axis
            y2: Source center perpendicular to the lens axis
            rho: Source radius, > 0
            return_contours: Attach the outer-disk contours to the result

        Returns:
            MagnificationResult at stage CONVERGED, or ANNULUS_LOOP with
            TOLERANCE_UNREACHABLE if the annulus cap was hit
        """
        start = time.perf_counter()
        lens = LensConfig(s, q)
        source = self._finite_source(y1, y2, rho)
        solver = self._solver(lens)
        sol = solver.solve(source.center)
        result = self._contour_path(solver, sol, source, return_contours)
        return self._finish("limb_darkened", result, start)

    def _contour_path(
        self,
        solver: LensEquationSolver,
        sol: ImageSolution,
        source: SourceConfig,
        return_contours: bool = False,
    ) -> MagnificationResult:
        disk = self._disk_function(ContourTracer(solver, self.settings.contour), source.center)
        outer = self._outer_disk(disk, source.rho, sol.magnification)
        refinement = self._refiner.refine(
            disk, source.rho, self._center_sample(sol), [self.profile], outer
        )
        return self._annulus_result(
            refinement, contours=outer.contours if return_contours else None
        )

    def adaptive(self, s: float, q: float, y1: float, y2: float, rho: float) -> MagnificationResult:
        """Magnification with the full staged evaluation.

        The recommended entry point. A point source (rho == 0) stops after
        the first stage. Otherwise the quadrupole shortcut is tried before
        falling back to contour integration and annulus refinement.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            y1: Source center along the lens axis
            y2: Source center perpendicular to the lens axis
            rho: Source radius, >= 0

        Returns:
            MagnificationResult at stage POINT_SOURCE, ACCEPT, CONVERGED or
            ANNULUS_LOOP
        """
        start = time.perf_counter()
        lens = LensConfig(s, q)
        source = SourceConfig(y1, y2, rho)
        solver = self._solver(lens)
        sol = solver.solve(source.center)
        centroid = sol.centroid if self.settings.astrometry else None

        if source.is_point:
            result = MagnificationResult(
                magnification=sol.magnification,
                stage=EvaluationStage.POINT_SOURCE,
                flags=sol.flags,
                points=1,
                centroid=centroid,
            )
            return self._finish("adaptive", result, start)

        if self.settings.quadrupole.enabled:
            correction, size = self._quadrupole(solver, sol, rho)
            if self._quadrupole_accepts(solver, sol, source, size):
                result = MagnificationResult(
                    magnification=sol.magnification + correction,
                    stage=EvaluationStage.ACCEPT,
                    flags=sol.flags,
                    points=1 + self.settings.quadrupole.ring_points,
                    centroid=centroid,
                )
                return self._finish("adaptive", result, start)

        result = self._contour_path(solver, sol, source)
        return self._finish("adaptive", result, start)

    def multi_band(
        self,
        s: float,
        q: float,
        y1: float,
        y2: float,
        rho: float,
        coefficients: Sequence[BandCoefficients],
        accuracy: float | None = None,
    ) -> list[MagnificationResult]:
        """Limb-darkened magnifications for several bands at once.

        All bands share the traced uniform disks; annuli are refined until
        every band meets the goal.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            y1: Source center along the lens axis
            y2: Source center perpendicular to the lens axis
            rho: Source radius, > 0
            coefficients: Per band, a1 alone or an (a1, a2) pair. The law is
                the engine's, or linear when the engine profile is uniform or
                custom
            accuracy: Absolute goal (engine tolerance if None)

        Returns:
            One MagnificationResult per band, in input order
        """
        start = time.perf_counter()
        if not coefficients:
            raise InvalidConfigurationError("at least one band is required")
        lens = LensConfig(s, q)
        source = self._finite_source(y1, y2, rho)
        law = self.profile.kind
        if law in (LimbDarkeningKind.UNIFORM, LimbDarkeningKind.CUSTOM):
            law = LimbDarkeningKind.LINEAR
        profiles = []
        for band in coefficients:
            a1, a2 = (band, 0.0) if isinstance(band, (int, float)) else band
            profiles.append(LimbDarkeningProfile(kind=law, a1=float(a1), a2=float(a2)))

        refiner = self._refiner
        engine = self
        if accuracy is not None:
            engine = self.with_tolerance(tol=accuracy)
            refiner = engine._refiner

        solver = self._solver(lens)
        sol = solver.solve(source.center)
        disk = self._disk_function(ContourTracer(solver, self.settings.contour), source.center)
        outer = engine._outer_disk(disk, rho, sol.magnification)
        refinement = refiner.refine(disk, rho, self._center_sample(sol), profiles, outer)

        results = [self._annulus_result(refinement, i) for i in range(len(profiles))]
        duration_ms = (time.perf_counter() - start) * 1000
        for result in results:
            self.evaluation_logger.log_evaluation_complete(
                "multi_band", result, duration_ms / len(results)
            )
        return results

    def critical_curves(self, s: float, q: float, points: int = 256) -> ContourSet:
        """Critical curves followed by caustics.

        Args:
            s: Lens separation
            q: Mass ratio m2/m1
            points: Phase samples per root track

        Returns:
            ContourSet whose first half holds critical curves and second half
            the matching caustics
        """
        if points < 8:
            raise InvalidConfigurationError(f"points must be at least 8, got {points}")
        return self._solver(LensConfig(s, q)).critical_curves(points)

    # ------------------------------------------------------------------
    # Single lens
    # ------------------------------------------------------------------

    def _require_table(self) -> ESPLTable:
        if self.table is None:
            raise TableNotLoadedError()
        return self.table

    def espl(self, u: float, rho: float) -> MagnificationResult:
        """Uniform-source single-lens magnification from the table.

        Args:
            u: Source-lens distance
            rho: Source radius, > 0

        Returns:
            MagnificationResult, flagged TABLE_DOMAIN_EXCEEDED outside the table
        """
        start = time.perf_counter()
        table = self._require_table()
        source = self._finite_source(u, 0.0, rho)
        value, flags = table.magnification(source.y1, rho)
        result = MagnificationResult(
            magnification=value,
            stage=EvaluationStage.CONVERGED,
            flags=flags,
            annuli=1,
            points=1,
        )
        return self._finish("espl", result, start)

    def _espl_disk(self, table: ESPLTable, u: float) -> Callable[[float, float], DiskSample]:
        def disk(radius: float, accuracy: float) -> DiskSample:
            value, flags = table.magnification(u, radius)
            return DiskSample(radius=radius, magnification=value, flags=flags, points=1)

        return disk

    def espl_limb_darkened(self, u: float, rho: float) -> MagnificationResult:
        """Limb-darkened single-lens magnification from the table.

        Args:
            u: Source-lens distance
            rho: Source radius, > 0

        Returns:
            MagnificationResult at stage CONVERGED or ANNULUS_LOOP
        """
        start = time.perf_counter()
        table = self._require_table()
        source = self._finite_source(u, 0.0, rho)
        u = abs(source.y1)
        center = DiskSample(radius=0.0, magnification=point_lens_magnification(u), points=1)
        refinement = self._refiner.refine(self._espl_disk(table, u), rho, center, [self.profile])
        result = self._annulus_result(refinement)
        return self._finish("espl_limb_darkened", result, start)

    def espl_adaptive(self, u: float, rho: float) -> MagnificationResult:
        """Single-lens magnification with a point-source shortcut.

        Far from the lens the point lens plus its quadrupole correction is
        accepted; otherwise the limb-darkened table evaluation runs.

        Args:
            u: Source-lens distance
            rho: Source radius, >= 0

        Returns:
            MagnificationResult
        """
        start = time.perf_counter()
        source = SourceConfig(u, 0.0, rho)
        u = abs(source.y1)
        if source.is_point:
            result = MagnificationResult(
                magnification=point_lens_magnification(u),
                stage=EvaluationStage.POINT_SOURCE,
                points=1,
            )
            return self._finish("espl_adaptive", result, start)

        cfg = self.settings.quadrupole
        if cfg.enabled and u > cfg.ring_factor * rho:
            base = point_lens_magnification(u)
            correction = point_lens_quadrupole(u, rho, self.profile.mean_square_radius)
            if cfg.quadrupole_factor * abs(correction) < self.settings.tolerance.goal(base):
                result = MagnificationResult(
                    magnification=base + correction,
                    stage=EvaluationStage.ACCEPT,
                    points=1,
                )
                return self._finish("espl_adaptive", result, start)
        return self.espl_limb_darkened(u, rho)
