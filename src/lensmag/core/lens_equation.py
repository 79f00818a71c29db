"""Binary-lens equation solving.

This module turns the complex lens equation

    w = z - m1 / conj(z - z1) - m2 / conj(z - z2)

into a degree-5 polynomial in z, solves it, and keeps the roots that are
true images. It also provides the local derivatives of the lens map that the
contour tracer and the quadrupole test need, and traces critical curves and
caustics.

Key functions:
- poly_mul / poly_add: Ascending-coefficient polynomial arithmetic

Key classes:
- ImageSolution: True images of one source point
- LensEquationSolver: Polynomial construction, image selection, derivatives
"""

import cmath
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import structlog
from scipy.optimize import linear_sum_assignment

from lensmag.config import ImageConfig, RootSolverConfig
from lensmag.core.roots import EPS, solve_polynomial
from lensmag.domain import ContourSet, Curve, Image, ImagePoint, LensConfig, QualityFlag

logger = structlog.get_logger(__name__)

# A binary lens always has at least three images.
MIN_IMAGES = 3


def poly_mul(a: Sequence[complex], b: Sequence[complex]) -> list[complex]:
    """Multiply two ascending-coefficient polynomials."""
    out = [0j] * (len(a) + len(b) - 1)
    for i, ca in enumerate(a):
        for j, cb in enumerate(b):
            out[i + j] += ca * cb
    return out


def poly_add(*terms: tuple[complex, Sequence[complex]]) -> list[complex]:
    """Linear combination of ascending-coefficient polynomials.

    Args:
        *terms: (scale, coefficients) pairs

    Returns:
        Sum of scale * polynomial over all terms
    """
    size = max(len(p) for _, p in terms)
    out = [0j] * size
    for scale, p in terms:
        for i, c in enumerate(p):
            out[i] += scale * c
    return out


def match_points(previous: Sequence[complex], current: Sequence[complex]) -> list[int]:
    """Order current points so that each follows its nearest predecessor.

    Args:
        previous: Reference points
        current: Points to reorder, same count as previous

    Returns:
        Indices into current, one per entry of previous
    """
    cost = np.abs(np.subtract.outer(np.asarray(previous), np.asarray(current)))
    _, cols = linear_sum_assignment(cost)
    return [int(c) for c in cols]


@dataclass(frozen=True, slots=True)
class ImageSolution:
    """True images of a single source point.

    Attributes:
        images: Accepted images (3 or 5 for a binary lens)
        roots: All polynomial roots in image-plane coordinates
        converged: Whether the root solver converged for every root
    """

    images: tuple[Image, ...]
    roots: tuple[complex, ...]
    converged: bool

    @property
    def magnification(self) -> float:
        """Point-source magnification, the sum of 1/|J| over images."""
        return sum(1.0 / abs(img.jacobian) for img in self.images)

    @property
    def centroid(self) -> complex:
        """Magnification-weighted image centroid."""
        weights = [1.0 / abs(img.jacobian) for img in self.images]
        total = sum(weights)
        return sum(w * img.z for w, img in zip(weights, self.images, strict=True)) / total

    @property
    def flags(self) -> QualityFlag:
        """Quality flags raised while solving."""
        return QualityFlag(0) if self.converged else QualityFlag.ROOT_NONCONVERGENCE


class LensEquationSolver:
    """Solves the binary-lens equation for a fixed lens.

    The solver is immutable. Root guesses for warm starts are passed per call
    and never stored.

    Example:
        solver = LensEquationSolver(LensConfig(s=0.8, q=0.1))
        solution = solver.solve(complex(0.01, 0.01))
        print(solution.magnification)
    """

    def __init__(
        self,
        lens: LensConfig,
        roots: RootSolverConfig | None = None,
        images: ImageConfig | None = None,
    ) -> None:
        """Initialize solver for one lens.

        Args:
            lens: Binary lens configuration
            roots: Root solver caps
            images: True-image acceptance thresholds
        """
        self.lens = lens
        self.roots_config = roots or RootSolverConfig()
        self.images_config = images or ImageConfig()
        self._m1 = lens.m1
        self._m2 = lens.m2
        self._z1 = lens.z1
        self._z2 = lens.z2

    def lens_map(self, z: complex) -> complex:
        """Map an image-plane point to the source plane.

        Raises:
            ZeroDivisionError: If z coincides with a lens
        """
        return (
            z
            - self._m1 / (z - self._z1).conjugate()
            - self._m2 / (z - self._z2).conjugate()
        )

    def kappa(self, z: complex) -> complex:
        """Shear term sum m_k / (conj(z) - z_k)**2."""
        t1 = 1.0 / (z.conjugate() - self._z1)
        t2 = 1.0 / (z.conjugate() - self._z2)
        return self._m1 * t1 * t1 + self._m2 * t2 * t2

    def kappa_derivatives(self, z: complex) -> tuple[complex, complex, complex]:
        """Shear term and its first two derivatives with respect to conj(z).

        Returns:
            Tuple of (kappa, kappa', kappa'')
        """
        t1 = 1.0 / (z.conjugate() - self._z1)
        t2 = 1.0 / (z.conjugate() - self._z2)
        t1s = t1 * t1
        t2s = t2 * t2
        k0 = self._m1 * t1s + self._m2 * t2s
        k1 = -2.0 * (self._m1 * t1s * t1 + self._m2 * t2s * t2)
        k2 = 6.0 * (self._m1 * t1s * t1s + self._m2 * t2s * t2s)
        return k0, k1, k2

    def jacobian(self, z: complex) -> float:
        """Determinant of the lens map, 1 - |kappa|**2."""
        k = self.kappa(z)
        return 1.0 - (k.real * k.real + k.imag * k.imag)

    def safe_jacobian(self, z: complex) -> float:
        """Jacobian with its magnitude floored at the configured minimum."""
        jac = self.jacobian(z)
        floor = self.images_config.jacobian_floor
        if abs(jac) < floor:
            return math.copysign(floor, jac)
        return jac

    def polynomial(self, w: complex) -> list[complex]:
        """Build the image polynomial for a source point.

        The polynomial is written in a frame centered on the lighter lens,
        with the heavier one at real offset d. Its roots are image positions
        relative to the lighter lens. A vanishing leading coefficient (source
        exactly on a lens) is trimmed, lowering the degree.

        Args:
            w: Source position

        Returns:
            Ascending coefficients of degree 5, or lower after trimming
        """
        za, ma = self.lens.light
        zb, mb = self.lens.heavy
        d = zb - za
        om = w - za
        omc = om.conjugate()

        den = [0j, -d, 1.0]
        num = [-ma * d, -omc * d + ma + mb, omc]
        shifted = poly_add((1.0, num), (-d, den))

        poly = poly_add(
            (1.0, poly_mul([-om, 1.0], poly_mul(num, shifted))),
            (-ma, poly_mul(den, shifted)),
            (-mb, poly_mul(den, num)),
        )
        scale = max(abs(c) for c in poly)
        while len(poly) > 2 and abs(poly[-1]) <= EPS * scale:
            poly.pop()
        return poly

    def _residual(self, z: complex, w: complex) -> float:
        try:
            return abs(self.lens_map(z) - w)
        except ZeroDivisionError:
            return math.inf

    def solve(self, w: complex, guesses: Sequence[complex] | None = None) -> ImageSolution:
        """Find the true images of a source point.

        Roots are ranked by lens-equation residual. The best three are always
        images. The remaining two are images only when both residuals are below
        the image tolerance, since images appear and vanish in pairs.

        Args:
            w: Source position
            guesses: Optional image-plane starting points for the root solver

        Returns:
            ImageSolution with the accepted images
        """
        poly = self.polynomial(w)
        za, _ = self.lens.light
        shifted = None
        if guesses is not None and len(guesses) >= len(poly) - 1:
            shifted = [g - za for g in guesses]

        cfg = self.roots_config
        sol = solve_polynomial(
            poly,
            guesses=shifted,
            max_iterations=cfg.max_iterations,
            cycle_length=cfg.cycle_length,
            polish=cfg.polish,
        )
        roots = tuple(r + za for r in sol.roots)

        ranked = sorted(roots, key=lambda z: self._residual(z, w))
        residuals = [self._residual(z, w) for z in ranked]
        accepted = MIN_IMAGES
        if len(ranked) >= MIN_IMAGES + 2:
            tol = self.images_config.image_tolerance
            if residuals[MIN_IMAGES] < tol and residuals[MIN_IMAGES + 1] < tol:
                accepted = MIN_IMAGES + 2

        images = tuple(
            Image(z=z, jacobian=self.safe_jacobian(z), residual=res)
            for z, res in zip(ranked[:accepted], residuals[:accepted], strict=True)
            if math.isfinite(res)
        )
        if not sol.converged:
            logger.debug("Root solver hit iteration cap", w=str(w), iterations=sol.iterations)
        return ImageSolution(images=images, roots=roots, converged=sol.converged)

    def image_count(self, w: complex) -> int:
        """Number of true images of a source point."""
        return len(self.solve(w).images)

    def boundary_images(
        self,
        center: complex,
        radius: float,
        theta: float,
        guesses: Sequence[complex] | None = None,
    ) -> tuple[list[ImagePoint], ImageSolution]:
        """Images of one point on a circular source boundary.

        Each image carries dz/dtheta, obtained by inverting the lens map
        Jacobian on the boundary tangent i r exp(i theta).

        Args:
            center: Source center
            radius: Source radius
            theta: Boundary angle
            guesses: Optional image-plane starting points

        Returns:
            Tuple of (image points, underlying solution)
        """
        step = cmath.rect(radius, theta)
        w = center + step
        wdot = 1j * step
        sol = self.solve(w, guesses)
        points = []
        for img in sol.images:
            k = self.kappa(img.z)
            dz = (wdot - k * wdot.conjugate()) / img.jacobian
            points.append(ImagePoint(z=img.z, jacobian=img.jacobian, theta=theta, dz=dz))
        return points, sol

    def critical_curves(self, points: int = 256) -> ContourSet:
        """Trace critical curves and their caustics.

        Critical points satisfy |kappa| = 1, that is
        m1 (z - z2)**2 + m2 (z - z1)**2 = exp(-i phi) (z - z1)**2 (z - z2)**2
        for some phase phi. The four roots are followed across a uniform phi
        grid, and the tracks are joined into closed curves by the way the
        roots permute after a full turn.

        Args:
            points: Number of phase samples

        Returns:
            ContourSet with the critical curves followed by their caustics
        """
        sq1 = poly_mul([-self._z1, 1.0], [-self._z1, 1.0])
        sq2 = poly_mul([-self._z2, 1.0], [-self._z2, 1.0])
        prod = poly_mul(sq1, sq2)
        base = poly_add((self._m1, sq2), (self._m2, sq1))

        rows: list[list[complex]] = []
        phases: list[float] = []
        flags = QualityFlag(0)
        previous: list[complex] | None = None
        for k in range(points):
            phi = 2.0 * math.pi * k / points
            coeffs = poly_add((1.0, base), (-cmath.exp(-1j * phi), prod))
            sol = solve_polynomial(
                coeffs,
                guesses=previous,
                max_iterations=self.roots_config.max_iterations,
                cycle_length=self.roots_config.cycle_length,
            )
            if not sol.converged:
                flags |= QualityFlag.ROOT_NONCONVERGENCE
            roots = list(sol.roots)
            if previous is not None:
                roots = [roots[i] for i in match_points(previous, roots)]
            rows.append(roots)
            phases.append(phi)
            previous = roots

        closing = match_points(rows[-1], rows[0])
        n_tracks = len(rows[0])
        visited = [False] * n_tracks
        critical: list[Curve] = []
        caustics: list[Curve] = []
        for start in range(n_tracks):
            if visited[start]:
                continue
            crit_pts: list[ImagePoint] = []
            track = start
            while not visited[track]:
                visited[track] = True
                for phi, row in zip(phases, rows, strict=True):
                    crit_pts.append(ImagePoint(z=row[track], theta=phi))
                track = closing[track]
            critical.append(Curve(points=tuple(crit_pts)))
            caustics.append(
                Curve(
                    points=tuple(
                        ImagePoint(z=self.lens_map(p.z), theta=p.theta) for p in crit_pts
                    )
                )
            )

        logger.debug(
            "Critical curves traced",
            s=self.lens.s,
            q=self.lens.q,
            curves=len(critical),
        )
        return ContourSet(
            curves=tuple(critical + caustics),
            sample_count=points,
            flags=flags,
        )
