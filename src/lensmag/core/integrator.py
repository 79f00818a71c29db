"""Area integration of image contours.

The area enclosed by a traced contour is the shoelace sum over its points
plus a correction per segment that replaces the chord by the parabola fitted
to the endpoint tangents:

- Regular segments (consecutive boundary angles) add
  dtheta * Im(conj(dz) * (z'_B - z'_A)) / 12.
- Junction segments join the two images of a pair created or destroyed at a
  caustic crossing. Both endpoints share one angle, and the parabola through
  them adds (2/3) * Im(conj(dz) * m), where m is its sagitta.

Contours oriented by image parity give the magnification as total signed
area over the source area.
"""

import math
from collections.abc import Iterable, Sequence

from lensmag.domain import ContourSet, Curve, ImagePoint

TWO_PI = 2.0 * math.pi


def wrap_angle(dtheta: float) -> float:
    """Wrap an angle difference into [-pi, pi)."""
    return (dtheta + math.pi) % TWO_PI - math.pi


def is_junction(a: ImagePoint, b: ImagePoint) -> bool:
    """Check whether two consecutive points are a caustic-crossing pair."""
    return a.theta == b.theta and a.z != b.z


def junction_correction(a: ImagePoint, b: ImagePoint) -> float:
    """Area between the chord and the fold parabola through a junction.

    Args:
        a: Image entering the junction
        b: Partner image leaving it

    Returns:
        Signed area to add when traversing from a to b
    """
    ddz = a.dz - b.dz
    if ddz == 0:
        return 0.0
    sagitta = (a.dz + b.dz) * (a.z - b.z) / (4.0 * ddz)
    return (2.0 / 3.0) * ((b.z - a.z).conjugate() * sagitta).imag


def segment_correction(a: ImagePoint, b: ImagePoint) -> float:
    """Parabolic correction for the segment from a to b.

    Args:
        a: Start point
        b: End point

    Returns:
        Signed area to add to the shoelace sum
    """
    if is_junction(a, b):
        return junction_correction(a, b)
    dtheta = wrap_angle(b.theta - a.theta)
    return dtheta * ((b.z - a.z).conjugate() * (b.dz - a.dz)).imag / 12.0


def segment_error(a: ImagePoint, b: ImagePoint) -> float:
    """Estimated residual error of the corrected segment area."""
    if is_junction(a, b):
        return abs(junction_correction(a, b)) / 16.0
    dtheta = abs(wrap_angle(b.theta - a.theta))
    return dtheta**3 * abs(b.dz - a.dz) ** 2 / 48.0


def _closed_pairs(points: Sequence[ImagePoint]) -> Iterable[tuple[ImagePoint, ImagePoint]]:
    n = len(points)
    for i in range(n):
        yield points[i], points[(i + 1) % n]


def polygon_area(points: Sequence[complex]) -> float:
    """Signed area of a closed polygon.

    Positive for counter-clockwise traversal. Cross products are taken
    relative to the first vertex to limit cancellation far from the origin.

    Args:
        points: Vertices in order

    Returns:
        Signed area, 0.0 for fewer than three vertices

    Examples:
        >>> polygon_area([0, 1, 1 + 1j, 1j])
        1.0
    """
    n = len(points)
    if n < 3:
        return 0.0
    origin = points[0]
    area = 0.0
    for i in range(1, n - 1):
        area += ((points[i] - origin).conjugate() * (points[i + 1] - origin)).imag
    return area / 2.0


def polygon_moment(points: Sequence[complex]) -> complex:
    """First area moment (integral of z over the enclosed region).

    Args:
        points: Vertices in order

    Returns:
        Complex moment; divided by the area it gives the centroid
    """
    n = len(points)
    if n < 3:
        return 0j
    origin = points[0]
    moment = 0j
    area = 0.0
    for i in range(1, n - 1):
        p = points[i] - origin
        q = points[i + 1] - origin
        cross = (p.conjugate() * q).imag
        moment += (p + q) * cross
        area += cross
    return moment / 6.0 + origin * area / 2.0


def curve_area(curve: Curve, corrected: bool = True) -> float:
    """Signed area enclosed by a curve.

    Args:
        curve: Closed curve of image points
        corrected: Whether to apply parabolic segment corrections

    Returns:
        Signed area
    """
    area = polygon_area(curve.positions())
    if corrected and len(curve) >= 2:
        area += sum(segment_correction(a, b) for a, b in _closed_pairs(curve.points))
    return area


def curve_error(curve: Curve) -> float:
    """Estimated integration error of a curve."""
    if len(curve) < 2:
        return 0.0
    return sum(segment_error(a, b) for a, b in _closed_pairs(curve.points))


class ContourIntegrator:
    """Integrates contour sets into magnifications and centroids.

    Example:
        integrator = ContourIntegrator()
        mag = integrator.magnification(contours)
    """

    def __init__(self, corrected: bool = True) -> None:
        """Initialize integrator.

        Args:
            corrected: Whether to apply parabolic segment corrections
        """
        self.corrected = corrected

    def area(self, contours: ContourSet) -> float:
        """Total signed area of all curves."""
        return sum(curve_area(c, self.corrected) for c in contours.curves)

    def magnification(self, contours: ContourSet) -> float:
        """Image area over source area.

        Args:
            contours: Image boundaries of a source of radius contours.radius

        Returns:
            Magnification of the uniform disk
        """
        source_area = math.pi * contours.radius * contours.radius
        return self.area(contours) / source_area

    def moment(self, contours: ContourSet) -> complex:
        """Total first area moment of all curves."""
        return sum((polygon_moment(c.positions()) for c in contours.curves), 0j)

    def centroid(self, contours: ContourSet) -> complex | None:
        """Area-weighted centroid of the image region.

        Returns:
            Centroid, or None when the enclosed area vanishes
        """
        area = sum(polygon_area(c.positions()) for c in contours.curves)
        if area == 0.0:
            return None
        return self.moment(contours) / area

    def error(self, contours: ContourSet) -> float:
        """Estimated integration error in magnification units."""
        source_area = math.pi * contours.radius * contours.radius
        return sum(curve_error(c) for c in contours.curves) / source_area
