"""Image-plane curves.

This module defines the curves produced by the contour tracer:
- ImagePoint: An image position tagged with its source-boundary angle
- Curve: An owned, ordered sequence of image points
- ContourSet: All curves from one tracing pass
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from lensmag.domain.result import NO_FLAGS, QualityFlag


@dataclass(frozen=True, slots=True)
class ImagePoint:
    """An image of a point on the source boundary.

    Immutable and hashable. Curves share nothing, so points are copied
    rather than linked.

    Attributes:
        z: Image position
        jacobian: Determinant of the lens map at z
        theta: Angle of the source-boundary point that maps here
        dz: Derivative dz/dtheta along the source boundary
    """

    z: complex
    jacobian: float = 0.0
    theta: float = 0.0
    dz: complex = 0j

    @property
    def parity(self) -> int:
        """Sign of the Jacobian (+1 or -1)."""
        return 1 if self.jacobian >= 0.0 else -1

    def to_tuple(self) -> tuple[float, float]:
        """Convert to simple (x, y) tuple.

        Returns:
            Tuple of (x, y) coordinates
        """
        return (self.z.real, self.z.imag)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary with position, jacobian, angle and derivative
        """
        return {
            "z": [self.z.real, self.z.imag],
            "jacobian": self.jacobian,
            "theta": self.theta,
            "dz": [self.dz.real, self.dz.imag],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImagePoint":
        """Deserialize from dictionary.

        Args:
            data: Dictionary from to_dict()

        Returns:
            New ImagePoint instance
        """
        z = data["z"]
        dz = data.get("dz", [0.0, 0.0])
        return cls(
            z=complex(z[0], z[1]),
            jacobian=float(data.get("jacobian", 0.0)),
            theta=float(data.get("theta", 0.0)),
            dz=complex(dz[0], dz[1]),
        )


@dataclass(frozen=True, slots=True)
class Curve:
    """An ordered sequence of image points.

    Closed curves connect the last point back to the first.

    Attributes:
        points: Points in traversal order
        closed: Whether the curve is a closed loop
    """

    points: tuple[ImagePoint, ...] = field(default_factory=tuple)
    closed: bool = True

    def __len__(self) -> int:
        return len(self.points)

    def positions(self) -> list[complex]:
        """Image positions in traversal order."""
        return [p.z for p in self.points]

    def reversed(self) -> "Curve":
        """Return the same curve traversed the other way."""
        return Curve(points=tuple(reversed(self.points)), closed=self.closed)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary with points and closed fields
        """
        return {
            "points": [p.to_dict() for p in self.points],
            "closed": self.closed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Curve":
        """Deserialize from dictionary.

        Args:
            data: Dictionary from to_dict()

        Returns:
            New Curve instance
        """
        return cls(
            points=tuple(ImagePoint.from_dict(p) for p in data["points"]),
            closed=bool(data.get("closed", True)),
        )


@dataclass(frozen=True, slots=True)
class ContourSet:
    """Curves from one tracing pass.

    For image boundaries each curve is one closed image contour. For
    critical-curve output the first half are critical curves and the second
    half the matching caustics.

    Attributes:
        curves: Curves in the set
        radius: Source radius that was traced (0 for critical curves)
        sample_count: Number of source-boundary samples solved
        flags: Reduced-accuracy markers raised while tracing
    """

    curves: tuple[Curve, ...] = field(default_factory=tuple)
    radius: float = 0.0
    sample_count: int = 0
    flags: QualityFlag = NO_FLAGS

    def __len__(self) -> int:
        return len(self.curves)

    def __iter__(self) -> Iterator[Curve]:
        return iter(self.curves)

    @property
    def total_points(self) -> int:
        """Number of points over all curves."""
        return sum(len(c) for c in self.curves)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary with curves and metadata
        """
        return {
            "curves": [c.to_dict() for c in self.curves],
            "radius": self.radius,
            "sample_count": self.sample_count,
            "flags": [flag.name for flag in QualityFlag if flag in self.flags],
        }
