"""Lens and source geometry.

This module defines the inputs of every evaluation:
- LensConfig: Binary lens separation and mass ratio
- SourceConfig: Source center and radius
- Image: One root of the lens equation with its acceptance verdict

Lengths are in units of the Einstein radius of the total mass. The origin is
the center of mass, the lens axis is the real axis, and the first lens (mass
1/(1+q)) sits on the left.
"""

import math
from dataclasses import dataclass
from typing import Any

from lensmag.exceptions import InvalidLensError, InvalidSourceError


@dataclass(frozen=True, slots=True)
class LensConfig:
    """Binary lens made of two point masses.

    Attributes:
        s: Separation between the lenses
        q: Mass ratio m2/m1
    """

    s: float
    q: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.s) or self.s <= 0.0:
            raise InvalidLensError(self.s, self.q, "separation must be positive and finite")
        if not math.isfinite(self.q) or self.q <= 0.0:
            raise InvalidLensError(self.s, self.q, "mass ratio must be positive and finite")

    @property
    def m1(self) -> float:
        """Mass of the first lens as a fraction of the total."""
        return 1.0 / (1.0 + self.q)

    @property
    def m2(self) -> float:
        """Mass of the second lens as a fraction of the total."""
        return self.q / (1.0 + self.q)

    @property
    def z1(self) -> float:
        """Position of the first lens on the real axis."""
        return -self.s * self.q / (1.0 + self.q)

    @property
    def z2(self) -> float:
        """Position of the second lens on the real axis."""
        return self.s / (1.0 + self.q)

    @property
    def light(self) -> tuple[float, float]:
        """Position and mass of the lighter lens (the second one when q == 1)."""
        if self.q <= 1.0:
            return self.z2, self.m2
        return self.z1, self.m1

    @property
    def heavy(self) -> tuple[float, float]:
        """Position and mass of the heavier lens."""
        if self.q <= 1.0:
            return self.z1, self.m1
        return self.z2, self.m2

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary with s and q fields
        """
        return {"s": self.s, "q": self.q}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LensConfig":
        """Deserialize from dictionary.

        Args:
            data: Dictionary with s and q fields

        Returns:
            New LensConfig instance
        """
        return cls(s=float(data["s"]), q=float(data["q"]))


@dataclass(frozen=True, slots=True)
class SourceConfig:
    """Circular source.

    Attributes:
        y1: Source center along the lens axis
        y2: Source center perpendicular to the lens axis
        rho: Source radius (0 for a point source)
    """

    y1: float
    y2: float
    rho: float = 0.0

    def __post_init__(self) -> None:
        if not (math.isfinite(self.y1) and math.isfinite(self.y2)):
            raise InvalidSourceError("position must be finite")
        if not math.isfinite(self.rho) or self.rho < 0.0:
            raise InvalidSourceError("radius must be non-negative and finite")

    @property
    def center(self) -> complex:
        """Source center as a complex number."""
        return complex(self.y1, self.y2)

    @property
    def is_point(self) -> bool:
        """Check whether the source has zero radius."""
        return self.rho == 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary.

        Returns:
            Dictionary with y1, y2 and rho fields
        """
        return {"y1": self.y1, "y2": self.y2, "rho": self.rho}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceConfig":
        """Deserialize from dictionary.

        Args:
            data: Dictionary with y1, y2 and optional rho fields

        Returns:
            New SourceConfig instance
        """
        return cls(
            y1=float(data["y1"]),
            y2=float(data["y2"]),
            rho=float(data.get("rho", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class Image:
    """A root of the binary-lens polynomial.

    Attributes:
        z: Position in the lens plane
        jacobian: Determinant of the lens map at z
        residual: Lens-equation residual |w(z) - w|
        is_true_image: Whether the root solves the lens equation itself
    """

    z: complex
    jacobian: float
    residual: float
    is_true_image: bool = True

    @property
    def parity(self) -> int:
        """Sign of the Jacobian (+1 or -1)."""
        return 1 if self.jacobian >= 0.0 else -1
