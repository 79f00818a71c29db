"""Complex polynomial root finding.

Laguerre's method with successive deflation, followed by polishing of each
root on the undeflated polynomial. Coefficients are in ascending order of
power throughout: ``coefficients[k]`` multiplies ``x**k``.

All functions are pure and allocate only local scratch lists.
"""

import cmath
import math
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from lensmag.exceptions import InvalidPolynomialError

EPS = sys.float_info.epsilon

# Fractional steps taken every cycle_length iterations to break limit cycles.
FRACTIONS = (0.5, 0.25, 0.75, 0.13, 0.38, 0.62, 0.88, 1.0)


@dataclass(frozen=True, slots=True)
class RootSolution:
    """Roots of one polynomial.

    Attributes:
        roots: Exactly degree-many roots
        converged: False if any root hit the iteration cap
        iterations: Total Laguerre iterations spent
    """

    roots: tuple[complex, ...]
    converged: bool
    iterations: int


def evaluate_polynomial(coefficients: Sequence[complex], x: complex) -> complex:
    """Evaluate a polynomial with Horner's rule.

    Args:
        coefficients: Ascending coefficients
        x: Evaluation point

    Returns:
        Polynomial value at x
    """
    value = 0j
    for c in reversed(coefficients):
        value = value * x + c
    return value


def validate_coefficients(coefficients: Sequence[complex]) -> list[complex]:
    """Check that a coefficient list describes a solvable polynomial.

    Args:
        coefficients: Ascending coefficients

    Returns:
        The coefficients as a list of complex numbers

    Raises:
        InvalidPolynomialError: If the degree is below one, a coefficient is
            not finite, or the leading coefficient is zero
    """
    coeffs = [complex(c) for c in coefficients]
    if len(coeffs) < 2:
        raise InvalidPolynomialError("degree must be at least 1")
    for c in coeffs:
        if not (math.isfinite(c.real) and math.isfinite(c.imag)):
            raise InvalidPolynomialError("coefficients must be finite")
    if coeffs[-1] == 0:
        raise InvalidPolynomialError("leading coefficient must be nonzero")
    return coeffs


def laguerre(
    coefficients: Sequence[complex],
    x: complex,
    max_iterations: int = 80,
    cycle_length: int = 10,
) -> tuple[complex, int, bool]:
    """Refine one root with Laguerre's method.

    Convergence is declared when |P(x)| falls below the accumulated Horner
    round-off bound, or when the step no longer changes x.

    Args:
        coefficients: Ascending coefficients, degree >= 1
        x: Starting point
        max_iterations: Iteration cap
        cycle_length: Take a fractional step every this many iterations

    Returns:
        Tuple of (root estimate, iterations used, converged)
    """
    m = len(coefficients) - 1
    for it in range(1, max_iterations + 1):
        b = coefficients[m]
        err = abs(b)
        d = f = 0j
        abx = abs(x)
        for j in range(m - 1, -1, -1):
            f = x * f + d
            d = x * d + b
            b = x * b + coefficients[j]
            err = abs(b) + abx * err
        err *= EPS
        if abs(b) <= err:
            return x, it, True

        g = d / b
        g2 = g * g
        h = g2 - 2.0 * f / b
        sq = cmath.sqrt((m - 1) * (m * h - g2))
        gp = g + sq
        gm = g - sq
        abp = abs(gp)
        abm = abs(gm)
        if abp < abm:
            gp = gm
        if max(abp, abm) > 0.0:
            dx = m / gp
        else:
            dx = cmath.rect(1.0 + abx, float(it))

        x1 = x - dx
        if x1 == x:
            return x, it, True
        if it % cycle_length:
            x = x1
        else:
            x = x - FRACTIONS[(it // cycle_length - 1) % len(FRACTIONS)] * dx
        if abs(dx) <= EPS * abs(x):
            return x, it, True

    return x, max_iterations, False


def solve_polynomial(
    coefficients: Sequence[complex],
    guesses: Sequence[complex] | None = None,
    max_iterations: int = 80,
    cycle_length: int = 10,
    polish: bool = True,
) -> RootSolution:
    """Find all roots of a complex polynomial.

    Roots are extracted one by one from a deflated copy of the polynomial and
    then polished on the original. A polished root is kept only if it stayed
    closer to its deflated estimate than half the distance to any other root,
    so near-multiple roots do not collapse onto each other.

    Args:
        coefficients: Ascending coefficients, degree >= 1
        guesses: Optional starting points, for example the roots of a nearby
            polynomial. Used in order, one per extracted root
        max_iterations: Iteration cap per root
        cycle_length: Fractional-step period for Laguerre
        polish: Whether to polish on the undeflated polynomial

    Returns:
        RootSolution with exactly degree-many roots

    Raises:
        InvalidPolynomialError: If the coefficient list is malformed

    Examples:
        >>> sol = solve_polynomial([-1, 0, 1])
        >>> sorted(round(r.real, 12) for r in sol.roots)
        [-1.0, 1.0]
    """
    coeffs = validate_coefficients(coefficients)
    n = len(coeffs) - 1
    work = list(coeffs)
    roots: list[complex] = []
    deflated_ok: list[bool] = []
    total = 0

    for j in range(n, 0, -1):
        k = n - j
        start = complex(guesses[k]) if guesses is not None and k < len(guesses) else 0j
        x, its, ok = laguerre(work[: j + 1], start, max_iterations, cycle_length)
        total += its
        roots.append(x)
        deflated_ok.append(ok)
        # Synthetic division by (t - x); work[0:j] becomes the quotient.
        b = work[j]
        for i in range(j - 1, -1, -1):
            c = work[i]
            work[i] = b
            b = x * b + c

    converged = list(deflated_ok)
    if polish and n > 1:
        for i, x in enumerate(roots):
            y, its, ok = laguerre(coeffs, x, max_iterations, cycle_length)
            total += its
            nearest = min(abs(x - r) for k, r in enumerate(roots) if k != i)
            if abs(y - x) < 0.5 * nearest:
                roots[i] = y
                converged[i] = ok or converged[i]

    return RootSolution(roots=tuple(roots), converged=all(converged), iterations=total)
