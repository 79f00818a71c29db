"""Core numerical algorithms for lensmag.

This module contains the core algorithms for:

- Polynomial root finding (Laguerre with deflation and polishing)
- Binary-lens equation solving (images, Jacobians, critical curves)
- Image contour tracing (adaptive boundary sampling, caustic crossings)
- Contour integration (shoelace area with parabolic corrections)
- Limb darkening (tagged brightness laws, cumulative flux)
- Annulus refinement (limb-darkened magnification)
- Single-lens table lookup

Key classes:
- LensEquationSolver: Images of a source point for one lens
- ContourTracer: Closed image contours of a circular source
- ContourIntegrator: Areas and centroids of contour sets
- LimbDarkeningProfile: Brightness law with a uniform interface
- AnnulusRefiner: Adaptive ring decomposition
- ESPLTable: Single-lens uniform-source lookup
- MagnificationEngine: Staged evaluation entry point
"""

from lensmag.core.annulus import AnnulusRefiner, DiskSample
from lensmag.core.engine import MagnificationEngine
from lensmag.core.espl import (
    ESPLTable,
    load_espl_table,
    point_lens_magnification,
    point_lens_quadrupole,
)
from lensmag.core.integrator import ContourIntegrator, polygon_area
from lensmag.core.lens_equation import ImageSolution, LensEquationSolver
from lensmag.core.limb_darkening import LimbDarkeningProfile
from lensmag.core.roots import RootSolution, solve_polynomial
from lensmag.core.tracer import ContourTracer

__all__ = [
    # Annulus refinement
    "AnnulusRefiner",
    "DiskSample",
    # Contours
    "ContourIntegrator",
    "ContourTracer",
    # Single lens
    "ESPLTable",
    # Images
    "ImageSolution",
    "LensEquationSolver",
    "LimbDarkeningProfile",
    # Engine
    "MagnificationEngine",
    # Roots
    "RootSolution",
    "load_espl_table",
    "point_lens_magnification",
    "point_lens_quadrupole",
    "polygon_area",
    "solve_polynomial",
]
