"""lensmag - Binary-lens microlensing magnification.

lensmag computes the magnification of a background source lensed by two
point masses: point sources by solving the lens equation, finite sources by
tracing and integrating image contours, and limb-darkened sources by
adaptive annulus refinement. Single-lens extended sources are served from a
precomputed lookup table.

Example:
    >>> from lensmag import MagnificationEngine
    >>> engine = MagnificationEngine()
    >>> result = engine.adaptive(s=0.8, q=0.1, y1=0.01, y2=0.01, rho=0.01)
"""

from lensmag.core.engine import MagnificationEngine

__version__ = "0.1.0"
__author__ = "Dimosthenis Kaponis"

__all__ = ["MagnificationEngine", "__author__", "__version__"]
