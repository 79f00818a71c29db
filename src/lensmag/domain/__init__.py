"""Domain models for lensmag.

This module contains the core domain models representing lenses, sources,
images, image contours and evaluation results. All models are:

- Immutable (frozen dataclasses)
- Owned values with no cross-links between curves or points
- Independent of the numerical machinery in lensmag.core

Key classes:
- LensConfig: Binary lens separation and mass ratio
- SourceConfig: Source center and radius
- Image: A lens-equation root and its acceptance verdict
- ImagePoint: Image of a source-boundary point
- Curve: Ordered image points forming a contour
- ContourSet: All curves from one tracing pass
- Annulus: One ring of the limb-darkening decomposition
- MagnificationResult: Magnification with diagnostics
"""

from lensmag.domain.contour import ContourSet, Curve, ImagePoint
from lensmag.domain.lens import Image, LensConfig, SourceConfig
from lensmag.domain.result import (
    NO_FLAGS,
    Annulus,
    EvaluationStage,
    MagnificationResult,
    QualityFlag,
)

__all__: list[str] = [
    # Enums
    "EvaluationStage",
    "QualityFlag",
    "NO_FLAGS",
    # Core types
    "LensConfig",
    "SourceConfig",
    "Image",
    "ImagePoint",
    "Curve",
    "ContourSet",
    "Annulus",
    "MagnificationResult",
]
