"""Configuration management for lensmag.

This module provides configuration management using Pydantic models.
Configuration can be provided via CLI arguments, keyword overrides or defaults.

Key classes:
- ToleranceConfig: Absolute and relative accuracy goals
- RootSolverConfig: Laguerre solver caps
- ImageConfig: True-image acceptance thresholds
- ContourConfig: Boundary tracing caps
- QuadrupoleConfig: Shortcut test constants
- LimbDarkeningConfig: Brightness law and coefficients
- LoggingConfig: Logging settings
- LensMagSettings: Main engine settings
"""

from lensmag.config.settings import (
    ContourConfig,
    ImageConfig,
    LensMagSettings,
    LimbDarkeningConfig,
    LimbDarkeningKind,
    LoggingConfig,
    QuadrupoleConfig,
    RootSolverConfig,
    ToleranceConfig,
    get_default_settings,
)

__all__ = [
    "ContourConfig",
    "ImageConfig",
    "LensMagSettings",
    "LimbDarkeningConfig",
    "LimbDarkeningKind",
    "LoggingConfig",
    "QuadrupoleConfig",
    "RootSolverConfig",
    "ToleranceConfig",
    "get_default_settings",
]
