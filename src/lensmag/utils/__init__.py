"""Utility functions for lensmag.

This module provides utility functions including:

- Logging setup and configuration
- Evaluation statistics tracking
"""

from lensmag.utils.logging import (
    EvaluationLogger,
    EvaluationStats,
    configure_logging,
)

__all__ = [
    "EvaluationLogger",
    "EvaluationStats",
    "configure_logging",
]
