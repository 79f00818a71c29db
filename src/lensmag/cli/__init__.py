"""Command-line interface for lensmag.

This module provides the CLI using Typer with rich output for
user-friendly feedback.

Key features:
- Staged magnification evaluation with diagnostics
- Multi-band limb-darkened evaluation
- Critical-curve, caustic and image-contour export
- JSON output for scripting
"""

from lensmag.cli.app import cli, main

__all__ = ["cli", "main"]
