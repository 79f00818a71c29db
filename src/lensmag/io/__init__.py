"""File I/O for lensmag.

This module handles the plain-text files the engine reads and writes:
- read_espl_table / write_espl_table: Single-lens lookup tables
- write_curves / read_curves: Contour and caustic exports
"""

from lensmag.io.table import (
    ESPLTableData,
    read_curves,
    read_espl_table,
    write_contour_set,
    write_curves,
    write_espl_table,
)

__all__ = [
    "ESPLTableData",
    "read_curves",
    "read_espl_table",
    "write_contour_set",
    "write_curves",
    "write_espl_table",
]
