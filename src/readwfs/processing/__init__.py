"""
Result processing for readwfs.

This module turns paged feature batches into GeoDataFrames with a
WKB-decoded geometry column.
"""

from .assembler import (
    GEOMETRY_CANDIDATES,
    ReadResult,
    assemble,
    empty_result,
    identify_geometry_column,
)

__all__ = [
    "GEOMETRY_CANDIDATES",
    "ReadResult",
    "assemble",
    "empty_result",
    "identify_geometry_column",
]
