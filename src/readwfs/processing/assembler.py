"""
Assembly of paged feature batches into a GeoDataFrame.

Batches arrive as plain DataFrames whose geometry is WKB in a column whose
name depends on the driver. This module finds that column, decodes it
with geopandas, and returns a single frame with a ``geometry`` column.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import geopandas as gpd
import pandas as pd
from shapely.geometry import LineString, MultiLineString, MultiPoint, MultiPolygon, Point, Polygon
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from ..acquisition.exceptions import SchemaError
from ..acquisition.models import TruncationVerdict

logger = logging.getLogger(__name__)

# Geometry column names used by the OGR drivers, in order of preference
GEOMETRY_CANDIDATES = [
    "SHAPE",
    "Shape",
    "shape",
    "GEOMETRY",
    "Geometry",
    "geometry",
    "the_geom",
    "geom",
    "OGR_GEOMETRY",
    "_ogr_geometry_",
]

_MULTI_TYPES = {
    Point: MultiPoint,
    LineString: MultiLineString,
    Polygon: MultiPolygon,
}


def _holds_wkb(series: pd.Series) -> bool:
    """True when every non-null value is binary; an all-null column qualifies."""
    return all(isinstance(v, (bytes, bytearray, memoryview)) for v in series.dropna())


def _is_binary_column(series: pd.Series) -> bool:
    if series.dropna().empty or series.dtype != object:
        return False
    return _holds_wkb(series)


def identify_geometry_column(
    frame: pd.DataFrame, hint: Optional[str] = None
) -> str:
    """
    Find the WKB geometry column of a batch.

    Args:
        frame: One batch of features.
        hint: Column name known from a previous batch or the layer definition.

    Returns:
        Name of the geometry column.

    Raises:
        SchemaError: If no known geometry column holds WKB and no other
                     column holds binary values.
    """
    if hint is not None and hint in frame.columns:
        return hint

    for name in GEOMETRY_CANDIDATES:
        if name in frame.columns and _holds_wkb(frame[name]):
            return name

    for name in frame.columns:
        if _is_binary_column(frame[name]):
            logger.debug("Using binary column '%s' as geometry", name)
            return name

    raise SchemaError(
        "Cannot identify geometry column in fetched data",
        columns=[str(c) for c in frame.columns],
    )


def _promote(geometry: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    if geometry is None:
        return None
    multi = _MULTI_TYPES.get(type(geometry))
    return multi([geometry]) if multi else geometry


def empty_result(crs: Optional[str] = None) -> gpd.GeoDataFrame:
    """An empty frame with only a geometry column."""
    return gpd.GeoDataFrame(
        {"geometry": gpd.GeoSeries([], crs=crs)},
        geometry="geometry",
        crs=crs,
    )


def assemble(
    batches: list[pd.DataFrame],
    geometry_column: Optional[str] = None,
    crs: Optional[str] = None,
    promote_to_multi: bool = False,
) -> gpd.GeoDataFrame:
    """
    Merge batches into one GeoDataFrame.

    The geometry column is decoded from WKB and renamed to ``geometry``;
    an ``FID`` column with no values is dropped.

    Args:
        batches: DataFrames in page order.
        geometry_column: Geometry column name, detected if not given.
        crs: CRS of the geometries (WKT or "EPSG:XXXX").
        promote_to_multi: Convert single-part geometries to multi-part.

    Returns:
        GeoDataFrame with attribute columns and a ``geometry`` column.

    Raises:
        SchemaError: If the geometry column cannot be identified
                     or does not decode as WKB.
    """
    non_empty = [batch for batch in batches if len(batch)]
    if not non_empty:
        return empty_result(crs)

    raw = pd.concat(non_empty, ignore_index=True)
    geom_name = identify_geometry_column(raw, geometry_column)

    try:
        geometry = gpd.GeoSeries.from_wkb(raw[geom_name], crs=crs)
    except (GEOSException, TypeError, ValueError) as e:
        raise SchemaError(
            f"Column '{geom_name}' does not hold WKB geometries",
            columns=[str(c) for c in raw.columns],
            cause=e,
        )
    if promote_to_multi:
        geometry = gpd.GeoSeries(
            [_promote(g) for g in geometry], index=geometry.index, crs=crs
        )

    attributes = raw.drop(columns=[geom_name])
    if "FID" in attributes.columns and attributes["FID"].isna().all():
        attributes = attributes.drop(columns=["FID"])
    if "geometry" in attributes.columns:
        attributes = attributes.rename(columns={"geometry": "geometry_attr"})

    result = gpd.GeoDataFrame(attributes, geometry=geometry.rename("geometry"), crs=crs)

    logger.debug(
        "Assembled %d features with %d attribute columns",
        len(result),
        len(attributes.columns),
    )
    return result


@dataclass
class ReadResult:
    """
    Outcome of a feature read.

    Attributes:
        frame: Features with a ``geometry`` column.
        verdict: Truncation verdict for the read.
        strategy: Name of the paging strategy used.
        degraded: True when the service could not be paged.
        pages: Number of page requests issued.
    """

    frame: gpd.GeoDataFrame
    verdict: TruncationVerdict
    strategy: str
    degraded: bool = False
    pages: int = 0

    @property
    def truncated(self) -> bool:
        return self.verdict.truncated

    @property
    def geometry(self) -> gpd.GeoSeries:
        return self.frame.geometry

    @property
    def wkb(self) -> list[Optional[bytes]]:
        """Geometries as WKB, None for missing geometries."""
        return [None if g is None else g.wkb for g in self.frame.geometry]

    def __len__(self) -> int:
        return len(self.frame)
