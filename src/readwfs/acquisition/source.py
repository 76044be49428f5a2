"""
Feature sources: the boundary to the external OGR library.

This module provides the FeatureSource base class that the paging engine
and discovery operations talk to, and FionaFeatureSource, the default
implementation backed by GDAL/OGR through fiona:
- Layer listing and layer/field metadata
- Reading one batch of features as a DataFrame with a WKB geometry column
- Server-reported feature counts
- Scoped GDAL configuration via fiona.Env
"""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from itertools import islice
from typing import Any, Optional

import fiona
import pandas as pd
from shapely.geometry import shape

from .exceptions import TransportError
from .models import BoundingBox, FieldInfo, LayerInfo

logger = logging.getLogger(__name__)

# Name of the WKB column in batches produced by FionaFeatureSource
GEOMETRY_COLUMN = "_ogr_geometry_"


class FeatureSource(ABC):
    """
    Abstract base class for OGR-compatible feature sources.

    Implementations must be safe to share between independent reads: no
    per-read state may live on the instance.
    """

    # Name of the WKB column in batches from read_batch, if fixed
    geometry_column: Optional[str] = None

    @abstractmethod
    def list_layers(self, dsn: str) -> list[str]:
        """
        List the layer names exposed by a connection string.

        Args:
            dsn: Driver-prefixed connection string.

        Returns:
            Layer names in service order.
        """

    @abstractmethod
    def read_batch(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        limit: Optional[int] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> pd.DataFrame:
        """
        Read features from a layer into a DataFrame.

        Args:
            dsn: Driver-prefixed connection string.
            layer: Layer name.
            where: OGR SQL attribute filter.
            bbox: Spatial filter applied by the library.
            limit: Stop after this many features.
            open_options: Driver open options.

        Returns:
            DataFrame with attribute columns and a WKB geometry column.
        """

    @abstractmethod
    def feature_count(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> Optional[int]:
        """
        Ask the library for the number of features in a layer.

        Returns:
            The count, or None if the layer cannot report one.
        """

    @abstractmethod
    def describe_layer(
        self,
        dsn: str,
        layer: str,
        open_options: Optional[dict[str, str]] = None,
    ) -> LayerInfo:
        """Return geometry type, count, extent and SRS for a layer."""

    @abstractmethod
    def list_fields(self, dsn: str, layer: str) -> list[FieldInfo]:
        """Return the non-geometry field definitions of a layer."""

    @abstractmethod
    def configured(self, options: dict[str, Any]) -> AbstractContextManager:
        """
        Context manager applying library configuration for one read.

        Prior values must be restored on every exit path.

        Args:
            options: Configuration option names and values.
        """


class FionaFeatureSource(FeatureSource):
    """
    Feature source backed by GDAL/OGR through fiona.

    Usage:
        source = FionaFeatureSource()

        with source.configured({"OGR_WFS_PAGING_ALLOWED": "OFF"}):
            batch = source.read_batch(dsn, "ns:layer", limit=100)
    """

    geometry_column = GEOMETRY_COLUMN

    def list_layers(self, dsn: str) -> list[str]:
        try:
            layers = fiona.listlayers(dsn)
        except Exception as e:
            raise TransportError(f"Failed to list layers for {dsn}: {e}", cause=e)

        logger.debug("Found %d layers at %s", len(layers), dsn)
        return list(layers)

    def read_batch(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        limit: Optional[int] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> pd.DataFrame:
        rows: list[dict[str, Any]] = []
        crs_wkt: Optional[str] = None

        try:
            with fiona.open(dsn, layer=layer, **(open_options or {})) as src:
                crs_wkt = src.crs_wkt or None
                columns = list(src.schema["properties"].keys())

                features = src.filter(
                    bbox=bbox.as_tuple() if bbox else None,
                    where=where,
                )
                if limit is not None:
                    features = islice(features, limit)

                for feature in features:
                    rows.append(self._feature_to_row(feature))

        except Exception as e:
            raise TransportError(
                f"Failed to read layer '{layer}' from {dsn}: {e}",
                cause=e,
            )

        frame = pd.DataFrame(rows, columns=["FID", *columns, GEOMETRY_COLUMN])
        frame.attrs["crs_wkt"] = crs_wkt
        return frame

    @staticmethod
    def _feature_to_row(feature: Any) -> dict[str, Any]:
        """Flatten a fiona feature into a row with WKB geometry."""
        row = dict(feature.properties or {})
        row["FID"] = feature.id
        geometry = feature.geometry
        row[GEOMETRY_COLUMN] = shape(geometry).wkb if geometry is not None else None
        return row

    def feature_count(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> Optional[int]:
        if where:
            # fiona counts the unfiltered layer only
            return None

        try:
            with fiona.open(dsn, layer=layer, **(open_options or {})) as src:
                count = len(src)
        except Exception as e:
            logger.warning("Feature count unavailable for '%s': %s", layer, e)
            return None

        return count if count >= 0 else None

    def describe_layer(
        self,
        dsn: str,
        layer: str,
        open_options: Optional[dict[str, str]] = None,
    ) -> LayerInfo:
        try:
            with fiona.open(dsn, layer=layer, **(open_options or {})) as src:
                geometry_type = src.schema.get("geometry")
                info = LayerInfo(
                    name=layer,
                    geom_column=GEOMETRY_COLUMN if geometry_type else None,
                    geom_type=geometry_type,
                    srs_wkt=src.crs_wkt or None,
                )
                try:
                    info.feature_count = len(src)
                except Exception as e:
                    logger.debug("No feature count for '%s': %s", layer, e)
                try:
                    info.xmin, info.ymin, info.xmax, info.ymax = src.bounds
                except Exception as e:
                    logger.debug("No extent for '%s': %s", layer, e)
        except Exception as e:
            raise TransportError(f"Failed to open layer '{layer}': {e}", cause=e)

        return info

    def list_fields(self, dsn: str, layer: str) -> list[FieldInfo]:
        try:
            with fiona.open(dsn, layer=layer) as src:
                properties = dict(src.schema["properties"])
        except Exception as e:
            raise TransportError(
                f"Failed to read schema of layer '{layer}': {e}",
                cause=e,
            )

        return [FieldInfo.from_schema(name, spec) for name, spec in properties.items()]

    def configured(self, options: dict[str, Any]) -> AbstractContextManager:
        return fiona.Env(**options)
