"""
Discovery and read operations for vector web services.

This module provides the FeatureReader class, which ties the connection
builder, the paging engine, truncation detection and result assembly
together, plus module-level shortcuts using a default reader.

Usage:
    from readwfs import read_features, list_layers, example_url, example_bbox

    url = example_url("list_tasmania")
    layers = list_layers(url, version="2.0.0")

    result = read_features(
        url,
        layer="Public_OpenDataWFS:LIST_CADASTRAL_PARCELS",
        bbox=example_bbox("sandy_bay"),
        srs="EPSG:28355",
        max_features=100,
    )
    result.frame.plot()
"""

import logging
import re
import threading
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from .acquisition.connection import build_read_dsn, connect
from .acquisition.counts import CountQuery
from .acquisition.exceptions import AcquisitionError, InputError
from .acquisition.models import (
    DEFAULT_CONFIG,
    DriverKind,
    FieldInfo,
    LayerInfo,
    ReaderConfig,
    ReadRequest,
    ServiceConnection,
    bbox_or_none,
)
from .acquisition.paging import PagingEngine
from .acquisition.source import FeatureSource, FionaFeatureSource
from .acquisition.truncation import detect_truncation, report_truncation
from .processing.assembler import ReadResult, assemble

logger = logging.getLogger(__name__)

DriverHint = Union[str, DriverKind, None]


class FeatureReader:
    """
    Reads features and layer metadata from WFS, OAPIF and ArcGIS REST services.

    A reader holds only configuration and stateless collaborators, so one
    instance may serve concurrent reads.

    Attributes:
        config: ReaderConfig for paging, count probing and post-processing.
        source: Feature source used for every request.
        engine: PagingEngine running reads.
    """

    def __init__(
        self,
        config: Optional[ReaderConfig] = None,
        source: Optional[FeatureSource] = None,
        count_query: Optional[CountQuery] = None,
    ) -> None:
        """
        Initialize the reader.

        Args:
            config: Optional ReaderConfig. Defaults to DEFAULT_CONFIG.
            source: Optional feature source. Defaults to FionaFeatureSource.
            count_query: Optional count query. Built from the config when
                         count probing is enabled.
        """
        self.config = config or DEFAULT_CONFIG
        self.source = source or FionaFeatureSource()
        if count_query is None and self.config.count_query_enabled:
            count_query = CountQuery(self.config)
        self.engine = PagingEngine(
            self.source,
            paging=self.config.paging,
            count_query=count_query,
            user_agent=self.config.user_agent,
        )

    def list_layers(
        self,
        base_url: str,
        driver: DriverHint = "auto",
        version: Optional[str] = None,
        srs: Optional[str] = None,
    ) -> list[str]:
        """
        List available layers from a service.

        Args:
            base_url: Service endpoint URL, raw or driver-prefixed.
            driver: "auto" or one of "WFS", "OAPIF", "ESRIJSON".
            version: WFS version.
            srs: Target SRS.

        Returns:
            Layer names.
        """
        connection = connect(base_url, driver=driver, version=version, srs=srs)
        layers = self.source.list_layers(connection.dsn)
        logger.info("Found %d layers at %s", len(layers), connection.endpoint)
        return layers

    def find_layers(
        self,
        base_url: str,
        pattern: str,
        driver: DriverHint = "auto",
        version: Optional[str] = None,
        srs: Optional[str] = None,
        ignore_case: bool = True,
    ) -> list[str]:
        """
        Search layer names with a regular expression.

        Args:
            base_url: Service endpoint URL.
            pattern: Regular expression matched anywhere in the layer name.
            ignore_case: Match case-insensitively.

        Returns:
            Matching layer names in service order.

        Raises:
            InputError: If the pattern is not a valid regular expression.
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            raise InputError(f"Invalid layer pattern {pattern!r}: {e}", cause=e)

        layers = self.list_layers(base_url, driver=driver, version=version, srs=srs)
        matches = [name for name in layers if regex.search(name)]

        logger.info("Found %d layers matching '%s'", len(matches), pattern)
        return matches

    def get_layer_metadata(
        self,
        base_url: str,
        layers: Optional[Sequence[str]] = None,
        driver: DriverHint = "auto",
        version: Optional[str] = None,
        srs: Optional[str] = None,
    ) -> list[LayerInfo]:
        """
        Describe layers: geometry type, feature count, extent and SRS.

        Inspecting every layer of a large service can be slow; narrow the
        list with find_layers first. A layer that cannot be opened is
        reported with only its name set.

        Args:
            base_url: Service endpoint URL.
            layers: Layer names to inspect, or None for all layers.

        Returns:
            One LayerInfo per layer, in the requested order.
        """
        connection = connect(base_url, driver=driver, version=version, srs=srs)
        if layers is None:
            layers = self.source.list_layers(connection.dsn)

        open_options = None
        if connection.driver is DriverKind.WFS:
            open_options = {"TRUST_CAPABILITIES_BOUNDS": "YES"}

        result = []
        for name in layers:
            try:
                info = self.source.describe_layer(
                    connection.dsn, name, open_options=open_options
                )
            except AcquisitionError as e:
                logger.warning("Could not describe layer '%s': %s", name, e)
                info = LayerInfo(name=name)
            result.append(info)

        return result

    def list_fields(
        self,
        base_url: str,
        layer: str,
        driver: DriverHint = "auto",
        version: Optional[str] = None,
        srs: Optional[str] = None,
    ) -> list[FieldInfo]:
        """
        Get the attribute (non-geometry) field definitions of a layer.

        Args:
            base_url: Service endpoint URL.
            layer: Layer name.

        Returns:
            FieldInfo per attribute field; empty if the layer has none.
        """
        connection = connect(base_url, driver=driver, version=version, srs=srs)
        return self.source.list_fields(connection.dsn, layer)

    def read_features(
        self,
        base_url: str,
        layer: str,
        bbox: Optional[Any] = None,
        max_features: Optional[int] = None,
        where: Optional[str] = None,
        driver: DriverHint = "auto",
        version: Optional[str] = None,
        srs: Optional[str] = None,
        page_size: Optional[int] = None,
        promote_to_multi: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReadResult:
        """
        Read features from a layer, paging through the service as needed.

        For WFS the bbox, page size and offset are baked into the request
        URL; for OAPIF and ESRIJSON the bbox becomes an OGR spatial filter
        and the driver follows the service's own paging.

        Args:
            base_url: Service endpoint URL.
            layer: Layer name; see list_layers.
            bbox: (xmin, ymin, xmax, ymax) or BoundingBox in the target SRS.
            max_features: Cap on returned features. 0 returns an empty result
                          without contacting the service.
            where: OGR SQL attribute filter.
            driver: "auto" or one of "WFS", "OAPIF", "ESRIJSON".
            version: WFS version. Versions below 2.0 cannot page.
            srs: Target SRS as "EPSG:XXXX".
            page_size: Features per page; driver default if None.
            promote_to_multi: Promote single-part geometries to multi-part.
                              Defaults to the config setting.
            cancel_event: Set to abandon the read before its next page.

        Returns:
            ReadResult with the features, truncation verdict and paging info.

        Raises:
            InputError: For a malformed bbox, unsupported driver or bad sizes.
            TransportError: If a page request fails.
            SchemaError: If the geometry column cannot be identified.
        """
        connection = connect(base_url, driver=driver, version=version, srs=srs)
        request = self.build_request(layer, bbox, max_features, where, page_size)

        paged = self.engine.run(connection, request, cancel_event=cancel_event)

        verdict = detect_truncation(
            paged.cursor.fetched_so_far,
            expected_total=paged.cursor.reported_total,
            max_features=request.max_features,
        )
        report_truncation(verdict, layer)

        if promote_to_multi is None:
            promote_to_multi = self.config.promote_to_multi

        frame = assemble(
            paged.batches,
            geometry_column=paged.geometry_column,
            crs=paged.crs_wkt or connection.srs,
            promote_to_multi=promote_to_multi,
        )
        logger.info("%d features returned from '%s'", len(frame), layer)

        return ReadResult(
            frame=frame,
            verdict=verdict,
            strategy=paged.strategy,
            degraded=paged.degraded,
            pages=paged.requests,
        )

    @staticmethod
    def build_request(
        layer: str,
        bbox: Optional[Any],
        max_features: Optional[int],
        where: Optional[str],
        page_size: Optional[int],
    ) -> ReadRequest:
        """Validate caller input into a ReadRequest before any request is made."""
        try:
            box = bbox_or_none(bbox)
            return ReadRequest(
                layer=layer,
                bbox=box,
                max_features=max_features,
                where=where,
                page_size=page_size,
            )
        except (ValidationError, ValueError, TypeError) as e:
            raise InputError(f"Invalid read request for '{layer}': {e}", cause=e)


def read_dsn_for(connection: ServiceConnection, request: ReadRequest) -> str:
    """
    The single-request DSN for a read, as shown by the CLI in verbose mode.

    Args:
        connection: Resolved service connection.
        request: The read request.

    Returns:
        A WFS GetFeature DSN, or the driver-prefixed URL for other drivers.
    """
    if connection.driver is DriverKind.WFS:
        return build_read_dsn(
            connection.endpoint,
            layer=request.layer,
            bbox=request.bbox,
            max_features=request.max_features,
            version=connection.version,
            srs=connection.srs,
        )
    return connection.dsn


_default_reader: Optional[FeatureReader] = None
_default_lock = threading.Lock()


def _reader() -> FeatureReader:
    global _default_reader
    with _default_lock:
        if _default_reader is None:
            _default_reader = FeatureReader()
        return _default_reader


def list_layers(
    base_url: str,
    driver: DriverHint = "auto",
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> list[str]:
    """List available layers; see FeatureReader.list_layers."""
    return _reader().list_layers(base_url, driver=driver, version=version, srs=srs)


def find_layers(
    base_url: str,
    pattern: str,
    driver: DriverHint = "auto",
    version: Optional[str] = None,
    srs: Optional[str] = None,
    ignore_case: bool = True,
) -> list[str]:
    """Search layer names by pattern; see FeatureReader.find_layers."""
    return _reader().find_layers(
        base_url,
        pattern,
        driver=driver,
        version=version,
        srs=srs,
        ignore_case=ignore_case,
    )


def get_layer_metadata(
    base_url: str,
    layers: Optional[Sequence[str]] = None,
    driver: DriverHint = "auto",
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> list[LayerInfo]:
    """Describe layers; see FeatureReader.get_layer_metadata."""
    return _reader().get_layer_metadata(
        base_url, layers=layers, driver=driver, version=version, srs=srs
    )


def list_fields(
    base_url: str,
    layer: str,
    driver: DriverHint = "auto",
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> list[FieldInfo]:
    """Get attribute field definitions; see FeatureReader.list_fields."""
    return _reader().list_fields(
        base_url, layer, driver=driver, version=version, srs=srs
    )


def read_features(base_url: str, layer: str, **kwargs: Any) -> ReadResult:
    """Read features from a layer; see FeatureReader.read_features."""
    return _reader().read_features(base_url, layer, **kwargs)
