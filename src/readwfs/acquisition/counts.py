"""
Service-reported feature totals for drivers that page internally.

When the OGR driver traverses pages itself (OAPIF, ESRIJSON) the count it
reports after opening a layer may describe a single page rather than the
whole result set, depending on driver and server. The CountQuery asks the
service directly instead:
- ArcGIS REST: ``<layer>/query?returnCountOnly=true`` -> ``count``
- OGC API Features: ``<collection>/items?limit=1`` -> ``numberMatched``

Any failure yields None so that an unavailable count is never mistaken
for truncation.
"""

import logging
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit, urlunsplit

import httpx

from .exceptions import (
    AcquisitionError,
    ConnectionError,
    InvalidResponseError,
    NotFoundError,
    ServerError,
    TimeoutError,
)
from .models import BoundingBox, DriverKind, ReaderConfig, ReadRequest, ServiceConnection

logger = logging.getLogger(__name__)

_OGC_CRS_URI = "http://www.opengis.net/def/crs/EPSG/0/{code}"


class CountQuery:
    """
    Fetches the total feature count a service reports for a query.

    Usage:
        counter = CountQuery(config)
        total = counter.reported_total(connection, request)

    Attributes:
        config: The ReaderConfig supplying timeouts and User-Agent.
    """

    def __init__(
        self,
        config: ReaderConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the count query.

        Args:
            config: ReaderConfig with timeout and user agent settings.
            transport: Optional httpx transport, e.g. httpx.MockTransport.
        """
        self.config = config
        self._transport = transport

    def _create_client(self) -> httpx.Client:
        """Create an httpx.Client with configured settings."""
        timeout = httpx.Timeout(
            connect=self.config.timeout.connect,
            read=self.config.timeout.read,
            write=self.config.timeout.write,
            pool=self.config.timeout.pool,
        )
        return httpx.Client(
            timeout=timeout,
            headers={
                "User-Agent": self.config.user_agent,
                "Accept": "application/json, application/geo+json",
            },
            follow_redirects=True,
            transport=self._transport,
        )

    def reported_total(
        self, connection: ServiceConnection, request: ReadRequest
    ) -> Optional[int]:
        """
        Ask the service how many features match a read request.

        Args:
            connection: Resolved service connection.
            request: The read request (layer, bbox, where).

        Returns:
            The reported total, or None if unsupported or unavailable.
        """
        try:
            if connection.driver is DriverKind.ESRIJSON:
                return self.fetch_esri_count(
                    connection.endpoint,
                    layer=request.layer,
                    where=request.where,
                    bbox=request.bbox,
                    srs=connection.srs,
                )
            if connection.driver is DriverKind.OAPIF:
                if request.where:
                    logger.debug("OAPIF count skipped: attribute filter is client-side")
                    return None
                return self.fetch_oapif_count(
                    connection.endpoint,
                    layer=request.layer,
                    bbox=request.bbox,
                    srs=connection.srs,
                )
        except AcquisitionError as e:
            logger.warning(
                "Count query for '%s' failed, total unknown: %s", request.layer, e
            )
            return None

        return None

    def get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        Make a GET request and parse the JSON response.

        Args:
            url: The URL to request.
            params: Query parameters.

        Returns:
            Parsed JSON response as a dictionary.

        Raises:
            TransportError: A classified subclass for HTTP or network failures.
            InvalidResponseError: If the response is not a JSON object.
        """
        with self._create_client() as client:
            try:
                response = client.get(url, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise self._classify_http_error(e, url)
            except httpx.TransportError as e:
                raise self._classify_transport_error(e, url)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Failed to parse JSON from {url}",
                response_text=response.text,
                cause=e,
            )

        if not isinstance(data, dict):
            raise InvalidResponseError(
                f"Expected a JSON object from {url}",
                response_text=response.text,
            )
        return data

    def fetch_esri_count(
        self,
        layer_url: str,
        layer: Optional[str] = None,
        where: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        srs: Optional[str] = None,
    ) -> Optional[int]:
        """
        Fetch the total record count for an ArcGIS REST layer query.

        Args:
            layer_url: Layer or layer query URL, optionally with query string.
            layer: Layer id appended when the URL stops at the service.
            where: SQL WHERE clause for filtering.
            bbox: Optional bounding box to filter by geometry.
            srs: SRS of the bbox, as "EPSG:XXXX".

        Returns:
            Total number of records matching the query.
        """
        parts = urlsplit(layer_url)
        existing = dict(parse_qsl(parts.query))
        path = parts.path.rstrip("/")
        if path.lower().endswith("/query"):
            path = path[: -len("/query")]
        if path.lower().endswith(("featureserver", "mapserver")) and layer and layer.isdigit():
            path = f"{path}/{layer}"
        url = urlunsplit((parts.scheme, parts.netloc, f"{path}/query", "", ""))

        params: dict[str, Any] = {
            "where": where or existing.get("where", "1=1"),
            "returnCountOnly": "true",
            "f": "json",
        }

        if bbox:
            params["geometry"] = bbox.to_dsn_value()
            params["geometryType"] = "esriGeometryEnvelope"
            params["spatialRel"] = "esriSpatialRelIntersects"
            code = _epsg_code(srs)
            if code:
                params["inSR"] = code

        data = self.get_json(url, params=params)

        if "error" in data:
            raise InvalidResponseError(f"Service error from {url}: {data['error']}")

        count = data.get("count")
        if not isinstance(count, int):
            return None

        logger.info("Layer %s reports %d records matching query", url, count)
        return count

    def fetch_oapif_count(
        self,
        collection_url: str,
        layer: Optional[str] = None,
        bbox: Optional[BoundingBox] = None,
        srs: Optional[str] = None,
    ) -> Optional[int]:
        """
        Fetch ``numberMatched`` for an OGC API Features collection.

        Args:
            collection_url: Landing page, collections or items URL.
            layer: Collection id used when the URL does not name one.
            bbox: Optional bounding box filter.
            srs: SRS of the bbox, sent as ``bbox-crs`` when not WGS84.

        Returns:
            The number of matching features, or None if not reported.
        """
        url = _items_url(collection_url, layer)
        params: dict[str, Any] = {"limit": 1}

        if bbox:
            params["bbox"] = bbox.to_dsn_value()
            code = _epsg_code(srs)
            if code and code != "4326":
                params["bbox-crs"] = _OGC_CRS_URI.format(code=code)

        data = self.get_json(url, params=params)

        matched = data.get("numberMatched")
        if not isinstance(matched, int):
            logger.debug("Collection %s does not report numberMatched", url)
            return None

        logger.info("Collection %s reports %d matching features", url, matched)
        return matched

    def _classify_http_error(
        self, error: httpx.HTTPStatusError, url: str
    ) -> Exception:
        """
        Convert httpx.HTTPStatusError to appropriate custom exception.

        Args:
            error: The httpx HTTPStatusError.
            url: The URL that was requested.

        Returns:
            Appropriate custom exception for the status code.
        """
        status = error.response.status_code

        if status == 404:
            return NotFoundError(f"Resource not found: {url}", url=url, cause=error)
        elif status >= 500:
            return ServerError(
                f"Server error {status} for {url}",
                status_code=status,
                cause=error,
            )
        else:
            return InvalidResponseError(
                f"HTTP {status} error for {url}",
                response_text=error.response.text,
                cause=error,
            )

    def _classify_transport_error(
        self, error: httpx.TransportError, url: str
    ) -> Exception:
        """
        Convert httpx transport errors to appropriate custom exceptions.

        Args:
            error: The httpx TransportError.
            url: The URL that was requested.

        Returns:
            Appropriate custom exception for the error type.
        """
        if isinstance(error, httpx.TimeoutException):
            timeout_type = "unknown"
            if isinstance(error, httpx.ConnectTimeout):
                timeout_type = "connect"
            elif isinstance(error, httpx.ReadTimeout):
                timeout_type = "read"
            elif isinstance(error, httpx.WriteTimeout):
                timeout_type = "write"
            elif isinstance(error, httpx.PoolTimeout):
                timeout_type = "pool"

            return TimeoutError(
                f"Request to {url} timed out ({timeout_type})",
                timeout_type=timeout_type,
                cause=error,
            )
        return ConnectionError(f"Failed to connect to {url}: {error}", cause=error)


def _epsg_code(srs: Optional[str]) -> Optional[str]:
    """Extract "28355" from "EPSG:28355"; None for anything else."""
    if not srs:
        return None
    authority, _, code = srs.partition(":")
    if authority.upper() == "EPSG" and code.isdigit():
        return code
    return None


def _items_url(collection_url: str, layer: Optional[str]) -> str:
    """Resolve the ``/items`` endpoint of an OGC API Features collection."""
    parts = urlsplit(collection_url)
    path = parts.path.rstrip("/")
    segments = path.split("/")

    if "items" in segments:
        path = "/".join(segments[: segments.index("items") + 1])
    elif len(segments) >= 2 and segments[-2] == "collections":
        path = f"{path}/items"
    elif segments and segments[-1] == "collections":
        path = f"{path}/{layer}/items"
    else:
        path = f"{path}/collections/{layer}/items"

    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))
