"""
Connection strings for vector web services.

This module detects which OGR driver a service URL belongs to and builds
the driver-prefixed connection strings (DSNs) handed to the OGR layer:

    WFS:<url>?service=WFS[&version=<v>][&srsName=<srs>]
    WFS:<url>?service=WFS&request=GetFeature...&typeName=<layer>
        [&bbox=...][&count=<n>][&startIndex=<offset>]
    OAPIF:<url>
    ESRIJSON:<url>

All builders are idempotent: a parameter already present in the URL
(matched case-insensitively) is never added a second time, and exactly
one driver prefix is emitted.
"""

import logging
import re
from typing import Any, Optional, Union

from pydantic import ValidationError

from .exceptions import InputError
from .models import BoundingBox, DriverKind, ServiceConnection

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"^(WFS|OAPIF|ESRIJSON):", re.IGNORECASE)

# Default service URL patterns, checked in order after explicit prefixes
_WFS_PATTERN = re.compile(r"wfsserver|service=wfs")
_OAPIF_PATTERN = re.compile(r"/collections|ogc/features")
_ESRI_SERVER_PATTERN = re.compile(r"featureserver|mapserver")

# Set per page by the paging engine, lower-cased
_PAGING_PARAMS = {"startindex", "count", "maxfeatures"}


def strip_prefix(url: str) -> str:
    """
    Remove a leading OGR driver prefix from a URL.

    Args:
        url: Raw URL or connection string.

    Returns:
        The URL without its ``WFS:``, ``OAPIF:`` or ``ESRIJSON:`` prefix.
    """
    return _PREFIX_RE.sub("", url, count=1)


def detect_driver(url: str) -> DriverKind:
    """
    Guess the OGR driver for a service URL.

    An explicit driver prefix wins; otherwise the URL is matched against
    WFS, OAPIF and ArcGIS REST patterns in that order, defaulting to WFS.

    Args:
        url: Service URL, optionally carrying a driver prefix.

    Returns:
        The detected DriverKind. Never raises.
    """
    lowered = url.lower()

    prefix = _PREFIX_RE.match(url)
    if prefix:
        return DriverKind(prefix.group(1).upper())

    if _WFS_PATTERN.search(lowered):
        return DriverKind.WFS
    if _OAPIF_PATTERN.search(lowered):
        return DriverKind.OAPIF
    if "arcgis" in lowered and _ESRI_SERVER_PATTERN.search(lowered):
        return DriverKind.ESRIJSON

    return DriverKind.WFS


def resolve_driver(
    driver: Union[str, DriverKind, None], url: Optional[str] = None
) -> DriverKind:
    """
    Normalize a driver hint.

    Args:
        driver: "auto", None, a driver name (any case) or a DriverKind.
        url: URL used for detection when the hint is "auto" or None.

    Returns:
        The resolved DriverKind.

    Raises:
        InputError: If the driver name is not supported.
    """
    if isinstance(driver, DriverKind):
        return driver
    if driver is None or driver.lower() == "auto":
        if url is None:
            raise InputError("A URL is required to auto-detect the driver")
        return detect_driver(url)
    try:
        return DriverKind(driver.upper())
    except ValueError:
        supported = ", ".join(kind.value for kind in DriverKind)
        raise InputError(
            f"Unsupported driver: {driver!r} (expected 'auto', {supported})"
        )


def _has_param(url: str, name: str) -> bool:
    """Check whether a query parameter is present, ignoring case."""
    return re.search(rf"[?&]{name}=", url, re.IGNORECASE) is not None


def _append_params(url: str, params: list[str]) -> str:
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    if url.endswith(("?", "&")):
        separator = ""
    return url + separator + "&".join(params)


def _wfs_base_params(
    url: str,
    version: Optional[str],
    srs: Optional[str],
    request: Optional[str] = None,
) -> list[str]:
    params = []
    if not _has_param(url, "service"):
        params.append("service=WFS")
    if request is not None and not _has_param(url, "request"):
        params.append(f"request={request}")
    if version is not None and not _has_param(url, "version"):
        params.append(f"version={version}")
    if srs is not None and not _has_param(url, "srsName"):
        params.append(f"srsName={srs}")
    return params


def build_capabilities_dsn(
    url: str,
    driver: Union[str, DriverKind] = DriverKind.WFS,
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> str:
    """
    Build a discovery (layer listing) connection string.

    Args:
        url: Service URL, with or without a driver prefix.
        driver: Target driver. Version and SRS only apply to WFS.
        version: WFS version, e.g. "2.0.0".
        srs: Target SRS passed as ``srsName``, e.g. "EPSG:4326".

    Returns:
        The driver-prefixed DSN.
    """
    kind = resolve_driver(driver, url)
    base = strip_prefix(url)

    if kind is not DriverKind.WFS:
        return f"{kind.value}:{base}"

    return f"WFS:{_append_params(base, _wfs_base_params(base, version, srs))}"


def build_read_dsn(
    url: str,
    layer: Optional[str] = None,
    bbox: Optional[Any] = None,
    max_features: Optional[int] = None,
    start_index: Optional[int] = None,
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> str:
    """
    Build a WFS GetFeature connection string with filters baked into the URL.

    ``count`` carries the page size (or feature cap) and ``startIndex``
    the page offset; a zero offset is omitted.

    Args:
        url: WFS endpoint URL, with or without a ``WFS:`` prefix.
        layer: Feature type name for ``typeName``.
        bbox: BoundingBox or (xmin, ymin, xmax, ymax) sequence.
        max_features: Value for ``count``.
        start_index: Value for ``startIndex``.
        version: WFS version.
        srs: Target SRS for ``srsName`` and the bbox CRS suffix.

    Returns:
        The ``WFS:``-prefixed DSN.

    Raises:
        InputError: If the bbox is malformed or a count/offset is negative.
    """
    base = strip_prefix(url)
    params = _wfs_base_params(base, version, srs, request="GetFeature")

    if layer is not None and not _has_param(base, "typeNames?"):
        params.append(f"typeName={layer}")

    if bbox is not None:
        if _has_param(base, "bbox"):
            logger.debug("URL already carries a bbox, not adding another")
        else:
            box = _coerce_bbox(bbox)
            params.append(f"bbox={box.to_dsn_value(srs)}")

    if max_features is not None:
        if max_features < 0:
            raise InputError(f"count must be non-negative, got {max_features}")
        if not _has_param(base, "count"):
            params.append(f"count={int(max_features)}")

    if start_index:
        if start_index < 0:
            raise InputError(f"startIndex must be non-negative, got {start_index}")
        if not _has_param(base, "startIndex"):
            params.append(f"startIndex={int(start_index)}")

    return f"WFS:{_append_params(base, params)}"


def strip_paging_params(url: str) -> str:
    """
    Remove ``startIndex``, ``count`` and ``maxFeatures`` from a URL.

    Paged reads set these per request; a value pinned in the endpoint
    would make every page the same request.

    Args:
        url: Endpoint URL without a driver prefix.

    Returns:
        The URL without paging parameters (matched case-insensitively).
    """
    base, separator, query = url.partition("?")
    if not separator:
        return url

    parts = [part for part in query.split("&") if part]
    kept = [p for p in parts if p.split("=", 1)[0].lower() not in _PAGING_PARAMS]
    if len(kept) < len(parts):
        logger.warning("Ignoring paging parameters pinned in %s", url)
    return f"{base}?{'&'.join(kept)}" if kept else base


def _coerce_bbox(value: Any) -> BoundingBox:
    try:
        return BoundingBox.from_value(value)
    except (ValidationError, ValueError, TypeError) as e:
        raise InputError(f"Invalid bbox {value!r}: {e}", cause=e)


def connect(
    base_url: str,
    driver: Union[str, DriverKind, None] = "auto",
    version: Optional[str] = None,
    srs: Optional[str] = None,
) -> ServiceConnection:
    """
    Resolve a service URL and driver hint into a ServiceConnection.

    Args:
        base_url: Service endpoint URL, optionally driver-prefixed.
        driver: "auto" or one of "WFS", "OAPIF", "ESRIJSON".
        version: WFS version. Ignored for other drivers.
        srs: Target SRS as "EPSG:XXXX".

    Returns:
        An immutable ServiceConnection.

    Raises:
        InputError: If the URL is empty or the driver is unsupported.
    """
    if not base_url or not base_url.strip():
        raise InputError("A service URL is required")

    kind = resolve_driver(driver, base_url)
    connection = ServiceConnection(
        endpoint=strip_prefix(base_url.strip()),
        driver=kind,
        version=version if kind is DriverKind.WFS else None,
        srs=srs,
    )
    logger.debug("Resolved %s as %s", base_url, kind.value)
    return connection
