"""
Feature service acquisition for readwfs.

This package builds OGR connection strings for WFS, OGC API Features and
ArcGIS REST services, pages through their result sets and detects
silently truncated reads.

Primary Usage:
    from readwfs.acquisition import PagingEngine, FionaFeatureSource, connect
    from readwfs.acquisition import ReadRequest

    engine = PagingEngine(FionaFeatureSource())
    paged = engine.run(connect(url), ReadRequest(layer="ns:parcels"))
"""

from .exceptions import (
    AcquisitionError,
    ConnectionError,
    DegradedPagingWarning,
    InputError,
    InvalidResponseError,
    NotFoundError,
    ReadCancelledError,
    SchemaError,
    ServerError,
    TimeoutError,
    TransportError,
    TruncationWarning,
)
from .models import (
    DEFAULT_CONFIG,
    BoundingBox,
    DriverKind,
    FieldInfo,
    LayerInfo,
    PageCursor,
    PagingConfig,
    ReaderConfig,
    ReadRequest,
    ServiceConnection,
    TimeoutConfig,
    TruncationVerdict,
)
from .connection import (
    build_capabilities_dsn,
    build_read_dsn,
    connect,
    detect_driver,
    resolve_driver,
    strip_paging_params,
    strip_prefix,
)
from .source import FeatureSource, FionaFeatureSource
from .counts import CountQuery
from .truncation import detect_truncation, report_truncation
from .paging import (
    DriverManagedPaging,
    OffsetPaging,
    PagedRead,
    PagingEngine,
    PagingState,
    PagingStrategy,
    SingleRequestPaging,
    select_strategy,
)

__all__ = [
    # Exceptions
    "AcquisitionError",
    "ConnectionError",
    "InputError",
    "InvalidResponseError",
    "NotFoundError",
    "ReadCancelledError",
    "SchemaError",
    "ServerError",
    "TimeoutError",
    "TransportError",
    # Warnings
    "DegradedPagingWarning",
    "TruncationWarning",
    # Models
    "BoundingBox",
    "DriverKind",
    "FieldInfo",
    "LayerInfo",
    "PageCursor",
    "PagingConfig",
    "ReaderConfig",
    "ReadRequest",
    "ServiceConnection",
    "TimeoutConfig",
    "TruncationVerdict",
    # Pre-configured
    "DEFAULT_CONFIG",
    # Connection strings
    "build_capabilities_dsn",
    "build_read_dsn",
    "connect",
    "detect_driver",
    "resolve_driver",
    "strip_paging_params",
    "strip_prefix",
    # Sources
    "CountQuery",
    "FeatureSource",
    "FionaFeatureSource",
    # Paging
    "DriverManagedPaging",
    "OffsetPaging",
    "PagedRead",
    "PagingEngine",
    "PagingState",
    "PagingStrategy",
    "SingleRequestPaging",
    "select_strategy",
    # Truncation
    "detect_truncation",
    "report_truncation",
]
