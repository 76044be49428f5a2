"""
readwfs: read vector features from WFS, OGC API Features and ArcGIS REST services.

Connection strings, driver detection and paging are handled here; the
protocols themselves are spoken by GDAL/OGR through fiona.

Primary Usage:
    from readwfs import example_url, list_layers, read_features

    url = example_url("esri_sample")
    list_layers(url)

    result = read_features(url, layer="esri:cities", max_features=500)
    result.frame          # GeoDataFrame
    result.truncated      # True if the service reported more features
"""

from .acquisition import (
    DEFAULT_CONFIG,
    AcquisitionError,
    BoundingBox,
    DegradedPagingWarning,
    DriverKind,
    FeatureSource,
    FieldInfo,
    FionaFeatureSource,
    InputError,
    LayerInfo,
    PagingConfig,
    ReadCancelledError,
    ReaderConfig,
    SchemaError,
    ServiceConnection,
    TransportError,
    TruncationVerdict,
    TruncationWarning,
    build_capabilities_dsn,
    build_read_dsn,
    connect,
    detect_driver,
)
from .catalog import example_bbox, example_url, known_services
from .config import load_config
from .processing import ReadResult
from .reader import (
    FeatureReader,
    find_layers,
    get_layer_metadata,
    list_fields,
    list_layers,
    read_features,
)

__version__ = "0.3.0"

__all__ = [
    # Operations
    "FeatureReader",
    "find_layers",
    "get_layer_metadata",
    "list_fields",
    "list_layers",
    "read_features",
    # Connection strings
    "build_capabilities_dsn",
    "build_read_dsn",
    "connect",
    "detect_driver",
    # Models
    "BoundingBox",
    "DriverKind",
    "FieldInfo",
    "LayerInfo",
    "PagingConfig",
    "ReadResult",
    "ReaderConfig",
    "ServiceConnection",
    "TruncationVerdict",
    "DEFAULT_CONFIG",
    "load_config",
    # Sources
    "FeatureSource",
    "FionaFeatureSource",
    # Errors and warnings
    "AcquisitionError",
    "DegradedPagingWarning",
    "InputError",
    "ReadCancelledError",
    "SchemaError",
    "TransportError",
    "TruncationWarning",
    # Examples
    "example_bbox",
    "example_url",
    "known_services",
]
