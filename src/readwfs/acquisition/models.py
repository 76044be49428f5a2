"""
Pydantic models for feature-service connections, read requests and configuration.

This module defines the configuration models for paging and the count
query HTTP client, the immutable descriptors of a service connection and
a read request, and the plain records used while paging and reporting.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DriverKind(str, Enum):
    """OGR drivers understood by the connection builder."""

    WFS = "WFS"
    OAPIF = "OAPIF"
    ESRIJSON = "ESRIJSON"


class BoundingBox(BaseModel):
    """
    Rectangular spatial filter in the target SRS of a read.

    Coordinates are not range-checked because the box may be expressed in
    a projected SRS.
    """

    model_config = ConfigDict(frozen=True)

    xmin: float = Field(..., description="Minimum x (easting or longitude)")
    ymin: float = Field(..., description="Minimum y (northing or latitude)")
    xmax: float = Field(..., description="Maximum x (easting or longitude)")
    ymax: float = Field(..., description="Maximum y (northing or latitude)")

    @model_validator(mode="after")
    def validate_ordering(self) -> "BoundingBox":
        """Reject inverted boxes; degenerate (equal) edges are allowed."""
        if self.xmin > self.xmax:
            raise ValueError("xmin must not be greater than xmax")
        if self.ymin > self.ymax:
            raise ValueError("ymin must not be greater than ymax")
        return self

    @classmethod
    def from_value(cls, value: Any) -> "BoundingBox":
        """
        Build a bounding box from a BoundingBox, a mapping or a 4-sequence.

        Args:
            value: Existing BoundingBox, dict with xmin/ymin/xmax/ymax keys,
                   or a sequence (xmin, ymin, xmax, ymax).

        Returns:
            BoundingBox instance.

        Raises:
            ValueError: If the value has the wrong shape or ordering.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(**value)
        if isinstance(value, (str, bytes)):
            raise ValueError("bbox must be a sequence of four numbers")
        items = list(value)
        if len(items) != 4:
            raise ValueError(
                f"bbox must have exactly four values, got {len(items)}"
            )
        return cls(xmin=items[0], ymin=items[1], xmax=items[2], ymax=items[3])

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def to_dsn_value(self, srs: Optional[str] = None) -> str:
        """
        Format for the WFS ``bbox`` parameter.

        Returns:
            String in format "xmin,ymin,xmax,ymax[,srs]"
        """
        value = ",".join(_format_number(v) for v in self.as_tuple())
        if srs:
            value = f"{value},{srs}"
        return value


def _format_number(value: float) -> str:
    """Integral floats lose their trailing '.0'; others keep full precision."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


class TimeoutConfig(BaseModel):
    """Configuration for count query HTTP timeouts."""

    connect: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="Timeout for establishing connection in seconds",
    )
    read: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for reading response in seconds",
    )
    write: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="Timeout for writing request in seconds",
    )
    pool: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="Timeout for acquiring connection from pool in seconds",
    )


class PagingConfig(BaseModel):
    """Configuration for paged feature reads."""

    page_size: Optional[int] = Field(
        default=None,
        gt=0,
        description="Features per page for every driver (None for driver default)",
    )
    wfs_page_size: int = Field(
        default=1000,
        gt=0,
        le=100000,
        description="Default page size for WFS startIndex/count paging",
    )
    oapif_page_size: int = Field(
        default=1000,
        gt=0,
        le=100000,
        description="Page size hint for the OAPIF driver's internal paging",
    )
    esrijson_page_size: int = Field(
        default=1000,
        gt=0,
        le=100000,
        description="Page size hint for the ESRIJSON driver's internal paging",
    )
    force_server_paging: bool = Field(
        default=True,
        description="Switch on library-managed server paging for OAPIF/ESRIJSON",
    )

    def page_size_for(self, driver: DriverKind) -> int:
        """
        Resolve the page size to use for a driver.

        Args:
            driver: The resolved driver kind.

        Returns:
            The explicit page size if configured, else the driver default.
        """
        if self.page_size is not None:
            return self.page_size
        return {
            DriverKind.WFS: self.wfs_page_size,
            DriverKind.OAPIF: self.oapif_page_size,
            DriverKind.ESRIJSON: self.esrijson_page_size,
        }[driver]


class ReaderConfig(BaseModel):
    """
    Complete configuration for a feature reader.

    Aggregates paging behaviour, count query timeouts and result
    post-processing options.
    """

    paging: PagingConfig = Field(
        default_factory=PagingConfig,
        description="Paging configuration",
    )
    timeout: TimeoutConfig = Field(
        default_factory=TimeoutConfig,
        description="Count query timeout configuration",
    )
    user_agent: str = Field(
        default="readwfs/0.3",
        description="User-Agent header for count query requests",
    )
    count_query_enabled: bool = Field(
        default=True,
        description="Ask OAPIF/ESRIJSON services for their reported total",
    )
    promote_to_multi: bool = Field(
        default=False,
        description="Promote single-part geometries to multi-part",
    )


class ServiceConnection(BaseModel):
    """Resolved endpoint and driver for one read or discovery call."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(..., min_length=1, description="URL without driver prefix")
    driver: DriverKind = Field(..., description="Resolved OGR driver")
    version: Optional[str] = Field(default=None, description="WFS version")
    srs: Optional[str] = Field(default=None, description="Target SRS, e.g. EPSG:4326")

    @property
    def dsn(self) -> str:
        """Discovery connection string for this service."""
        from .connection import build_capabilities_dsn

        return build_capabilities_dsn(
            self.endpoint, driver=self.driver, version=self.version, srs=self.srs
        )


class ReadRequest(BaseModel):
    """What to read from a layer; immutable for the duration of a read."""

    model_config = ConfigDict(frozen=True)

    layer: str = Field(..., min_length=1, description="Layer / feature type name")
    bbox: Optional[BoundingBox] = Field(default=None, description="Spatial filter")
    max_features: Optional[int] = Field(
        default=None, ge=0, description="Cap on returned features"
    )
    where: Optional[str] = Field(default=None, description="OGR SQL attribute filter")
    page_size: Optional[int] = Field(
        default=None, gt=0, description="Features per page (None for driver default)"
    )


@dataclass
class PageCursor:
    """Mutable paging state owned by a single read."""

    offset: int = 0
    fetched_so_far: int = 0
    reported_total: Optional[int] = None
    exhausted: bool = False


@dataclass(frozen=True)
class TruncationVerdict:
    """Outcome of comparing returned features against the reported total."""

    expected_total: Optional[int]
    actual_returned: int
    truncated: bool


@dataclass
class LayerInfo:
    """Metadata for a single layer of a service."""

    name: str
    geom_column: Optional[str] = None
    geom_type: Optional[str] = None
    feature_count: Optional[int] = None
    xmin: Optional[float] = None
    ymin: Optional[float] = None
    xmax: Optional[float] = None
    ymax: Optional[float] = None
    srs_wkt: Optional[str] = None

    @property
    def extent(self) -> Optional[tuple[float, float, float, float]]:
        values = (self.xmin, self.ymin, self.xmax, self.ymax)
        if any(v is None for v in values):
            return None
        return values  # type: ignore[return-value]

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FieldInfo:
    """Definition of a non-geometry attribute field."""

    name: str
    type: str
    width: Optional[int] = None
    precision: Optional[int] = None

    @classmethod
    def from_schema(cls, name: str, spec: str) -> "FieldInfo":
        """
        Parse a fiona schema type string such as ``str:80`` or ``float:24.15``.

        Args:
            name: Field name.
            spec: Schema type string.

        Returns:
            FieldInfo instance.
        """
        field_type, _, size = spec.partition(":")
        width: Optional[int] = None
        precision: Optional[int] = None
        if size:
            width_part, _, precision_part = size.partition(".")
            width = int(width_part) if width_part.isdigit() else None
            precision = int(precision_part) if precision_part.isdigit() else None
        return cls(name=name, type=field_type, width=width, precision=precision)


def bbox_or_none(value: Any) -> Optional[BoundingBox]:
    """Convenience wrapper around BoundingBox.from_value accepting None."""
    if value is None:
        return None
    return BoundingBox.from_value(value)


# Pre-configured defaults
DEFAULT_CONFIG = ReaderConfig(
    paging=PagingConfig(
        page_size=None,
        wfs_page_size=1000,
        oapif_page_size=1000,
        esrijson_page_size=1000,
        force_server_paging=True,
    ),
    timeout=TimeoutConfig(
        connect=10.0,
        read=30.0,
        write=10.0,
        pool=10.0,
    ),
)
