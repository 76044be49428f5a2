"""
Paged feature reads against WFS, OGC API Features and ArcGIS REST services.

This module provides the PagingEngine and the strategies it runs. The
strategy is chosen once per read from the resolved driver and version:

- OffsetPaging: WFS 2.x. The engine walks the result set itself with
  ``startIndex``/``count``, one server request per page.
- SingleRequestPaging: WFS 1.x has no ``startIndex``. One request capped by
  ``max_features``; the read is flagged as degraded.
- DriverManagedPaging: OAPIF, ESRIJSON, and WFS 2.x reads with an attribute
  filter. The OGR driver follows the service's own paging (next links,
  resultOffset, startIndex) inside one logical fetch-all call. A filter
  OGR evaluates client-side shrinks pages, so the engine cannot page it.

A page that comes back short, empty, or that reaches ``max_features``
ends the read. Any failure discards everything fetched so far.
"""

import logging
import threading
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import pandas as pd

from ..processing.assembler import identify_geometry_column
from .connection import build_capabilities_dsn, build_read_dsn, strip_paging_params
from .counts import CountQuery
from .exceptions import (
    AcquisitionError,
    DegradedPagingWarning,
    ReadCancelledError,
    TransportError,
)
from .models import DriverKind, PageCursor, PagingConfig, ReadRequest, ServiceConnection
from .source import FeatureSource

logger = logging.getLogger(__name__)


class PagingState(str, Enum):
    """Lifecycle of a single paged read."""

    INIT = "init"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PagedRead:
    """Everything a finished read hands to truncation detection and assembly."""

    batches: list[pd.DataFrame]
    cursor: PageCursor
    strategy: str
    degraded: bool = False
    requests: int = 0
    state: PagingState = PagingState.DONE
    crs_wkt: Optional[str] = None
    geometry_column: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return sum(len(batch) for batch in self.batches)


class PagingStrategy(ABC):
    """
    How one driver family turns a cursor position into a page request.

    Attributes:
        connection: The resolved service connection.
        page_size: Rows requested per page.
        paging: Paging configuration.
    """

    name = "base"
    degraded = False
    # True when the first response always ends the read
    single_request = False

    def __init__(
        self,
        connection: ServiceConnection,
        page_size: int,
        paging: PagingConfig,
        user_agent: Optional[str] = None,
    ) -> None:
        self.connection = connection
        self.page_size = page_size
        self.paging = paging
        self.user_agent = user_agent

    def config_options(self) -> dict[str, Any]:
        """GDAL configuration options applied for the duration of the read."""
        options: dict[str, Any] = {}
        if self.user_agent:
            options["GDAL_HTTP_USERAGENT"] = self.user_agent
        return options

    @abstractmethod
    def fetch_page(
        self,
        source: FeatureSource,
        request: ReadRequest,
        cursor: PageCursor,
        limit: Optional[int],
    ) -> pd.DataFrame:
        """
        Issue the page request for the current cursor position.

        Args:
            source: Feature source to read through.
            request: The read request.
            cursor: Current paging state (read only).
            limit: Most rows the engine can still accept, None if uncapped.

        Returns:
            The page's rows.
        """

    @abstractmethod
    def reported_total(
        self,
        source: FeatureSource,
        request: ReadRequest,
        count_query: Optional[CountQuery],
    ) -> Optional[int]:
        """The service-reported total for the request, None if unknown."""


class _WfsStrategy(PagingStrategy):
    def __init__(
        self,
        connection: ServiceConnection,
        page_size: int,
        paging: PagingConfig,
        user_agent: Optional[str] = None,
    ) -> None:
        super().__init__(connection, page_size, paging, user_agent)
        self.endpoint = strip_paging_params(connection.endpoint)

    def config_options(self) -> dict[str, Any]:
        options = super().config_options()
        # The engine drives WFS paging; one DSN must mean one server request
        options["OGR_WFS_PAGING_ALLOWED"] = "OFF"
        return options

    def reported_total(
        self,
        source: FeatureSource,
        request: ReadRequest,
        count_query: Optional[CountQuery],
    ) -> Optional[int]:
        dsn = build_read_dsn(
            self.endpoint,
            layer=request.layer,
            bbox=request.bbox,
            version=self.connection.version,
            srs=self.connection.srs,
        )
        return source.feature_count(dsn, request.layer, where=request.where)


class OffsetPaging(_WfsStrategy):
    """WFS 2.x paging with ``startIndex``/``count``."""

    name = "offset"

    def fetch_page(
        self,
        source: FeatureSource,
        request: ReadRequest,
        cursor: PageCursor,
        limit: Optional[int],
    ) -> pd.DataFrame:
        dsn = build_read_dsn(
            self.endpoint,
            layer=request.layer,
            bbox=request.bbox,
            max_features=self.page_size,
            start_index=cursor.offset,
            version=self.connection.version,
            srs=self.connection.srs,
        )
        logger.debug("Page request at offset %d: %s", cursor.offset, dsn)
        return source.read_batch(dsn, request.layer, where=request.where, limit=limit)


class SingleRequestPaging(_WfsStrategy):
    """WFS 1.x: one request honoring only ``max_features``."""

    name = "single"
    degraded = True
    single_request = True

    def fetch_page(
        self,
        source: FeatureSource,
        request: ReadRequest,
        cursor: PageCursor,
        limit: Optional[int],
    ) -> pd.DataFrame:
        dsn = build_read_dsn(
            self.endpoint,
            layer=request.layer,
            bbox=request.bbox,
            max_features=request.max_features,
            version=self.connection.version,
            srs=self.connection.srs,
        )
        logger.debug("Single request: %s", dsn)
        return source.read_batch(dsn, request.layer, where=request.where, limit=limit)


class DriverManagedPaging(PagingStrategy):
    """OAPIF / ESRIJSON / filtered WFS 2.x: the OGR driver pages internally."""

    name = "driver"
    single_request = True

    def dsn(self) -> str:
        """Connection string for the fetch-all call."""
        if self.connection.driver is DriverKind.WFS:
            return build_capabilities_dsn(
                strip_paging_params(self.connection.endpoint),
                driver=DriverKind.WFS,
                version=self.connection.version,
                srs=self.connection.srs,
            )
        return f"{self.connection.driver.value}:{self.connection.endpoint}"

    def open_options(self) -> dict[str, str]:
        """Driver open options switching on server paging."""
        if self.connection.driver is DriverKind.OAPIF:
            return {"PAGE_SIZE": str(self.page_size)}
        if self.connection.driver is DriverKind.ESRIJSON:
            return {
                "FEATURE_SERVER_PAGING": "YES" if self.paging.force_server_paging else "NO"
            }
        return {}

    def config_options(self) -> dict[str, Any]:
        options = super().config_options()
        # OAPIF and ESRIJSON take their paging settings as open options
        if self.connection.driver is DriverKind.WFS:
            options["OGR_WFS_PAGING_ALLOWED"] = "ON"
            options["OGR_WFS_PAGE_SIZE"] = str(self.page_size)
        return options

    def fetch_page(
        self,
        source: FeatureSource,
        request: ReadRequest,
        cursor: PageCursor,
        limit: Optional[int],
    ) -> pd.DataFrame:
        dsn = self.dsn()
        logger.debug("Fetch-all request: %s", dsn)
        return source.read_batch(
            dsn,
            request.layer,
            where=request.where,
            bbox=request.bbox,
            limit=limit,
            open_options=self.open_options(),
        )

    def reported_total(
        self,
        source: FeatureSource,
        request: ReadRequest,
        count_query: Optional[CountQuery],
    ) -> Optional[int]:
        if count_query is None:
            return None
        return count_query.reported_total(self.connection, request)


def supports_start_index(version: Optional[str]) -> bool:
    """
    Whether a WFS version can page with ``startIndex``.

    An unspecified version is negotiated by the driver, which prefers 2.0.
    """
    if not version:
        return True
    major = version.strip().split(".")[0]
    return not major.isdigit() or int(major) >= 2


def select_strategy(
    connection: ServiceConnection,
    paging: PagingConfig,
    page_size: Optional[int] = None,
    user_agent: Optional[str] = None,
    where: Optional[str] = None,
) -> PagingStrategy:
    """
    Pick the paging strategy for a connection.

    Args:
        connection: Resolved service connection.
        paging: Paging configuration supplying driver default page sizes.
        page_size: Per-read page size overriding the configuration.
        user_agent: HTTP User-Agent passed to GDAL.
        where: Attribute filter of the read. WFS 2.x reads with a filter are
               paged by the driver, which counts server rows itself.

    Returns:
        The strategy instance for this read.
    """
    size = page_size or paging.page_size_for(connection.driver)

    if connection.driver is DriverKind.WFS:
        if supports_start_index(connection.version):
            if where:
                return DriverManagedPaging(connection, size, paging, user_agent)
            return OffsetPaging(connection, size, paging, user_agent)
        return SingleRequestPaging(connection, size, paging, user_agent)

    return DriverManagedPaging(connection, size, paging, user_agent)


class PagingEngine:
    """
    Runs a paging strategy to completion for one read at a time.

    The engine itself holds no per-read state, so one instance can serve
    independent reads from several threads.

    Usage:
        engine = PagingEngine(FionaFeatureSource(), PagingConfig())
        paged = engine.run(connection, ReadRequest(layer="ns:parcels"))

    Attributes:
        source: Feature source used for every request.
        paging: Paging configuration.
        count_query: Query for OAPIF/ESRIJSON reported totals, if enabled.
    """

    def __init__(
        self,
        source: FeatureSource,
        paging: Optional[PagingConfig] = None,
        count_query: Optional[CountQuery] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.source = source
        self.paging = paging or PagingConfig()
        self.count_query = count_query
        self.user_agent = user_agent

    def run(
        self,
        connection: ServiceConnection,
        request: ReadRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> PagedRead:
        """
        Fetch every page of a read request.

        Args:
            connection: Resolved service connection.
            request: What to read.
            cancel_event: Checked before every page request; when set the
                          read is abandoned.

        Returns:
            PagedRead with the accumulated batches and final cursor.

        Raises:
            TransportError: If any page request fails. Nothing is returned.
            SchemaError: If a batch has no identifiable geometry column.
            ReadCancelledError: If cancel_event was set mid-read.
        """
        strategy = select_strategy(
            connection,
            self.paging,
            request.page_size,
            self.user_agent,
            where=request.where,
        )
        cursor = PageCursor()

        if request.max_features == 0:
            logger.info("max_features=0 for '%s', nothing to fetch", request.layer)
            cursor.exhausted = True
            return PagedRead(batches=[], cursor=cursor, strategy=strategy.name)

        if strategy.degraded:
            message = (
                f"WFS version {connection.version} has no startIndex paging; "
                f"'{request.layer}' is read with a single request and may be "
                "incomplete beyond the server's own feature limit"
            )
            logger.warning(message)
            warnings.warn(message, DegradedPagingWarning, stacklevel=3)

        logger.info(
            "Reading '%s' with %s paging (page size %d, cap %s)",
            request.layer,
            strategy.name,
            strategy.page_size,
            request.max_features if request.max_features is not None else "none",
        )

        paged = PagedRead(
            batches=[],
            cursor=cursor,
            strategy=strategy.name,
            degraded=strategy.degraded,
            state=PagingState.INIT,
            geometry_column=self.source.geometry_column,
        )

        with self.source.configured(strategy.config_options()):
            try:
                paged.state = PagingState.FETCHING
                self._fetch_pages(strategy, request, paged, cancel_event)
            except AcquisitionError as e:
                self._fail(paged, e)
                raise
            except Exception as e:
                error = TransportError(
                    f"Page request for '{request.layer}' failed at offset {cursor.offset}",
                    offset=cursor.offset,
                    pages_discarded=len(paged.batches),
                    cause=e,
                )
                self._fail(paged, error)
                raise error from e

            cursor.reported_total = self._reported_total(strategy, request)

        paged.state = PagingState.DONE
        logger.info(
            "Read %d features from '%s' in %d request(s)",
            cursor.fetched_so_far,
            request.layer,
            paged.requests,
        )
        return paged

    def _fetch_pages(
        self,
        strategy: PagingStrategy,
        request: ReadRequest,
        paged: PagedRead,
        cancel_event: Optional[threading.Event],
    ) -> None:
        cursor = paged.cursor
        cap = request.max_features
        page_size = strategy.page_size

        while not cursor.exhausted:
            if cancel_event is not None and cancel_event.is_set():
                raise ReadCancelledError(
                    f"Read of '{request.layer}' cancelled at offset {cursor.offset}",
                    offset=cursor.offset,
                )

            remaining = None if cap is None else cap - cursor.fetched_so_far
            batch = strategy.fetch_page(self.source, request, cursor, remaining)
            paged.requests += 1
            n = len(batch)

            if n:
                paged.geometry_column = identify_geometry_column(
                    batch, paged.geometry_column
                )
                if paged.crs_wkt is None:
                    paged.crs_wkt = batch.attrs.get("crs_wkt")

            if strategy.single_request or n == 0 or n < page_size:
                cursor.exhausted = True
            elif n > page_size:
                logger.warning(
                    "Server returned %d features for a page of %d; "
                    "it ignores count, stopping after this response",
                    n,
                    page_size,
                )
                paged.notes.append("server ignored count")
                cursor.exhausted = True

            if remaining is not None and n >= remaining:
                batch = batch.iloc[:remaining]
                cursor.exhausted = True

            if len(batch):
                paged.batches.append(batch)
            cursor.fetched_so_far += len(batch)
            cursor.offset += n

            logger.info(
                "Page %d of '%s': %d features (%d so far)",
                paged.requests,
                request.layer,
                n,
                cursor.fetched_so_far,
            )

    def _reported_total(
        self, strategy: PagingStrategy, request: ReadRequest
    ) -> Optional[int]:
        try:
            return strategy.reported_total(self.source, request, self.count_query)
        except AcquisitionError as e:
            logger.warning("Total for '%s' unknown: %s", request.layer, e)
            return None

    @staticmethod
    def _fail(paged: PagedRead, error: AcquisitionError) -> None:
        """Discard accumulated batches and record the failure on the error."""
        discarded = len(paged.batches)
        paged.batches.clear()
        paged.state = PagingState.FAILED
        if isinstance(error, TransportError):
            if error.offset is None:
                error.offset = paged.cursor.offset
            error.pages_discarded = discarded
        logger.error(
            "Read failed after %d page(s), discarding %d batch(es): %s",
            paged.requests,
            discarded,
            error,
        )
