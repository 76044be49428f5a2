from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Optional

import pandas as pd
import pytest
from shapely.geometry import Point

from readwfs.acquisition.exceptions import TransportError
from readwfs.acquisition.models import FieldInfo, LayerInfo
from readwfs.acquisition.source import GEOMETRY_COLUMN, FeatureSource


def make_batch(size: int, start: int = 0, geometry_column: str = GEOMETRY_COLUMN) -> pd.DataFrame:
    ids = list(range(start, start + size))
    frame = pd.DataFrame(
        {
            "FID": ids,
            "name": [f"feature-{i}" for i in ids],
            geometry_column: [Point(i, i).wkb for i in ids],
        }
    )
    frame.attrs["crs_wkt"] = None
    return frame


class ScriptedSource(FeatureSource):
    """In-memory feature source returning pages of scripted sizes."""

    def __init__(
        self,
        page_sizes: Optional[list[int]] = None,
        total: Optional[int] = None,
        fail_on: Optional[int] = None,
        error: Optional[Exception] = None,
        layers: Optional[list[str]] = None,
        on_read: Optional[Callable[[int], None]] = None,
        batch_factory: Optional[Callable[[int, int], pd.DataFrame]] = None,
    ) -> None:
        self.page_sizes = page_sizes or []
        self.total = total
        self.fail_on = fail_on
        self.error = error or TransportError("connection reset by peer")
        self.layers = layers or []
        self.on_read = on_read
        self.batch_factory = batch_factory or make_batch
        self.read_calls: list[dict[str, Any]] = []
        self.count_calls: list[dict[str, Any]] = []
        self.config_log: list[dict[str, Any]] = []
        self.entered = 0
        self.exited = 0

    def list_layers(self, dsn: str) -> list[str]:
        self.last_list_dsn = dsn
        return list(self.layers)

    def read_batch(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        bbox: Any = None,
        limit: Optional[int] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> pd.DataFrame:
        index = len(self.read_calls)
        self.read_calls.append(
            {
                "dsn": dsn,
                "layer": layer,
                "where": where,
                "bbox": bbox,
                "limit": limit,
                "open_options": open_options,
            }
        )
        if self.fail_on is not None and index + 1 == self.fail_on:
            raise self.error
        size = self.page_sizes[index] if index < len(self.page_sizes) else 0
        start = sum(self.page_sizes[:index])
        batch = self.batch_factory(size, start)
        if self.on_read is not None:
            self.on_read(index + 1)
        return batch

    def feature_count(
        self,
        dsn: str,
        layer: str,
        where: Optional[str] = None,
        open_options: Optional[dict[str, str]] = None,
    ) -> Optional[int]:
        self.count_calls.append({"dsn": dsn, "layer": layer, "where": where})
        if isinstance(self.total, Exception):
            raise self.total
        return self.total

    def describe_layer(
        self,
        dsn: str,
        layer: str,
        open_options: Optional[dict[str, str]] = None,
    ) -> LayerInfo:
        if layer.startswith("broken"):
            raise TransportError(f"cannot open {layer}")
        return LayerInfo(
            name=layer,
            geom_column=GEOMETRY_COLUMN,
            geom_type="Polygon",
            feature_count=self.total,
            xmin=0.0,
            ymin=0.0,
            xmax=10.0,
            ymax=10.0,
        )

    def list_fields(self, dsn: str, layer: str) -> list[FieldInfo]:
        return [FieldInfo.from_schema("name", "str:80"), FieldInfo.from_schema("area", "float:24.15")]

    @contextmanager
    def _guard(self, options: dict[str, Any]):
        self.entered += 1
        self.config_log.append(dict(options))
        try:
            yield
        finally:
            self.exited += 1

    def configured(self, options: dict[str, Any]):
        return self._guard(options)


@pytest.fixture()
def wfs_url() -> str:
    return "https://example.com/arcgis/services/Public/MapServer/WFSServer"
