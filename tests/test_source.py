from types import SimpleNamespace

import fiona
import pandas as pd
import pytest
from shapely import wkb
from shapely.geometry import Point

from readwfs.acquisition import source as source_module
from readwfs.acquisition.exceptions import TransportError
from readwfs.acquisition.models import BoundingBox
from readwfs.acquisition.source import GEOMETRY_COLUMN, FionaFeatureSource


class FakeCollection:
    def __init__(self, features, count=None, bounds=(0.0, 0.0, 9.0, 9.0)):
        self.features = features
        self.count = len(features) if count is None else count
        self._bounds = bounds
        self.crs_wkt = 'GEOGCS["WGS 84"]'
        self.schema = {
            "geometry": "Point",
            "properties": {"name": "str:80", "area": "float:24.15"},
        }
        self.filter_args = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def __len__(self):
        if isinstance(self.count, Exception):
            raise self.count
        return self.count

    @property
    def bounds(self):
        if self._bounds is None:
            raise ValueError("no extent")
        return self._bounds

    def filter(self, bbox=None, where=None):
        self.filter_args = {"bbox": bbox, "where": where}
        return iter(self.features)


def _feature(i, geometry=True):
    return SimpleNamespace(
        id=str(i),
        properties={"name": f"f{i}", "area": float(i)},
        geometry={"type": "Point", "coordinates": (i, i)} if geometry else None,
    )


@pytest.fixture()
def fake_open(monkeypatch):
    opened = []

    def install(collection):
        def fake(dsn, layer=None, **options):
            opened.append({"dsn": dsn, "layer": layer, "options": options})
            return collection

        monkeypatch.setattr(source_module.fiona, "open", fake)
        return opened

    return install


def test_read_batch_builds_wkb_frame(fake_open):
    collection = FakeCollection([_feature(0), _feature(1, geometry=False), _feature(2)])
    opened = fake_open(collection)
    box = BoundingBox(xmin=0, ymin=0, xmax=5, ymax=5)

    frame = FionaFeatureSource().read_batch(
        "OAPIF:https://x/ogc/features",
        "lakes",
        where="area > 0",
        bbox=box,
        open_options={"PAGE_SIZE": "100"},
    )

    assert list(frame.columns) == ["FID", "name", "area", GEOMETRY_COLUMN]
    assert len(frame) == 3
    assert wkb.loads(frame[GEOMETRY_COLUMN].iloc[2]).equals(Point(2, 2))
    assert pd.isna(frame[GEOMETRY_COLUMN].iloc[1])
    assert frame.attrs["crs_wkt"] == 'GEOGCS["WGS 84"]'
    assert collection.filter_args == {"bbox": (0, 0, 5, 5), "where": "area > 0"}
    assert opened[0]["options"] == {"PAGE_SIZE": "100"}


def test_read_batch_respects_limit(fake_open):
    fake_open(FakeCollection([_feature(i) for i in range(10)]))
    frame = FionaFeatureSource().read_batch("WFS:https://x", "a", limit=4)
    assert list(frame["FID"]) == ["0", "1", "2", "3"]


def test_read_batch_empty_keeps_columns(fake_open):
    fake_open(FakeCollection([]))
    frame = FionaFeatureSource().read_batch("WFS:https://x", "a")
    assert len(frame) == 0
    assert GEOMETRY_COLUMN in frame.columns


def test_read_batch_wraps_library_errors(monkeypatch):
    def broken(*args, **kwargs):
        raise OSError("HTTP error code : 500")

    monkeypatch.setattr(source_module.fiona, "open", broken)

    with pytest.raises(TransportError) as excinfo:
        FionaFeatureSource().read_batch("WFS:https://x", "a")
    assert isinstance(excinfo.value.cause, OSError)


def test_feature_count(fake_open):
    fake_open(FakeCollection([_feature(0)], count=4200))
    source = FionaFeatureSource()

    assert source.feature_count("WFS:https://x", "a") == 4200
    assert source.feature_count("WFS:https://x", "a", where="x = 1") is None


@pytest.mark.parametrize("count", [-1, TypeError("count unsupported")])
def test_feature_count_unknown(fake_open, count):
    fake_open(FakeCollection([], count=count))
    assert FionaFeatureSource().feature_count("WFS:https://x", "a") is None


def test_describe_layer(fake_open):
    opened = fake_open(FakeCollection([], count=12))
    info = FionaFeatureSource().describe_layer(
        "WFS:https://x", "a", open_options={"TRUST_CAPABILITIES_BOUNDS": "YES"}
    )

    assert info.geom_type == "Point"
    assert info.feature_count == 12
    assert info.extent == (0.0, 0.0, 9.0, 9.0)
    assert opened[0]["options"] == {"TRUST_CAPABILITIES_BOUNDS": "YES"}


def test_describe_layer_without_count_or_extent(fake_open):
    fake_open(FakeCollection([], count=TypeError("no count"), bounds=None))
    info = FionaFeatureSource().describe_layer("WFS:https://x", "a")

    assert info.feature_count is None
    assert info.extent is None
    assert info.geom_type == "Point"


def test_list_fields(fake_open):
    fake_open(FakeCollection([]))
    fields = FionaFeatureSource().list_fields("WFS:https://x", "a")
    assert [(f.name, f.type, f.width) for f in fields] == [("name", "str", 80), ("area", "float", 24)]


def test_list_layers_wraps_errors(monkeypatch):
    def broken(dsn):
        raise OSError("cannot open")

    monkeypatch.setattr(source_module.fiona, "listlayers", broken)
    with pytest.raises(TransportError):
        FionaFeatureSource().list_layers("WFS:https://x")


def test_configured_returns_fiona_env():
    env = FionaFeatureSource().configured({"OGR_WFS_PAGING_ALLOWED": "OFF"})
    assert isinstance(env, fiona.Env)
