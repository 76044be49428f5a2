import pytest
from pydantic import ValidationError

from readwfs.acquisition.models import (
    BoundingBox,
    DriverKind,
    FieldInfo,
    LayerInfo,
    PagingConfig,
    ReadRequest,
    bbox_or_none,
)


def test_bounding_box_from_sequence_and_mapping():
    assert BoundingBox.from_value([1, 2, 3, 4]).as_tuple() == (1, 2, 3, 4)
    box = BoundingBox.from_value({"xmin": 0, "ymin": 0, "xmax": 5, "ymax": 5})
    assert BoundingBox.from_value(box) is box


def test_bounding_box_allows_degenerate_edges():
    box = BoundingBox(xmin=1, ymin=1, xmax=1, ymax=1)
    assert box.to_dsn_value() == "1,1,1,1"


def test_bounding_box_rejects_inverted_axes():
    with pytest.raises(ValidationError):
        BoundingBox(xmin=5, ymin=0, xmax=1, ymax=1)
    with pytest.raises(ValidationError):
        BoundingBox(xmin=0, ymin=5, xmax=1, ymax=1)


def test_bounding_box_rejects_wrong_shapes():
    with pytest.raises(ValueError):
        BoundingBox.from_value("1,2,3,4")
    with pytest.raises(ValueError):
        BoundingBox.from_value([1, 2, 3, 4, 5])


def test_bounding_box_dsn_value_with_srs():
    box = BoundingBox(xmin=-1.5, ymin=2, xmax=3.25, ymax=4)
    assert box.to_dsn_value("EPSG:4326") == "-1.5,2,3.25,4,EPSG:4326"


def test_bbox_or_none():
    assert bbox_or_none(None) is None
    assert bbox_or_none((0, 0, 1, 1)) == BoundingBox(xmin=0, ymin=0, xmax=1, ymax=1)


def test_read_request_validation():
    assert ReadRequest(layer="a", max_features=0).max_features == 0
    with pytest.raises(ValidationError):
        ReadRequest(layer="a", max_features=-1)
    with pytest.raises(ValidationError):
        ReadRequest(layer="a", page_size=0)
    with pytest.raises(ValidationError):
        ReadRequest(layer="")


def test_page_size_for_driver():
    paging = PagingConfig(wfs_page_size=500, oapif_page_size=100, esrijson_page_size=2000)
    assert paging.page_size_for(DriverKind.WFS) == 500
    assert paging.page_size_for(DriverKind.OAPIF) == 100
    assert paging.page_size_for(DriverKind.ESRIJSON) == 2000

    forced = PagingConfig(page_size=50)
    assert forced.page_size_for(DriverKind.ESRIJSON) == 50


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("str:80", ("str", 80, None)),
        ("float:24.15", ("float", 24, 15)),
        ("int", ("int", None, None)),
        ("date", ("date", None, None)),
    ],
)
def test_field_info_from_schema(spec, expected):
    field = FieldInfo.from_schema("f", spec)
    assert (field.type, field.width, field.precision) == expected


def test_layer_info_extent():
    assert LayerInfo(name="a").extent is None
    info = LayerInfo(name="a", xmin=0, ymin=1, xmax=2, ymax=3)
    assert info.extent == (0, 1, 2, 3)
    assert info.as_dict()["name"] == "a"
