"""Live-service checks; run with READWFS_ONLINE=1 pytest -m integration."""

import os

import pytest

from readwfs import example_bbox, example_url, find_layers, list_layers, read_features

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.environ.get("READWFS_ONLINE") != "1",
        reason="set READWFS_ONLINE=1 to query live services",
    ),
]


def test_esri_sample_lists_layers():
    layers = list_layers(example_url("esri_sample"))
    assert any("cities" in name.lower() for name in layers)


def test_list_tasmania_parcels_in_sandy_bay():
    url = example_url("list_tasmania")
    parcels = find_layers(url, "CADASTRAL_PARCELS", version="2.0.0")
    assert parcels

    result = read_features(
        url,
        parcels[0],
        bbox=example_bbox("sandy_bay"),
        srs="EPSG:28355",
        version="2.0.0",
        max_features=50,
    )

    assert 0 < len(result) <= 50
    assert not result.truncated
    assert result.frame.geometry.notna().all()
