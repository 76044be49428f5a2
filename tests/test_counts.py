import httpx
import pytest

from readwfs.acquisition.connection import connect
from readwfs.acquisition.counts import CountQuery
from readwfs.acquisition.exceptions import (
    InvalidResponseError,
    NotFoundError,
    ServerError,
    TimeoutError,
)
from readwfs.acquisition.models import BoundingBox, ReaderConfig, ReadRequest

ESRI_URL = "https://x/arcgis/rest/services/Y/FeatureServer"
OAPIF_URL = "https://demo.example.com/ogc/features/collections"


def _counter(handler, requests=None):
    def recording(request):
        if requests is not None:
            requests.append(request)
        return handler(request)

    return CountQuery(ReaderConfig(), transport=httpx.MockTransport(recording))


def test_esri_count_targets_layer_query():
    requests = []
    counter = _counter(lambda r: httpx.Response(200, json={"count": 1234}), requests)

    total = counter.fetch_esri_count(ESRI_URL, layer="0", where="POP > 10")

    assert total == 1234
    url = requests[0].url
    assert url.path == "/arcgis/rest/services/Y/FeatureServer/0/query"
    assert url.params["returnCountOnly"] == "true"
    assert url.params["where"] == "POP > 10"
    assert url.params["f"] == "json"


def test_esri_count_with_bbox_sends_envelope():
    requests = []
    counter = _counter(lambda r: httpx.Response(200, json={"count": 7}), requests)
    box = BoundingBox(xmin=1, ymin=2, xmax=3, ymax=4)

    counter.fetch_esri_count(f"{ESRI_URL}/3/query", bbox=box, srs="EPSG:28355")

    params = requests[0].url.params
    assert requests[0].url.path.endswith("/FeatureServer/3/query")
    assert params["where"] == "1=1"
    assert params["geometry"] == "1,2,3,4"
    assert params["geometryType"] == "esriGeometryEnvelope"
    assert params["inSR"] == "28355"


def test_esri_error_payload_raises():
    counter = _counter(lambda r: httpx.Response(200, json={"error": {"code": 400}}))
    with pytest.raises(InvalidResponseError):
        counter.fetch_esri_count(ESRI_URL, layer="0")


def test_oapif_count_reads_number_matched():
    requests = []
    counter = _counter(
        lambda r: httpx.Response(200, json={"numberMatched": 77, "features": []}),
        requests,
    )
    box = BoundingBox(xmin=145, ymin=-43, xmax=148, ymax=-40)

    total = counter.fetch_oapif_count(OAPIF_URL, layer="lakes", bbox=box, srs="EPSG:4326")

    assert total == 77
    url = requests[0].url
    assert url.path == "/ogc/features/collections/lakes/items"
    assert url.params["limit"] == "1"
    assert url.params["bbox"] == "145,-43,148,-40"
    assert "bbox-crs" not in url.params


def test_oapif_count_sends_bbox_crs_for_projected_srs():
    requests = []
    counter = _counter(lambda r: httpx.Response(200, json={"numberMatched": 1}), requests)
    box = BoundingBox(xmin=0, ymin=0, xmax=1, ymax=1)

    counter.fetch_oapif_count(f"{OAPIF_URL}/lakes", bbox=box, srs="EPSG:28355")

    url = requests[0].url
    assert url.path == "/ogc/features/collections/lakes/items"
    assert url.params["bbox-crs"] == "http://www.opengis.net/def/crs/EPSG/0/28355"


def test_oapif_without_number_matched_is_unknown():
    counter = _counter(lambda r: httpx.Response(200, json={"features": []}))
    assert counter.fetch_oapif_count(OAPIF_URL, layer="lakes") is None


@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(404), NotFoundError),
        (httpx.Response(503), ServerError),
        (httpx.Response(400, text="bad request"), InvalidResponseError),
        (httpx.Response(200, text="<html>not json</html>"), InvalidResponseError),
        (httpx.Response(200, json=[1, 2, 3]), InvalidResponseError),
    ],
)
def test_get_json_classifies_failures(response, error):
    counter = _counter(lambda r: response)
    with pytest.raises(error):
        counter.get_json("https://x/query", params={})


def test_get_json_classifies_timeouts():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TimeoutError) as excinfo:
        _counter(timeout).get_json("https://x/query", params={})
    assert excinfo.value.timeout_type == "read"


def test_reported_total_dispatches_by_driver():
    counter = _counter(lambda r: httpx.Response(200, json={"count": 12}))
    connection = connect(f"{ESRI_URL}/0")
    assert counter.reported_total(connection, ReadRequest(layer="0")) == 12


def test_reported_total_failure_is_unknown():
    counter = _counter(lambda r: httpx.Response(500))
    connection = connect(f"{ESRI_URL}/0")
    assert counter.reported_total(connection, ReadRequest(layer="0")) is None


def test_reported_total_skips_oapif_where_and_wfs():
    requests = []
    counter = _counter(lambda r: httpx.Response(200, json={"numberMatched": 5}), requests)

    oapif = connect(OAPIF_URL)
    assert counter.reported_total(oapif, ReadRequest(layer="lakes", where="depth > 3")) is None
    assert counter.reported_total(connect("https://x/WFSServer"), ReadRequest(layer="a")) is None
    assert requests == []

    assert counter.reported_total(oapif, ReadRequest(layer="lakes")) == 5


def test_requests_carry_user_agent():
    requests = []
    counter = CountQuery(
        ReaderConfig(user_agent="readwfs-tests/1"),
        transport=httpx.MockTransport(
            lambda r: requests.append(r) or httpx.Response(200, json={"count": 1})
        ),
    )
    counter.fetch_esri_count(f"{ESRI_URL}/0")
    assert requests[0].headers["User-Agent"] == "readwfs-tests/1"
