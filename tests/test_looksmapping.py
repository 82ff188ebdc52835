import gzip
import json

import pytest
import requests

from tresty.etl.looksmapping import DatasetError, DatasetIndex


def _feature(name, lng, lat, category="Cafe", hood=None, attractive=0.5, faces=20):
    properties = {
        "name": name,
        "category": category,
        "age_score": 30.0,
        "attractive_score": attractive,
        "gender_score": 0.5,
        "faces": faces,
    }
    if hood:
        properties["hood"] = hood
    return {"type": "Feature", "properties": properties, "geometry": {"type": "Point", "coordinates": [lng, lat]}}


def _gzipped(features):
    return gzip.compress(json.dumps({"type": "FeatureCollection", "features": features}).encode("utf-8"))


class DummyResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


FEATURES = [
    _feature("Zuni Cafe", -122.4241, 37.7725, category="Mediterranean", hood="Hayes Valley", attractive=0.7),
    _feature("Tartine Bakery", -122.4241, 37.7614, category="Bakery", attractive=0.9, faces=5),
    _feature("Nopa", -122.4376, 37.7749, category="Californian", attractive=0.4),
]


def test_fetch_and_parse_builds_index():
    session = DummySession(DummyResponse(_gzipped(FEATURES)))
    index = DatasetIndex("https://example.com/places.geojson.gz", session=session)

    assert index.fetch_and_parse() == 3

    assert session.calls[0][0] == "https://example.com/places.geojson.gz"
    assert [r.name for r in index.top_by_attractiveness()] == ["Tartine Bakery", "Zuni Cafe", "Nopa"]
    assert index.categories() == ["Bakery", "Californian", "Mediterranean"]
    assert "Hayes Valley" in index.neighborhoods()
    zuni = next(r for r in index.all() if r.name == "Zuni Cafe")
    assert index.get_by_id(zuni.id) is zuni
    assert index.get_by_id("missing") is None


def test_malformed_features_are_skipped():
    features = FEATURES + [{"type": "Feature", "properties": {}, "geometry": {"coordinates": [1, 2]}}]
    index = DatasetIndex("https://example.com/feed", session=DummySession(DummyResponse(_gzipped(features))))

    assert index.fetch_and_parse() == 3


@pytest.mark.parametrize(
    "failure",
    [
        DummyResponse(b"", status_code=503),
        DummyResponse(b"not gzip"),
        DummyResponse(gzip.compress(b"{not json")),
        DummyResponse(_gzipped([])),
        requests.ConnectionError("boom"),
    ],
)
def test_failed_refresh_keeps_previous_index(failure):
    session = DummySession(DummyResponse(_gzipped(FEATURES)), failure)
    index = DatasetIndex("https://example.com/feed", session=session)
    index.fetch_and_parse()
    before = {r.id for r in index.all()}

    with pytest.raises(DatasetError):
        index.fetch_and_parse()

    assert {r.id for r in index.all()} == before
    assert index.count() == 3


def test_empty_index_before_first_load():
    index = DatasetIndex("https://example.com/feed", session=DummySession())

    assert index.count() == 0
    assert index.all() == []
    assert index.categories() == []
