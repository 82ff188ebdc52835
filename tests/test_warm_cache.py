import argparse

import pytest

from tresty.core.config import Settings
from tresty.jobs import warm_cache
from tresty.models import LocalEntity, PlaceDetails


class DummyCache:
    def __init__(self, cached=None):
        self.cached = cached or {}

    def get_details(self, entity_id):
        return self.cached.get(entity_id)


class DummyEnrichment:
    def __init__(self, api_key="abc", cached=None, photo_counts=None):
        self.api_key = api_key
        self.cache = DummyCache(cached)
        self.photo_counts = photo_counts or {}
        self.calls = []

    def get_details(self, entity_id, name, neighborhood, lat, lng):
        self.calls.append(entity_id)
        return PlaceDetails(rating=4.0, rating_count=10, photo_count=self.photo_counts.get(entity_id, 0))


class DummyIndex:
    def __init__(self, restaurants):
        self.restaurants = restaurants

    def top_by_attractiveness(self):
        return list(self.restaurants)


RESTAURANTS = [
    LocalEntity(id=str(i), name=f"Restaurant {i}", neighborhood="Mission", lat=37.76, lng=-122.41, faces=faces)
    for i, faces in enumerate([50, 3, 40, 30])
]


def test_warm_cache_requires_api_key():
    with pytest.raises(RuntimeError):
        warm_cache.warm_cache(DummyIndex(RESTAURANTS), DummyEnrichment(api_key=""), limit=5)


def test_warm_cache_skips_cached_and_filters_faces(monkeypatch):
    monkeypatch.setattr(warm_cache.time, "sleep", lambda _: None)
    enrichment = DummyEnrichment(
        cached={"0": PlaceDetails(photo_count=2)},
        photo_counts={"2": 5},
    )

    with_photos = warm_cache.warm_cache(DummyIndex(RESTAURANTS), enrichment, limit=3, min_faces=10)

    assert enrichment.calls == ["2", "3"]  # "0" already cached, "1" below min_faces
    assert with_photos == 2


def test_build_parser_defaults(monkeypatch):
    monkeypatch.setattr(warm_cache, "get_settings", lambda: Settings(sqlite_path="/tmp/warm.db"))
    parser = warm_cache.build_parser()
    args = parser.parse_args(["--limit", "7"])

    assert isinstance(parser, argparse.ArgumentParser)
    assert args.limit == 7
    assert args.min_faces == 10
    assert args.sqlite_path == "/tmp/warm.db"
