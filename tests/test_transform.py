import hashlib

import pytest

from tresty.etl import transform


def test_to_candidate_maps_fields():
    place = {
        "id": "ChIJ123",
        "displayName": {"text": "Zuni Café"},
        "photos": [{"name": "places/ChIJ123/photos/a"}, {"name": "places/ChIJ123/photos/b"}],
        "rating": 4.4,
        "userRatingCount": 3120,
        "location": {"latitude": 37.7736, "longitude": -122.4216},
    }

    candidate = transform.to_candidate(place)

    assert candidate.external_id == "ChIJ123"
    assert candidate.display_name == "Zuni Café"
    assert candidate.latitude == 37.7736
    assert candidate.longitude == -122.4216
    assert candidate.rating == 4.4
    assert candidate.rating_count == 3120
    assert candidate.photo_references == ["places/ChIJ123/photos/a", "places/ChIJ123/photos/b"]


def test_to_candidate_tolerates_missing_fields():
    candidate = transform.to_candidate({"id": "ChIJ456"})

    assert candidate.display_name is None
    assert candidate.latitude is None
    assert candidate.rating is None
    assert candidate.photo_references == []


def test_parse_search_results_skips_places_without_id():
    payload = {"places": [{"displayName": {"text": "No id"}}, {"id": "ok"}]}

    candidates = transform.parse_search_results(payload)

    assert [c.external_id for c in candidates] == ["ok"]
    assert transform.parse_search_results({}) == []


@pytest.mark.parametrize("payload", [None, [], {"places": "not-a-list"}, {"places": ["garbage"]}])
def test_parse_search_results_rejects_malformed_body(payload):
    with pytest.raises(ValueError):
        transform.parse_search_results(payload)


def test_generate_entity_id_is_stable_hash():
    expected = hashlib.sha256(b"Zuni Cafe:37.7725:-122.4241").hexdigest()[:12]

    assert transform.generate_entity_id("Zuni Cafe", 37.7725, -122.4241) == expected
    assert len(expected) == 12
    assert transform.generate_entity_id("Zuni Cafe", 37.0, -122.0) == hashlib.sha256(b"Zuni Cafe:37:-122").hexdigest()[:12]


def test_infer_neighborhood():
    assert transform.infer_neighborhood(37.7599, -122.4148) == "Mission"
    assert transform.infer_neighborhood(37.70, -122.60) == transform.DEFAULT_NEIGHBORHOOD


def test_to_local_entity_prefers_hood_property():
    feature = {
        "type": "Feature",
        "properties": {
            "name": "Zuni Cafe",
            "category": "Mediterranean",
            "hood": "Civic Center",
            "attractive_score": 0.71,
            "age_score": 34.2,
            "gender_score": 0.4,
            "faces": 42,
        },
        "geometry": {"type": "Point", "coordinates": [-122.4241, 37.7725]},
    }

    entity = transform.to_local_entity(feature)

    assert entity.name == "Zuni Cafe"
    assert entity.neighborhood == "Civic Center"
    assert entity.lat == 37.7725
    assert entity.lng == -122.4241
    assert entity.faces == 42
    assert entity.id == transform.generate_entity_id("Zuni Cafe", 37.7725, -122.4241)
    assert entity.to_dict()["location"] == {"lat": 37.7725, "lng": -122.4241}


def test_to_local_entity_infers_neighborhood():
    feature = {
        "properties": {"name": "Foreign Cinema", "category": "Californian"},
        "geometry": {"coordinates": [-122.4190, 37.7564]},
    }

    assert transform.to_local_entity(feature).neighborhood == "Mission"


def test_to_local_entity_rejects_missing_name():
    with pytest.raises(KeyError):
        transform.to_local_entity({"properties": {}, "geometry": {"coordinates": [-122.4, 37.7]}})
