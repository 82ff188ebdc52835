"""Utilities for transforming Places responses and feed features into models."""

import hashlib
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from tresty.models import CandidatePlace, LocalEntity

logger = logging.getLogger(__name__)

DEFAULT_NEIGHBORHOOD = "San Francisco"

# (name, lat, lng, radius in degrees)
SF_NEIGHBORHOODS = (
    ("Marina", 37.8015, -122.4368, 0.012),
    ("Pacific Heights", 37.7925, -122.4350, 0.010),
    ("Russian Hill", 37.8011, -122.4194, 0.008),
    ("North Beach", 37.8060, -122.4103, 0.010),
    ("Chinatown", 37.7941, -122.4078, 0.006),
    ("Financial District", 37.7946, -122.3999, 0.008),
    ("SoMa", 37.7785, -122.3950, 0.015),
    ("Mission", 37.7599, -122.4148, 0.015),
    ("Castro", 37.7609, -122.4350, 0.008),
    ("Noe Valley", 37.7502, -122.4337, 0.010),
    ("Hayes Valley", 37.7759, -122.4245, 0.008),
    ("Haight-Ashbury", 37.7692, -122.4481, 0.010),
    ("Richmond", 37.7800, -122.4784, 0.020),
    ("Sunset", 37.7600, -122.4900, 0.020),
    ("Tenderloin", 37.7847, -122.4141, 0.008),
    ("Nob Hill", 37.7930, -122.4161, 0.008),
    ("Japantown", 37.7854, -122.4295, 0.006),
    ("Potrero Hill", 37.7610, -122.3928, 0.010),
    ("Dogpatch", 37.7580, -122.3870, 0.008),
    ("Bernal Heights", 37.7390, -122.4150, 0.010),
    ("Fisherman's Wharf", 37.8080, -122.4177, 0.008),
    ("Union Square", 37.7880, -122.4075, 0.006),
    ("Embarcadero", 37.7955, -122.3930, 0.008),
    ("Outer Sunset", 37.7550, -122.5050, 0.015),
    ("Inner Sunset", 37.7620, -122.4650, 0.010),
    ("Cole Valley", 37.7660, -122.4510, 0.006),
    ("Glen Park", 37.7340, -122.4330, 0.008),
    ("Excelsior", 37.7230, -122.4250, 0.010),
    ("Bayview", 37.7300, -122.3900, 0.012),
    ("Presidio Heights", 37.7880, -122.4520, 0.008),
    ("Lower Haight", 37.7720, -122.4310, 0.005),
    ("Western Addition", 37.7810, -122.4380, 0.008),
    ("Fillmore", 37.7850, -122.4350, 0.006),
)


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def to_candidate(place: Dict[str, Any]) -> Optional[CandidatePlace]:
    """Convert one ``places[]`` entry of a searchText response, or None without an id."""
    external_id = place.get("id")
    if not external_id:
        logger.debug("Skipping place without id: %s", place)
        return None

    location = place.get("location") or {}
    photos = place.get("photos") or []
    return CandidatePlace(
        external_id=external_id,
        display_name=(place.get("displayName") or {}).get("text"),
        latitude=_safe_float(location.get("latitude")),
        longitude=_safe_float(location.get("longitude")),
        rating=_safe_float(place.get("rating")),
        rating_count=_safe_int(place.get("userRatingCount")),
        photo_references=[photo["name"] for photo in photos if isinstance(photo, dict) and photo.get("name")],
    )


def parse_search_results(payload: Any) -> List[CandidatePlace]:
    """Candidates from a searchText body; raises ValueError when the body has the wrong shape."""
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected search response: {type(payload).__name__}")
    places = payload.get("places", [])
    if not isinstance(places, list):
        raise ValueError(f"Unexpected places field: {type(places).__name__}")

    candidates: List[CandidatePlace] = []
    for place in places:
        if not isinstance(place, dict):
            raise ValueError(f"Unexpected place entry: {type(place).__name__}")
        candidate = to_candidate(place)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def generate_entity_id(name: str, lat: float, lng: float) -> str:
    """Stable 12 hex character id derived from name and coordinates."""
    return hashlib.sha256(f"{name}:{_format_coordinate(lat)}:{_format_coordinate(lng)}".encode("utf-8")).hexdigest()[:12]


def _format_coordinate(value: float) -> str:
    # Match the feed's shortest round-trip rendering (37.0 -> "37").
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def infer_neighborhood(lat: float, lng: float, neighborhoods: Iterable = SF_NEIGHBORHOODS) -> str:
    closest = DEFAULT_NEIGHBORHOOD
    min_dist = math.inf
    for name, n_lat, n_lng, radius in neighborhoods:
        dist = math.hypot(lat - n_lat, lng - n_lng)
        if dist < radius and dist < min_dist:
            min_dist = dist
            closest = name
    return closest


def to_local_entity(feature: Dict[str, Any]) -> LocalEntity:
    """Build a LocalEntity from a GeoJSON point feature; raises KeyError/ValueError on bad input."""
    properties = feature["properties"]
    lng, lat = (float(coord) for coord in feature["geometry"]["coordinates"][:2])
    name = properties["name"]
    return LocalEntity(
        id=generate_entity_id(name, lat, lng),
        name=name,
        category=properties.get("category") or "",
        neighborhood=properties.get("hood") or infer_neighborhood(lat, lng),
        lat=lat,
        lng=lng,
        attractive_score=_safe_float(properties.get("attractive_score")) or 0.0,
        age_score=_safe_float(properties.get("age_score")) or 0.0,
        gender_score=_safe_float(properties.get("gender_score")) or 0.0,
        faces=_safe_int(properties.get("faces")) or 0,
    )
