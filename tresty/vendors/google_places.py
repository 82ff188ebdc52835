"""Client utilities for the Google Places (New) API."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://places.googleapis.com/v1"
_SEARCH_FIELD_MASK = ",".join(
    (
        "places.id",
        "places.displayName",
        "places.photos",
        "places.rating",
        "places.userRatingCount",
        "places.location",
    )
)

REQUEST_TIMEOUT = 10
SEARCH_RADIUS_M = 200.0
MAX_RESULT_COUNT = 3
PHOTO_MAX_WIDTH_PX = 800


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_search_query(name: str, neighborhood: str) -> str:
    return f'"{name}" restaurant {neighborhood} San Francisco'


def search_text(query: str, api_key: str, latitude: float, longitude: float) -> Dict[str, Any]:
    """Run a location-biased text search and return the raw JSON payload."""
    body = {
        "textQuery": query,
        "locationBias": {
            "circle": {
                "center": {"latitude": latitude, "longitude": longitude},
                "radius": SEARCH_RADIUS_M,
            },
        },
        "maxResultCount": MAX_RESULT_COUNT,
    }
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": api_key,
        "X-Goog-FieldMask": _SEARCH_FIELD_MASK,
    }
    response = _SESSION.post(f"{_BASE_URL}/places:searchText", json=body, headers=headers, timeout=REQUEST_TIMEOUT)
    if not 200 <= response.status_code < 300:
        logger.error("search_text failed: status=%s, body=%s", response.status_code, response.text[:200])
        raise GooglePlacesError(f"Places API error: {response.status_code}", response.status_code)
    return response.json()


def photo_media_url(photo_name: str, api_key: str, max_width_px: int = PHOTO_MAX_WIDTH_PX) -> str:
    """Servable URL for a photo resource name such as ``places/<id>/photos/<ref>``."""
    return f"{_BASE_URL}/{photo_name}/media?maxWidthPx={max_width_px}&key={api_key}"
