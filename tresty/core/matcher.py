"""Pick the search result that best corresponds to a local restaurant.

Scores combine word overlap between names with proximity:
``name_similarity * 10 + max(0, 5 - distance_m / 100)``. A candidate within a
few metres with an identical name scores close to 15; anything further than
500 m gets no proximity credit at all.

Given identical inputs, selection is always the same candidate.
"""

import math
from typing import Optional, Sequence

from tresty.models import CandidatePlace

EARTH_RADIUS_M = 6_371_000
NAME_WEIGHT = 10.0
MAX_PROXIMITY_SCORE = 5.0
METRES_PER_PROXIMITY_POINT = 100.0


def _tokens(value: str) -> set:
    return set(value.casefold().split())


def name_similarity(a: str, b: str) -> float:
    """Shared words over the larger word count, in [0, 1]."""
    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    largest = max(len(tokens_a), len(tokens_b))
    if not largest:
        return 0.0
    return len(tokens_a & tokens_b) / largest


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def score_candidate(name: str, lat: float, lng: float, candidate: CandidatePlace) -> float:
    score = 0.0
    if candidate.display_name:
        score += name_similarity(name, candidate.display_name) * NAME_WEIGHT
    if candidate.latitude is not None and candidate.longitude is not None:
        distance = haversine_distance(lat, lng, candidate.latitude, candidate.longitude)
        score += max(0.0, MAX_PROXIMITY_SCORE - distance / METRES_PER_PROXIMITY_POINT)
    return score


def select_best_match(
    name: str,
    lat: float,
    lng: float,
    candidates: Sequence[CandidatePlace],
) -> CandidatePlace:
    """Return the highest scoring candidate; ties keep the earliest one."""
    if not candidates:
        raise ValueError("select_best_match requires at least one candidate")

    best: Optional[CandidatePlace] = None
    best_score = -1.0
    for candidate in candidates:
        score = score_candidate(name, lat, lng, candidate)
        if score > best_score:
            best = candidate
            best_score = score
    return best
