"""Core data models shared by the dataset index, cache and enrichment layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class LocalEntity:
    """A restaurant from the looksmapping feed, identified by name and coordinates."""

    id: str
    name: str
    neighborhood: str
    lat: float
    lng: float
    category: str = ""
    attractive_score: float = 0.0
    age_score: float = 0.0
    gender_score: float = 0.0
    faces: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "neighborhood": self.neighborhood,
            "location": {"lat": self.lat, "lng": self.lng},
            "attractiveScore": self.attractive_score,
            "ageScore": self.age_score,
            "genderScore": self.gender_score,
            "faces": self.faces,
            "photoUrl": None,
        }


@dataclass(slots=True)
class CandidatePlace:
    """Normalized snapshot of a place returned by a Places text search."""

    external_id: str
    display_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    photo_references: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PlaceDetails:
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    photo_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating,
            "userRatingCount": self.rating_count,
            "photoCount": self.photo_count,
        }


@dataclass(frozen=True, slots=True)
class PhotoCacheRecord:
    """A cached photo slot. ``photo_url`` of None marks a confirmed negative."""

    entity_id: str
    photo_index: int
    photo_url: Optional[str]
    external_id: Optional[str]
    created_at: int
    expires_at: int


@dataclass(frozen=True, slots=True)
class DetailsCacheRecord:
    entity_id: str
    rating: Optional[float]
    rating_count: Optional[int]
    external_id: Optional[str]
    photo_count: int
    created_at: int
    expires_at: int

    def to_details(self) -> PlaceDetails:
        return PlaceDetails(rating=self.rating, rating_count=self.rating_count, photo_count=self.photo_count)
