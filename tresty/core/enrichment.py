"""Photo and rating enrichment backed by the Places API and the cache store."""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Optional

from tresty.core.cache import CacheStore
from tresty.core.matcher import select_best_match
from tresty.etl.transform import parse_search_results
from tresty.models import CandidatePlace, PlaceDetails
from tresty.vendors import google_places

logger = logging.getLogger(__name__)

SearchFn = Callable[[str, str, float, float], Dict[str, Any]]


class EnrichmentService:
    """Resolve restaurants to Places results and serve cached photos and ratings.

    Both accessors read the cache first and only search on a miss. One search
    populates the details record and every photo slot of the matched place, so
    follow-up requests for other photo indices stay local. Errors never reach
    the caller: photo lookups degrade to None and details to an empty result.

    Concurrent misses for the same key share a single lookup.
    """

    def __init__(self, cache: CacheStore, api_key: str, search: Optional[SearchFn] = None) -> None:
        self.cache = cache
        self.api_key = api_key
        self._search = search or google_places.search_text
        self._inflight: Dict[Hashable, Future] = {}
        self._inflight_lock = threading.Lock()

    def get_photo_url(
        self,
        entity_id: str,
        name: str,
        neighborhood: str,
        lat: float,
        lng: float,
        photo_index: int = 0,
    ) -> Optional[str]:
        try:
            cached = self.cache.get_photo(entity_id, photo_index)
            if cached is not None:
                return cached.photo_url
            if not self.api_key:
                return None
            return self._single_flight(
                (entity_id, photo_index),
                self._lookup_photo,
                entity_id,
                name,
                neighborhood,
                lat,
                lng,
                photo_index,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to get photo for %s: %s", name, exc)
            return None

    def get_details(
        self,
        entity_id: str,
        name: str,
        neighborhood: str,
        lat: float,
        lng: float,
    ) -> PlaceDetails:
        try:
            cached = self.cache.get_details(entity_id)
            if cached is not None:
                return cached
            if not self.api_key:
                return PlaceDetails()
            return self._single_flight(
                (entity_id, "details"),
                self._lookup_details,
                entity_id,
                name,
                neighborhood,
                lat,
                lng,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to get details for %s: %s", name, exc)
            return PlaceDetails()

    def _lookup_photo(
        self,
        entity_id: str,
        name: str,
        neighborhood: str,
        lat: float,
        lng: float,
        photo_index: int,
    ) -> Optional[str]:
        match = self._find_place(name, neighborhood, lat, lng)
        if match is None:
            self.cache.set_photo(entity_id, photo_index, None, None)
            return None

        self._store_match(entity_id, match)
        if not match.photo_references:
            self.cache.set_photo(entity_id, photo_index, None, None)
            return None
        # Out-of-range slots are not persisted; the photo list may grow later.
        if not 0 <= photo_index < len(match.photo_references):
            return None
        return google_places.photo_media_url(match.photo_references[photo_index], self.api_key)

    def _lookup_details(
        self,
        entity_id: str,
        name: str,
        neighborhood: str,
        lat: float,
        lng: float,
    ) -> PlaceDetails:
        match = self._find_place(name, neighborhood, lat, lng)
        if match is None:
            self.cache.set_details(entity_id, None, None, None, 0)
            return PlaceDetails()
        return self._store_match(entity_id, match)

    def _store_match(self, entity_id: str, match: CandidatePlace) -> PlaceDetails:
        details = PlaceDetails(
            rating=match.rating,
            rating_count=match.rating_count,
            photo_count=len(match.photo_references),
        )
        self.cache.set_details(
            entity_id,
            details.rating,
            details.rating_count,
            match.external_id,
            details.photo_count,
        )
        for index, photo_name in enumerate(match.photo_references):
            url = google_places.photo_media_url(photo_name, self.api_key)
            self.cache.set_photo(entity_id, index, url, match.external_id)
        return details

    def _find_place(self, name: str, neighborhood: str, lat: float, lng: float) -> Optional[CandidatePlace]:
        query = google_places.build_search_query(name, neighborhood)
        try:
            payload = self._search(query, self.api_key, lat, lng)
        except google_places.GooglePlacesError as exc:
            logger.warning("Places search for %s failed with status %s; treating as no match", name, exc.status_code)
            return None

        candidates = parse_search_results(payload)
        if not candidates:
            logger.info("No Places results for query=%s", query)
            return None
        return select_best_match(name, lat, lng, candidates)

    def _single_flight(self, key: Hashable, fn: Callable[..., Any], *args: Any) -> Any:
        with self._inflight_lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future
        if not leader:
            return future.result()

        try:
            result = fn(*args)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
