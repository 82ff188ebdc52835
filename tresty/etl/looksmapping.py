"""In-memory index of the looksmapping San Francisco restaurant feed."""

import gzip
import json
import logging
import threading
from typing import Dict, List, Optional

import requests

from tresty.etl.transform import to_local_entity
from tresty.models import LocalEntity

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60


class DatasetError(RuntimeError):
    """Raised when the feed cannot be fetched or parsed."""


class _Snapshot:
    __slots__ = ("by_id", "top", "categories", "neighborhoods")

    def __init__(self, entities: List[LocalEntity]) -> None:
        self.by_id: Dict[str, LocalEntity] = {entity.id: entity for entity in entities}
        self.top: List[LocalEntity] = sorted(self.by_id.values(), key=lambda e: e.attractive_score, reverse=True)
        self.categories: List[str] = sorted({e.category for e in self.by_id.values() if e.category})
        self.neighborhoods: List[str] = sorted({e.neighborhood for e in self.by_id.values()})


class DatasetIndex:
    """Holds the latest successfully parsed feed.

    ``fetch_and_parse`` builds a complete new snapshot before swapping it in, so
    readers see either the old or the new index and a failed refresh leaves the
    previous one in place.
    """

    def __init__(self, url: str, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self._session = session or requests.Session()
        self._snapshot = _Snapshot([])
        self._refresh_lock = threading.Lock()

    def fetch_and_parse(self) -> int:
        with self._refresh_lock:
            logger.info("Fetching GeoJSON from %s", self.url)
            try:
                response = self._session.get(self.url, timeout=REQUEST_TIMEOUT)
                response.raise_for_status()
                self.load_geojson(json.loads(gzip.decompress(response.content).decode("utf-8")))
            except (requests.RequestException, OSError, ValueError) as exc:
                raise DatasetError(f"Failed to load restaurant feed: {exc}") from exc
            return self.count()

    def load_geojson(self, collection: Dict) -> None:
        features = collection.get("features")
        if not isinstance(features, list):
            raise ValueError("GeoJSON payload has no features list")
        logger.info("Parsed %d restaurants", len(features))

        entities: List[LocalEntity] = []
        for feature in features:
            try:
                entities.append(to_local_entity(feature))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Skipping malformed feature: %s", exc)
        if not entities:
            raise ValueError("GeoJSON payload contained no usable features")

        snapshot = _Snapshot(entities)
        self._snapshot = snapshot
        logger.info(
            "Indexed %d restaurants, %d categories, %d neighborhoods",
            len(snapshot.by_id),
            len(snapshot.categories),
            len(snapshot.neighborhoods),
        )

    def get_by_id(self, entity_id: str) -> Optional[LocalEntity]:
        return self._snapshot.by_id.get(entity_id)

    def all(self) -> List[LocalEntity]:
        return list(self._snapshot.by_id.values())

    def top_by_attractiveness(self) -> List[LocalEntity]:
        return list(self._snapshot.top)

    def categories(self) -> List[str]:
        return list(self._snapshot.categories)

    def neighborhoods(self) -> List[str]:
        return list(self._snapshot.neighborhoods)

    def count(self) -> int:
        return len(self._snapshot.by_id)
