"""HTTP entrypoint serving the restaurant feed and its Places enrichment."""

from __future__ import annotations

import argparse
import logging
import random
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import Flask, jsonify, redirect, request

from tresty.core.cache import CacheStore
from tresty.core.config import Settings, get_settings
from tresty.core.enrichment import EnrichmentService
from tresty.etl.looksmapping import DatasetError, DatasetIndex
from tresty.jobs.refresh import DatasetRefresher
from tresty.models import LocalEntity

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100
DEFAULT_TOP_LIMIT = 50
MAX_TOP_LIMIT = 200
DEFAULT_MIN_FACES = 10
_SORTERS: Dict[str, Callable[[List[LocalEntity]], None]] = {
    "random": random.shuffle,
    "attractive": lambda items: items.sort(key=lambda r: r.attractive_score, reverse=True),
    "name": lambda items: items.sort(key=lambda r: r.name.casefold()),
}


class RateLimiter:
    """Fixed one-second window counter per client key."""

    def __init__(self, max_per_window: int, window_seconds: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_per_window:
                return False
            self._windows[key] = (started, count + 1)
            # Prune closed windows once the table gets large.
            if len(self._windows) > 10_000:
                self._windows = {
                    k: v for k, v in self._windows.items() if now - v[0] < self.window_seconds
                }
            return True


def _origin_allowed(origin: str, configured: str) -> bool:
    return origin in {configured, "http://localhost:3000"} or origin.endswith(".vercel.app")


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def _filter_entities(items: List[LocalEntity], category: Optional[str], neighborhood: Optional[str]) -> List[LocalEntity]:
    if category:
        items = [r for r in items if r.category == category]
    if neighborhood:
        items = [r for r in items if r.neighborhood == neighborhood]
    return items


def create_app(
    index: DatasetIndex,
    enrichment: EnrichmentService,
    settings: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> Flask:
    settings = settings or get_settings()
    limiter = rate_limiter or RateLimiter(settings.rate_limit_per_second)
    app = Flask(__name__)

    # ---------- Hooks ----------

    @app.before_request
    def apply_rate_limit() -> Any:
        client = request.remote_addr or "unknown"
        if not limiter.allow(client):
            logger.info("Rate limit exceeded for %s", client)
            return jsonify({"error": "Too many requests"}), 429
        return None

    @app.after_request
    def apply_cors(response):
        origin = request.headers.get("Origin")
        if origin and _origin_allowed(origin, settings.cors_origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(ValueError)
    def bad_request(exc: ValueError) -> Any:
        return jsonify({"error": str(exc)}), 400

    def _lookup(entity_id: str) -> Optional[LocalEntity]:
        return index.get_by_id(entity_id)

    def _not_found() -> Any:
        return jsonify({"error": "Restaurant not found"}), 404

    # ---------- Routes ----------

    @app.get("/api/health")
    def health() -> Any:
        return jsonify(
            {
                "status": "ok",
                "restaurantCount": index.count(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    @app.get("/api/restaurants")
    def list_restaurants() -> Any:
        limit = max(min(_int_arg("limit", DEFAULT_LIST_LIMIT), MAX_LIST_LIMIT), 0)
        offset = max(_int_arg("offset", 0), 0)
        exclude = {value for value in request.args.get("exclude", "").split(",") if value}
        sort_by = request.args.get("sortBy") or "random"

        restaurants = [r for r in index.all() if r.id not in exclude]
        restaurants = _filter_entities(restaurants, request.args.get("category"), request.args.get("neighborhood"))
        total = len(restaurants)

        sorter = _SORTERS.get(sort_by)
        if sorter is not None:
            sorter(restaurants)

        page = restaurants[offset:offset + limit]
        return jsonify(
            {
                "restaurants": [r.to_dict() for r in page],
                "total": total,
                "hasMore": offset + limit < total,
            }
        )

    @app.get("/api/restaurants/top")
    def top_restaurants() -> Any:
        limit = max(min(_int_arg("limit", DEFAULT_TOP_LIMIT), MAX_TOP_LIMIT), 0)
        min_faces = _int_arg("minFaces", DEFAULT_MIN_FACES)

        restaurants = [r for r in index.top_by_attractiveness() if r.faces >= min_faces]
        restaurants = _filter_entities(restaurants, request.args.get("category"), request.args.get("neighborhood"))
        return jsonify(
            {
                "restaurants": [r.to_dict() for r in restaurants[:limit]],
                "total": len(restaurants),
                "hasMore": len(restaurants) > limit,
            }
        )

    @app.get("/api/restaurants/<entity_id>")
    def get_restaurant(entity_id: str) -> Any:
        restaurant = _lookup(entity_id)
        if restaurant is None:
            return _not_found()
        return jsonify(restaurant.to_dict())

    @app.get("/api/restaurants/<entity_id>/photo")
    def get_photo(entity_id: str) -> Any:
        restaurant = _lookup(entity_id)
        if restaurant is None:
            return _not_found()
        photo_index = _int_arg("index", 0)
        if photo_index < 0:
            raise ValueError("index must not be negative")

        photo_url = enrichment.get_photo_url(
            restaurant.id,
            restaurant.name,
            restaurant.neighborhood,
            restaurant.lat,
            restaurant.lng,
            photo_index,
        )
        if not photo_url:
            return jsonify({"error": "No photo available"}), 404
        return redirect(photo_url, code=302)

    @app.get("/api/restaurants/<entity_id>/details")
    def get_details(entity_id: str) -> Any:
        restaurant = _lookup(entity_id)
        if restaurant is None:
            return _not_found()
        details = enrichment.get_details(
            restaurant.id,
            restaurant.name,
            restaurant.neighborhood,
            restaurant.lat,
            restaurant.lng,
        )
        return jsonify(details.to_dict())

    @app.get("/api/meta/categories")
    def categories() -> Any:
        return jsonify({"values": index.categories()})

    @app.get("/api/meta/neighborhoods")
    def neighborhoods() -> Any:
        return jsonify({"values": index.neighborhoods()})

    return app


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Serve the tresty restaurant API")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument("--db", dest="sqlite_path", default=settings.sqlite_path, help="SQLite cache file")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    settings = get_settings()

    index = DatasetIndex(settings.looksmapping_url)
    try:
        index.fetch_and_parse()
    except DatasetError as exc:
        logger.error("Initial restaurant data load failed: %s", exc)
        raise SystemExit(1) from exc

    refresher = DatasetRefresher(index, settings.dataset_refresh_hours * 3600)
    with CacheStore(args.sqlite_path) as cache:
        enrichment = EnrichmentService(cache, settings.google_places_api_key)
        app = create_app(index, enrichment, settings)
        refresher.start()
        logger.info("[BOOT] Binding on %s:%d", args.host, args.port)
        try:
            app.run(host=args.host, port=args.port, threaded=True)
        finally:
            refresher.stop(timeout=5)


if __name__ == "__main__":
    main()
