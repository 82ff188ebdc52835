"""CLI job that pre-populates the enrichment cache for the top restaurants."""

import argparse
import logging
import time
from typing import Optional

from tresty.core.cache import CacheStore
from tresty.core.config import get_settings
from tresty.core.enrichment import EnrichmentService
from tresty.etl.looksmapping import DatasetIndex

logger = logging.getLogger(__name__)


def warm_cache(
    index: DatasetIndex,
    enrichment: EnrichmentService,
    *,
    limit: int,
    min_faces: int = 0,
    delay_seconds: float = 0.15,
) -> int:
    """Look up details for the ``limit`` most attractive restaurants; returns how many have photos."""
    if not enrichment.api_key:
        raise RuntimeError("GOOGLE_PLACES_API_KEY is required")

    restaurants = [r for r in index.top_by_attractiveness() if r.faces >= min_faces][:limit]
    logger.info("Warming cache for %d restaurants", len(restaurants))

    with_photos = 0
    for restaurant in restaurants:
        cached = enrichment.cache.get_details(restaurant.id)
        if cached is not None:
            logger.debug("Skipping %s, details already cached", restaurant.id)
            with_photos += 1 if cached.photo_count else 0
            continue

        details = enrichment.get_details(
            restaurant.id,
            restaurant.name,
            restaurant.neighborhood,
            restaurant.lat,
            restaurant.lng,
        )
        if details.photo_count:
            with_photos += 1
        time.sleep(delay_seconds)

    logger.info("Completed warm-up: %d/%d restaurants have photos", with_photos, len(restaurants))
    return with_photos


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Pre-populate the Places enrichment cache")
    parser.add_argument("--limit", type=int, default=50, help="Number of top restaurants to enrich")
    parser.add_argument("--min-faces", dest="min_faces", type=int, default=10, help="Minimum faces in the feed")
    parser.add_argument("--db", dest="sqlite_path", default=settings.sqlite_path, help="SQLite cache file")
    return parser


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    settings = get_settings()

    index = DatasetIndex(settings.looksmapping_url)
    index.fetch_and_parse()
    with CacheStore(args.sqlite_path) as cache:
        enrichment = EnrichmentService(cache, settings.google_places_api_key)
        warm_cache(index, enrichment, limit=args.limit, min_faces=args.min_faces)


if __name__ == "__main__":
    main()
