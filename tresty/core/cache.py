"""SQLite-backed cache for Places photo references and rating details."""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from tresty.models import DetailsCacheRecord, PhotoCacheRecord, PlaceDetails

logger = logging.getLogger(__name__)

CACHE_TTL_MS = 7 * 24 * 60 * 60 * 1000


class CacheError(RuntimeError):
    """Raised when the cache database cannot be read or written."""


def _now_ms() -> int:
    return int(time.time() * 1000)


_CREATE_PHOTO_CACHE = """
CREATE TABLE IF NOT EXISTS photo_cache (
    entity_id TEXT NOT NULL,
    photo_index INTEGER NOT NULL,
    photo_url TEXT,
    place_id TEXT,
    created_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL,
    PRIMARY KEY (entity_id, photo_index)
)
"""

_CREATE_DETAILS_CACHE = """
CREATE TABLE IF NOT EXISTS details_cache (
    entity_id TEXT PRIMARY KEY,
    rating REAL,
    user_rating_count INTEGER,
    place_id TEXT,
    photo_count INTEGER DEFAULT 0,
    created_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL
)
"""

# Columns introduced after the first release; added in place on older files.
_ADDED_COLUMNS = {
    "details_cache": (("photo_count", "INTEGER DEFAULT 0"),),
}

_SELECT_PHOTO = """
SELECT entity_id, photo_index, photo_url, place_id, created_at, expires_at
FROM photo_cache
WHERE entity_id = ? AND photo_index = ? AND expires_at > ?
"""

_UPSERT_PHOTO = """
INSERT OR REPLACE INTO photo_cache (
    entity_id, photo_index, photo_url, place_id, created_at, expires_at
) VALUES (?, ?, ?, ?, ?, ?)
"""

_SELECT_DETAILS = """
SELECT entity_id, rating, user_rating_count, place_id, photo_count, created_at, expires_at
FROM details_cache
WHERE entity_id = ? AND expires_at > ?
"""

_UPSERT_DETAILS = """
INSERT OR REPLACE INTO details_cache (
    entity_id, rating, user_rating_count, place_id, photo_count, created_at, expires_at
) VALUES (?, ?, ?, ?, ?, ?, ?)
"""


class CacheStore:
    """Persistent photo/details cache with a fixed seven day TTL.

    Expired rows are ignored on read and overwritten on the next write; nothing
    deletes them. One connection is shared between threads and every statement
    runs under a lock, so each upsert lands as a single atomic replace.

    Example:
        >>> with CacheStore("tresty-cache.db") as cache:
        ...     cache.set_photo("abc123", 0, "https://...", "places/xyz")
        ...     cache.get_photo("abc123", 0).photo_url
        'https://...'
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        ttl_ms: int = CACHE_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.db_path = Path(db_path)
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "CacheStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Open the database file, enable WAL journaling and apply the schema."""
        if self._conn is not None:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(_CREATE_PHOTO_CACHE)
            conn.execute(_CREATE_DETAILS_CACHE)
            self._add_missing_columns(conn)
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to open cache database {self.db_path}: {exc}") from exc
        self._conn = conn
        logger.info("Cache database opened at %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Cache database closed")

    @staticmethod
    def _add_missing_columns(conn: sqlite3.Connection) -> None:
        for table, columns in _ADDED_COLUMNS.items():
            existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
            for column, definition in columns:
                if column not in existing:
                    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
                    logger.info("Added column %s.%s to cache database", table, column)

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            if self._conn is None:
                raise CacheError("Cache database is not open")
            cur = self._conn.cursor()
            try:
                yield cur
            except sqlite3.Error as exc:
                raise CacheError(f"Cache database operation failed: {exc}") from exc
            finally:
                cur.close()

    def get_photo(self, entity_id: str, photo_index: int) -> Optional[PhotoCacheRecord]:
        """Return the live record for a photo slot, or None when unknown or expired."""
        with self._cursor() as cur:
            cur.execute(_SELECT_PHOTO, (entity_id, photo_index, self._clock()))
            row = cur.fetchone()
        if row is None:
            return None
        return PhotoCacheRecord(
            entity_id=row[0],
            photo_index=row[1],
            photo_url=row[2],
            external_id=row[3],
            created_at=row[4],
            expires_at=row[5],
        )

    def set_photo(
        self,
        entity_id: str,
        photo_index: int,
        photo_url: Optional[str],
        external_id: Optional[str],
    ) -> None:
        """Store a photo slot; a ``photo_url`` of None records a confirmed negative."""
        now = self._clock()
        with self._cursor() as cur:
            cur.execute(_UPSERT_PHOTO, (entity_id, photo_index, photo_url, external_id, now, now + self.ttl_ms))
        logger.debug("Cached photo %s:%d (negative=%s)", entity_id, photo_index, photo_url is None)

    def get_details_record(self, entity_id: str) -> Optional[DetailsCacheRecord]:
        with self._cursor() as cur:
            cur.execute(_SELECT_DETAILS, (entity_id, self._clock()))
            row = cur.fetchone()
        if row is None:
            return None
        return DetailsCacheRecord(
            entity_id=row[0],
            rating=row[1],
            rating_count=row[2],
            external_id=row[3],
            photo_count=row[4] or 0,
            created_at=row[5],
            expires_at=row[6],
        )

    def get_details(self, entity_id: str) -> Optional[PlaceDetails]:
        record = self.get_details_record(entity_id)
        return record.to_details() if record else None

    def set_details(
        self,
        entity_id: str,
        rating: Optional[float],
        rating_count: Optional[int],
        external_id: Optional[str],
        photo_count: int = 0,
    ) -> None:
        now = self._clock()
        with self._cursor() as cur:
            cur.execute(
                _UPSERT_DETAILS,
                (entity_id, rating, rating_count, external_id, photo_count, now, now + self.ttl_ms),
            )
        logger.debug("Cached details for %s (photo_count=%d)", entity_id, photo_count)
