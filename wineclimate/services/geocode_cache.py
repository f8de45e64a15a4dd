"""
Geocode Cache Service.

Caches place-name lookups so re-runs make no provider calls for names
already resolved. Permanent no-matches are cached too; transient provider
errors are not, so they are retried on the next run.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..db import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodeResult:
    """A provider answer for one place name."""
    query: str
    latitude: float
    longitude: float
    display_name: Optional[str] = None


@dataclass(frozen=True)
class CachedLookup:
    """A cached lookup. `result` is None for a cached no-match."""
    query: str
    result: Optional[GeocodeResult]
    provider: str


class GeocodeCache(BaseRepository):
    """
    SQLite cache for geocoding lookups.

    Provides:
    - Lookup by normalized place name
    - Negative caching of permanent no-matches
    - Hit counting for cache statistics
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize cache.

        Args:
            db_path: Path to SQLite database. Defaults to Config.geocode_cache_path()
        """
        super().__init__(db_path)
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Ensure the cache table exists."""
        with self._transaction() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS geocode_cache (
                    query_key TEXT PRIMARY KEY,
                    query TEXT NOT NULL,
                    latitude REAL,
                    longitude REAL,
                    display_name TEXT,
                    provider TEXT NOT NULL,
                    hit_count INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

    @staticmethod
    def normalize_key(query: str) -> str:
        """Normalize a place name for consistent lookups."""
        return " ".join(query.split()).lower()

    def get(self, query: str) -> Optional[CachedLookup]:
        """
        Get a cached lookup.

        Args:
            query: Place name as sent to the provider

        Returns:
            CachedLookup if the name was looked up before, None otherwise
        """
        key = self.normalize_key(query)
        with self._transaction() as cursor:
            cursor.execute(
                """
                SELECT query, latitude, longitude, display_name, provider
                FROM geocode_cache
                WHERE query_key = ?
                """,
                (key,)
            )
            row = cursor.fetchone()
            if row is None:
                logger.debug(f"Geocode cache MISS: {query}")
                return None

            cursor.execute(
                "UPDATE geocode_cache SET hit_count = hit_count + 1 WHERE query_key = ?",
                (key,)
            )

        result = None
        if row["latitude"] is not None and row["longitude"] is not None:
            result = GeocodeResult(
                query=row["query"],
                latitude=row["latitude"],
                longitude=row["longitude"],
                display_name=row["display_name"],
            )
        logger.debug(f"Geocode cache HIT: {query} ({'found' if result else 'no match'})")
        return CachedLookup(query=row["query"], result=result, provider=row["provider"])

    def set(self, query: str, result: Optional[GeocodeResult], provider: str) -> None:
        """
        Cache a lookup outcome.

        Args:
            query: Place name as sent to the provider
            result: Provider answer, or None for a permanent no-match
            provider: Provider name (e.g. 'nominatim')
        """
        latitude = result.latitude if result else None
        longitude = result.longitude if result else None
        display_name = result.display_name if result else None

        with self._transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO geocode_cache
                    (query_key, query, latitude, longitude, display_name, provider)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(query_key) DO UPDATE SET
                    latitude = excluded.latitude,
                    longitude = excluded.longitude,
                    display_name = excluded.display_name,
                    provider = excluded.provider
                """,
                (self.normalize_key(query), query.strip(), latitude, longitude,
                 display_name, provider)
            )
        logger.debug(f"Cached geocode: {query} -> {(latitude, longitude) if result else 'no match'}")

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dict with total_entries, found, no_match, total_hits
        """
        with self._transaction() as cursor:
            cursor.execute("""
                SELECT
                    COUNT(*) as total_entries,
                    SUM(CASE WHEN latitude IS NOT NULL THEN 1 ELSE 0 END) as found,
                    COALESCE(SUM(hit_count), 0) as total_hits
                FROM geocode_cache
            """)
            row = cursor.fetchone()

        total = row["total_entries"] or 0
        found = row["found"] or 0
        return {
            "total_entries": total,
            "found": found,
            "no_match": total - found,
            "total_hits": row["total_hits"] or 0,
        }

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries removed
        """
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM geocode_cache")
            return cursor.rowcount
