"""SQLite-backed response cache for canvas-core.

Persists cached response bodies across client instances and processes,
with TTL-based expiration and hit counting.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional, Union

from canvas_core.core.cache import DEFAULT_TTL, CacheStats


class SQLiteCache:
    """SQLite cache store implementing the byte cache contract."""

    def __init__(self, db_path: Union[str, Path] = "canvas_cache.db", ttl: int = DEFAULT_TTL):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file
            ttl: Default time-to-live in seconds
        """
        self.db_path = str(db_path)
        self.ttl = ttl
        self.logger = logging.getLogger(self.__class__.__name__)
        self._initialize_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            SQLite connection with row factory set
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            self.logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        """Create the cache table if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS cache (
                    cache_key TEXT PRIMARY KEY,
                    cache_value BLOB NOT NULL,
                    expires_at REAL,
                    hit_count INTEGER DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_cache_expires
                ON cache(expires_at)
            """
            )

            self.logger.debug(f"Cache database initialized at {self.db_path}")

    @staticmethod
    def _now() -> float:
        return datetime.now(timezone.utc).timestamp()

    def set(self, key: str, value: bytes) -> None:
        """Store a value with the default TTL."""
        self.set_with_ttl(key, value, self.ttl)

    def set_with_ttl(self, key: str, value: bytes, ttl_seconds: Optional[float]) -> None:
        """
        Store a value in cache.

        Args:
            key: Cache key
            value: Raw bytes to cache
            ttl_seconds: Time to live in seconds (None = no expiration)
        """
        expires_at = self._now() + ttl_seconds if ttl_seconds else None

        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO cache (cache_key, cache_value, expires_at, created_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
            """,
                (key, sqlite3.Binary(value), expires_at),
            )

        self.logger.debug(f"Cached value for key: {key}")

    def get(self, key: str) -> Optional[bytes]:
        """
        Retrieve a value from cache.

        Args:
            key: Cache key

        Returns:
            Cached bytes or None if not found/expired
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute(
                "SELECT cache_value, expires_at FROM cache WHERE cache_key = ?",
                (key,),
            )
            row = cursor.fetchone()

            if not row:
                return None

            if row["expires_at"] is not None and self._now() > row["expires_at"]:
                # Expired - delete and return None
                cursor.execute("DELETE FROM cache WHERE cache_key = ?", (key,))
                return None

            cursor.execute(
                "UPDATE cache SET hit_count = hit_count + 1 WHERE cache_key = ?",
                (key,),
            )
            return bytes(row["cache_value"])

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM cache WHERE cache_key = ?", (key,))

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries deleted
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM cache")
            deleted = cursor.rowcount

        self.logger.info(f"Cleared {deleted} cache entries")
        return deleted

    def cleanup_expired(self) -> int:
        """
        Remove expired cache entries.

        Returns:
            Number of entries removed
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._now(),),
            )
            deleted = cursor.rowcount

        self.logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    def stats(self) -> CacheStats:
        with self._get_connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM cache").fetchone()[0]
            expired = conn.execute(
                "SELECT COUNT(*) FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._now(),),
            ).fetchone()[0]
        return CacheStats(total=total, expired=expired, active=total - expired)
