"""Response caching for idempotent Canvas reads.

This module derives deterministic cache keys from the request identity
(base URL, path, masquerade user) and wraps an injected byte cache so that
lookups and stores are best-effort: a failing cache never fails the
surrounding request.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

DEFAULT_TTL = 300  # 5 minutes

PAGES_PREFIX = "pages:"


@dataclass
class CacheStats:
    """Cache occupancy statistics."""

    total: int = 0
    expired: int = 0
    active: int = 0


@runtime_checkable
class CacheBackend(Protocol):
    """Byte-oriented cache capability keyed by opaque strings."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def clear(self) -> None:
        ...

    def stats(self) -> CacheStats:
        ...


def generate_cache_key(base_url: str, path: str, as_user_id: int = 0) -> str:
    """Generate a fixed-length cache key for a request.

    Args:
        base_url: Canvas base URL
        path: Request path including query string
        as_user_id: Masquerade user id, 0 when not masquerading

    Returns:
        Hex digest identifying the request
    """
    key_string = base_url + path
    if as_user_id > 0:
        key_string += f":as_user:{as_user_id}"
    return hashlib.sha256(key_string.encode()).hexdigest()[:32]


class ResponseCache:
    """Best-effort cache integration for a single client instance."""

    def __init__(
        self,
        backend: Optional[CacheBackend],
        base_url: str,
        as_user_id: int = 0,
        enabled: bool = True,
    ) -> None:
        """Initialize the response cache.

        Args:
            backend: Byte cache collaborator (caching is off without one)
            base_url: Canvas base URL, part of every key
            as_user_id: Masquerade user id, part of every key when set
            enabled: Whether caching starts enabled
        """
        self.backend = backend
        self._base_url = base_url
        self._as_user_id = as_user_id
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._enabled = enabled and backend is not None
        self._hits = 0
        self._misses = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def as_user_id(self) -> int:
        return self._as_user_id

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        with self._lock:
            self._enabled = value and self.backend is not None

    def key(self, path: str) -> str:
        """Cache key for a single-resource read."""
        return generate_cache_key(self._base_url, path, self._as_user_id)

    def pages_key(self, path: str) -> str:
        """Cache key for the combined result of a paginated read."""
        return self.key(PAGES_PREFIX + path)

    def lookup(self, key: str) -> Optional[bytes]:
        """Get cached bytes.

        Returns:
            Cached payload, or None on a miss, when disabled, or on failure
        """
        if not self.enabled:
            return None

        try:
            cached = self.backend.get(key)
        except Exception as e:
            self.logger.warning("Cache get failed: %s", e)
            return None

        with self._lock:
            if cached is not None:
                self._hits += 1
            else:
                self._misses += 1

        self.logger.debug("Cache %s for key: %s", "hit" if cached is not None else "miss", key)
        return cached

    def store(self, key: str, value: bytes) -> bool:
        """Store bytes under a key.

        Returns:
            True if cached successfully
        """
        if not self.enabled:
            return False

        try:
            self.backend.set(key, value)
            self.logger.debug("Cached %d bytes for key: %s", len(value), key)
            return True
        except Exception as e:
            self.logger.warning("Cache set failed: %s", e)
            return False

    def clear(self) -> None:
        """Clear all cached responses."""
        if self.backend is None:
            return
        try:
            self.backend.clear()
            self.logger.info("Cleared response cache")
        except Exception as e:
            self.logger.warning("Cache clear failed: %s", e)

    def backend_stats(self) -> CacheStats:
        """Occupancy statistics of the backend, empty when there is none."""
        if self.backend is None:
            return CacheStats()
        return self.backend.stats()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with hit/miss counters and backend occupancy
        """
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        hit_rate = (hits / total * 100) if total > 0 else 0.0
        backend = self.backend_stats()

        return {
            "hits": hits,
            "misses": misses,
            "total_requests": total,
            "hit_rate_percent": round(hit_rate, 2),
            "enabled": self.enabled,
            "entries": backend.total,
            "expired": backend.expired,
            "active": backend.active,
        }
