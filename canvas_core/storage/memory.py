"""In-memory TTL byte cache."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from canvas_core.core.cache import DEFAULT_TTL, CacheStats


@dataclass
class _Item:
    value: bytes
    expires_at: float


class MemoryCache:
    """Thread-safe in-memory cache with per-entry expiry."""

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        """Initialize the cache.

        Args:
            ttl: Default time-to-live in seconds
        """
        self.ttl = ttl
        self._items: Dict[str, _Item] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def get(self, key: str) -> Optional[bytes]:
        """Get a value, or None if missing or expired."""
        with self._lock:
            item = self._items.get(key)
            if item is None or time.monotonic() > item.expires_at:
                return None
            return item.value

    def get_json(self, key: str) -> Any:
        """Get and decode a JSON value.

        Raises:
            KeyError: On a cache miss
        """
        data = self.get(key)
        if data is None:
            raise KeyError(key)
        return json.loads(data)

    def set(self, key: str, value: bytes) -> None:
        """Store a value with the default TTL."""
        self.set_with_ttl(key, value, self.ttl)

    def set_json(self, key: str, value: Any) -> None:
        """Encode and store a JSON value."""
        self.set(key, json.dumps(value).encode())

    def set_with_ttl(self, key: str, value: bytes, ttl: float) -> None:
        """Store a value with a custom TTL in seconds."""
        with self._lock:
            self._items[key] = _Item(value=value, expires_at=time.monotonic() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def remove_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed
        """
        now = time.monotonic()
        with self._lock:
            expired = [k for k, item in self._items.items() if now > item.expires_at]
            for key in expired:
                del self._items[key]
        if expired:
            self.logger.debug("Removed %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        now = time.monotonic()
        with self._lock:
            total = len(self._items)
            expired = sum(1 for item in self._items.values() if now > item.expires_at)
        return CacheStats(total=total, expired=expired, active=total - expired)
