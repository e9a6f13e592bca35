"""Tests for the cache module."""

import time
from unittest.mock import MagicMock

import pytest

from canvas_core.core.cache import (
    DEFAULT_TTL,
    CacheBackend,
    CacheStats,
    ResponseCache,
    generate_cache_key,
)
from canvas_core.storage.memory import MemoryCache

BASE_URL = "https://canvas.example.com"


class TestGenerateCacheKey:
    """Tests for cache key generation."""

    def test_deterministic(self):
        """Test the same request identity yields the same key."""
        key1 = generate_cache_key(BASE_URL, "/api/v1/courses/1")
        key2 = generate_cache_key(BASE_URL, "/api/v1/courses/1")
        assert key1 == key2
        assert len(key1) == 32

    def test_path_changes_key(self):
        assert generate_cache_key(BASE_URL, "/api/v1/courses/1") != generate_cache_key(
            BASE_URL, "/api/v1/courses/2"
        )

    def test_masquerade_changes_key(self):
        """Test a masquerading read never shares a key with a direct read."""
        direct = generate_cache_key(BASE_URL, "/api/v1/users/self")
        masked = generate_cache_key(BASE_URL, "/api/v1/users/self", as_user_id=42)
        other = generate_cache_key(BASE_URL, "/api/v1/users/self", as_user_id=43)
        assert len({direct, masked, other}) == 3

    def test_base_url_changes_key(self):
        assert generate_cache_key(BASE_URL, "/a") != generate_cache_key("https://other.example.com", "/a")


class TestResponseCache:
    """Tests for ResponseCache class."""

    def test_disabled_without_backend(self):
        """Test caching cannot be enabled without a backend."""
        cache = ResponseCache(None, BASE_URL)
        assert cache.enabled is False
        cache.enabled = True
        assert cache.enabled is False
        assert cache.lookup("k") is None
        assert cache.store("k", b"v") is False

    def test_disabled_cache_skips_backend(self):
        """Test a disabled cache never touches the backend."""
        backend = MagicMock()
        cache = ResponseCache(backend, BASE_URL, enabled=False)

        assert cache.lookup("k") is None
        assert cache.store("k", b"v") is False
        backend.get.assert_not_called()
        backend.set.assert_not_called()

    def test_store_and_lookup(self):
        """Test a round trip through a memory backend."""
        cache = ResponseCache(MemoryCache(), BASE_URL)
        key = cache.key("/api/v1/courses/1")

        assert cache.lookup(key) is None
        assert cache.store(key, b'{"id": 1}') is True
        assert cache.lookup(key) == b'{"id": 1}'

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["entries"] == 1

    def test_pages_key_separate(self):
        """Test paginated results use a distinct key namespace."""
        cache = ResponseCache(MemoryCache(), BASE_URL)
        assert cache.pages_key("/api/v1/courses") != cache.key("/api/v1/courses")
        assert cache.pages_key("/api/v1/courses") == cache.key("pages:/api/v1/courses")

    def test_backend_get_failure_is_miss(self):
        """Test a failing backend read is treated as a miss."""
        backend = MagicMock()
        backend.get.side_effect = OSError("disk gone")
        cache = ResponseCache(backend, BASE_URL)

        assert cache.lookup("k") is None

    def test_backend_set_failure_is_ignored(self):
        """Test a failing backend write does not raise."""
        backend = MagicMock()
        backend.set.side_effect = OSError("disk full")
        cache = ResponseCache(backend, BASE_URL)

        assert cache.store("k", b"v") is False

    def test_clear(self):
        backend = MemoryCache()
        cache = ResponseCache(backend, BASE_URL)
        cache.store("k", b"v")
        cache.clear()
        assert backend.get("k") is None

    def test_backend_stats_without_backend(self):
        assert ResponseCache(None, BASE_URL).backend_stats() == CacheStats()


class TestMemoryCache:
    """Tests for MemoryCache class."""

    def test_protocol(self):
        assert isinstance(MemoryCache(), CacheBackend)

    def test_default_ttl(self):
        assert MemoryCache().ttl == DEFAULT_TTL

    def test_set_get(self):
        cache = MemoryCache()
        cache.set("k", b"value")
        assert cache.get("k") == b"value"
        assert cache.has("k") is True
        assert cache.get("missing") is None

    def test_json_helpers(self):
        """Test JSON encode and decode helpers."""
        cache = MemoryCache()
        cache.set_json("k", {"id": 1})
        assert cache.get_json("k") == {"id": 1}
        with pytest.raises(KeyError):
            cache.get_json("missing")

    def test_expiry(self):
        """Test entries vanish after their TTL."""
        cache = MemoryCache()
        cache.set_with_ttl("k", b"v", 0.01)
        time.sleep(0.02)

        assert cache.get("k") is None
        assert cache.stats() == CacheStats(total=1, expired=1, active=0)
        assert cache.remove_expired() == 1
        assert cache.stats().total == 0

    def test_delete_and_clear(self):
        cache = MemoryCache()
        cache.set("a", b"1")
        cache.set("b", b"2")
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.stats().total == 0
