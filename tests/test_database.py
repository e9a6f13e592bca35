"""Tests for the SQLite cache store."""

import time

import pytest

from canvas_core.core.cache import CacheBackend, CacheStats
from canvas_core.storage.database import SQLiteCache


@pytest.fixture
def cache(tmp_path):
    return SQLiteCache(tmp_path / "cache.db")


class TestSQLiteCache:
    """Tests for SQLiteCache class."""

    def test_protocol(self, cache):
        assert isinstance(cache, CacheBackend)

    def test_set_get(self, cache):
        """Test storing and reading bytes."""
        cache.set("k", b'[{"id": 1}]')
        assert cache.get("k") == b'[{"id": 1}]'
        assert cache.has("k") is True

    def test_missing(self, cache):
        assert cache.get("missing") is None

    def test_replace(self, cache):
        cache.set("k", b"old")
        cache.set("k", b"new")
        assert cache.get("k") == b"new"
        assert cache.stats().total == 1

    def test_expired_entry_removed_on_get(self, cache):
        """Test expired entries read as misses and are deleted."""
        cache.set_with_ttl("k", b"v", 0.01)
        time.sleep(0.02)

        assert cache.get("k") is None
        assert cache.stats().total == 0

    def test_no_expiration(self, cache):
        cache.set_with_ttl("k", b"v", None)
        assert cache.get("k") == b"v"
        assert cache.stats() == CacheStats(total=1, expired=0, active=1)

    def test_cleanup_expired(self, cache):
        """Test bulk removal of expired entries."""
        cache.set_with_ttl("old", b"v", 0.01)
        cache.set("fresh", b"v")
        time.sleep(0.02)

        assert cache.stats().expired == 1
        assert cache.cleanup_expired() == 1
        assert cache.get("fresh") == b"v"

    def test_delete_and_clear(self, cache):
        cache.set("a", b"1")
        cache.set("b", b"2")
        cache.delete("a")
        assert cache.get("a") is None
        assert cache.clear() == 1
        assert cache.stats().total == 0

    def test_persists_across_instances(self, tmp_path):
        """Test a second instance sees entries written by the first."""
        SQLiteCache(tmp_path / "shared.db").set("k", b"v")
        assert SQLiteCache(tmp_path / "shared.db").get("k") == b"v"
