"""Storage layer for canvas-core.

This package contains concrete collaborators for the client:
- In-memory and SQLite response caches
- File-backed version cache
"""

from canvas_core.storage.database import SQLiteCache
from canvas_core.storage.memory import MemoryCache
from canvas_core.storage.version_store import FileVersionStore

__all__ = ["FileVersionStore", "MemoryCache", "SQLiteCache"]
