"""File-backed version cache.

Stores one ``version_<digest>.json`` file per Canvas base URL so the
detected version outlives a single process.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

from canvas_core.core.version import CachedVersionRecord


def default_cache_dir() -> Path:
    """User cache directory for canvas-core."""
    base = os.getenv("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "canvas-cli"


class FileVersionStore:
    """Version store writing JSON records into a directory."""

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.logger = logging.getLogger(self.__class__.__name__)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"version_{key}.json"

    def load(self, key: str) -> Optional[CachedVersionRecord]:
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            return CachedVersionRecord.from_json(text)
        except (ValueError, KeyError, TypeError) as e:
            self.logger.debug("Ignoring unreadable version cache %s: %s", path, e)
            return None

    def save(self, key: str, record: CachedVersionRecord) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        path = self.path_for(key)
        path.write_text(record.to_json(), encoding="utf-8")
        path.chmod(0o600)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)
