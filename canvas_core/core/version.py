"""Canvas version detection and feature gating.

The remote version is probed once per base URL and remembered in a
version store for 24 hours, including failed detections, so a Canvas that
hides its version only produces one warning per day. Feature checks compare
the detected version against a table of minimum versions; features missing
from the table are treated as supported.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from canvas_core.core.logging_setup import log_performance

VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)\.(\d+)")

VERSION_CACHE_TTL = timedelta(hours=24)
PROBE_PATH = "/api/v1/accounts"
META_HEADER = "X-Canvas-Meta"
PROBE_TIMEOUT = 10.0  # seconds

# Minimum Canvas release for each gated feature
FEATURE_MIN_VERSIONS: Dict[str, Tuple[int, int, int]] = {
    "graphql": (2019, 0, 0),
    "new_quizzes": (2020, 0, 0),
    "outcomes": (2021, 0, 0),
    "rubrics_v2": (2022, 0, 0),
    "canvas_studio": (2023, 0, 0),
}


@dataclass(frozen=True, order=True)
class CanvasVersion:
    """Canvas release version, ordered by (major, minor, patch)."""

    major: int
    minor: int
    patch: int
    raw: str = field(default="", compare=False)

    @classmethod
    def parse(cls, version: str) -> "CanvasVersion":
        """Parse the first ``X.Y.Z`` found in a version string.

        Raises:
            ValueError: If no version number is present
        """
        match = VERSION_PATTERN.search(version)
        if match is None:
            raise ValueError(f"invalid version format: {version}")
        major, minor, patch = (int(part) for part in match.groups())
        return cls(major=major, minor=minor, patch=patch, raw=version)

    @classmethod
    def unknown(cls, raw: str = "unknown") -> "CanvasVersion":
        """Placeholder above every real release, meaning "assume the latest"."""
        return cls(major=9999, minor=999, patch=999, raw=raw)

    def is_at_least(self, major: int, minor: int = 0, patch: int = 0) -> bool:
        """Check if this version is at least ``major.minor.patch``."""
        return (self.major, self.minor, self.patch) >= (major, minor, patch)

    def to_dict(self) -> Dict[str, Any]:
        return {"major": self.major, "minor": self.minor, "patch": self.patch, "raw": self.raw}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanvasVersion":
        return cls(
            major=int(data["major"]),
            minor=int(data["minor"]),
            patch=int(data["patch"]),
            raw=str(data.get("raw", "")),
        )

    def __str__(self) -> str:
        return self.raw or f"{self.major}.{self.minor}.{self.patch}"


@dataclass
class CachedVersionRecord:
    """Persisted result of one version detection."""

    version: CanvasVersion
    expiration: datetime
    unknown: bool = False

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now > self.expiration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version.to_dict(),
            "expiration": self.expiration.isoformat(),
            "unknown": self.unknown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachedVersionRecord":
        expiration = datetime.fromisoformat(data["expiration"])
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return cls(
            version=CanvasVersion.from_dict(data["version"]),
            expiration=expiration,
            unknown=bool(data.get("unknown", False)),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "CachedVersionRecord":
        return cls.from_dict(json.loads(text))


class VersionStore(Protocol):
    """Persistence for cached version records, keyed by base URL digest."""

    def load(self, key: str) -> Optional[CachedVersionRecord]:
        ...

    def save(self, key: str, record: CachedVersionRecord) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryVersionStore:
    """Version store kept in process memory."""

    def __init__(self) -> None:
        self._records: Dict[str, CachedVersionRecord] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[CachedVersionRecord]:
        with self._lock:
            return self._records.get(key)

    def save(self, key: str, record: CachedVersionRecord) -> None:
        with self._lock:
            self._records[key] = record

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)


def version_cache_key(base_url: str) -> str:
    """Digest of the base URL used to key version records."""
    return hashlib.md5(base_url.encode()).hexdigest()


class VersionDetector:
    """Detects the Canvas version for one base URL."""

    def __init__(
        self,
        base_url: str,
        store: Optional[VersionStore] = None,
        probe_path: str = PROBE_PATH,
        ttl: timedelta = VERSION_CACHE_TTL,
    ) -> None:
        self.base_url = base_url
        self.store = store if store is not None else MemoryVersionStore()
        self.probe_path = probe_path
        self.ttl = ttl
        self.key = version_cache_key(base_url)
        self.logger = logging.getLogger(self.__class__.__name__)

    def load_cached(self) -> Optional[CachedVersionRecord]:
        """Load the cached record, dropping it if expired."""
        try:
            record = self.store.load(self.key)
        except Exception as e:
            self.logger.debug("Failed to read version cache: %s", e)
            return None

        if record is None:
            return None

        if record.is_expired():
            self.logger.debug("Cached Canvas version expired for %s", self.base_url)
            try:
                self.store.delete(self.key)
            except Exception as e:
                self.logger.debug("Failed to remove expired version cache: %s", e)
            return None

        return record

    def save(self, version: CanvasVersion, unknown: bool) -> None:
        """Persist a detection result for the cache lifetime."""
        record = CachedVersionRecord(
            version=version,
            expiration=datetime.now(timezone.utc) + self.ttl,
            unknown=unknown,
        )
        try:
            self.store.save(self.key, record)
        except Exception as e:
            self.logger.debug("Failed to write version cache: %s", e)

    async def detect(self, client: httpx.AsyncClient) -> CanvasVersion:
        """Detect the Canvas version, using the cache when possible.

        A failed detection yields :meth:`CanvasVersion.unknown` and is cached
        too, so the warning does not repeat until the entry expires.

        Args:
            client: Transport used for the probe request

        Returns:
            The detected or placeholder version
        """
        cached = self.load_cached()
        if cached is not None:
            if not cached.unknown:
                self.logger.debug("Using cached Canvas version %s", cached.version)
            return cached.version

        version = await self._probe(client)
        if version is not None:
            self.logger.info("Detected Canvas version %s", version)
            self.save(version, unknown=False)
            return version

        self.logger.warning(
            "Could not detect Canvas version, assuming latest "
            "(this warning will not repeat for 24 hours)"
        )
        version = CanvasVersion.unknown()
        self.save(version, unknown=True)
        return version

    async def _probe(self, client: httpx.AsyncClient) -> Optional[CanvasVersion]:
        try:
            with log_performance("version probe", self.logger):
                response = await client.get(self.base_url + self.probe_path, timeout=PROBE_TIMEOUT)
        except httpx.HTTPError as e:
            self.logger.debug("Version probe failed: %s", e)
            return None

        return parse_meta_header(response.headers.get(META_HEADER, ""))


def parse_meta_header(value: str) -> Optional[CanvasVersion]:
    """Extract the version from a JSON ``X-Canvas-Meta`` header value."""
    if not value:
        return None
    try:
        meta = json.loads(value)
    except ValueError:
        return None
    if not isinstance(meta, dict) or not isinstance(meta.get("version"), str):
        return None
    try:
        return CanvasVersion.parse(meta["version"])
    except ValueError:
        return None


class FeatureChecker:
    """Answers feature-availability questions for a detected version."""

    def __init__(
        self,
        version: CanvasVersion,
        features: Optional[Dict[str, Tuple[int, int, int]]] = None,
    ) -> None:
        self.version = version
        self.features = features if features is not None else FEATURE_MIN_VERSIONS
        self.logger = logging.getLogger(self.__class__.__name__)

    def supports_feature(self, feature: str) -> bool:
        """Check if a feature is available; unlisted features are."""
        minimum = self.features.get(feature)
        if minimum is None:
            return True
        return self.version.is_at_least(*minimum)

    def warn_if_unsupported(self, feature: str) -> bool:
        """Like :meth:`supports_feature`, logging a warning when unsupported."""
        supported = self.supports_feature(feature)
        if not supported:
            self.logger.warning(
                "Feature %s not supported in Canvas version %s", feature, self.version
            )
        return supported
