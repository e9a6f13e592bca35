"""Asynchronous Canvas API client.

This module provides the request executor every Canvas call goes through.
It wraps one pooled ``httpx.AsyncClient`` and, for each call, obtains the
bearer token, adds the masquerade parameter, honours dry-run mode, waits on
the adaptive rate limiter, retries transient failures and turns error
responses into :class:`~canvas_core.core.errors.APIError`.
"""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import httpx

from canvas_core.core.auth import resolve_token
from canvas_core.core.cache import CacheStats, ResponseCache
from canvas_core.core.config import ClientConfig
from canvas_core.core.dryrun import CurlRenderer
from canvas_core.core.errors import APIError, DecodeError
from canvas_core.core.pagination import PageAggregator
from canvas_core.core.rate_limiter import AdaptiveRateLimiter
from canvas_core.core.retry import RetryPolicy, default_retry_policy
from canvas_core.core.version import CanvasVersion, FeatureChecker, VersionDetector

T = TypeVar("T")

RATE_LIMIT_REMAINING_HEADER = "X-Rate-Limit-Remaining"
MASQUERADE_PARAM = "as_user_id"

Body = Union[bytes, str, None]


class CanvasClient:
    """Rate-limited, retrying client for one Canvas instance."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        renderer: Optional[CurlRenderer] = None,
        output: Callable[[str], None] = print,
    ) -> None:
        """Initialize the client.

        Parameters
        ----------
        config : ClientConfig
            Client settings; validated here, before any network activity.
        retry_policy : RetryPolicy, optional
            Retry behaviour. Defaults to 3 retries with 1s..8s backoff.
        renderer : CurlRenderer, optional
            Dry-run renderer. Defaults to a curl renderer honouring
            ``config.show_token``.
        output : callable
            Receives each rendered dry-run command.

        Raises
        ------
        ConfigurationError
            If the base URL or credential is missing.
        """
        config.validate()
        self.config = config
        self._base_url = config.base_url
        self.user_agent = config.user_agent
        self._as_user_id = config.as_user_id
        self.dry_run = config.dry_run
        self._max_results = config.max_results
        self._token_source: Any = (
            config.token_source if config.token_source is not None else config.token
        )

        self.rate_limiter = AdaptiveRateLimiter(config.requests_per_sec)
        self.retry_policy = retry_policy or default_retry_policy()
        self.response_cache = ResponseCache(
            config.cache,
            config.base_url,
            as_user_id=config.as_user_id,
            enabled=config.cache_enabled,
        )
        self.renderer = renderer or CurlRenderer(show_token=config.show_token)
        self._output = output
        self._detector = VersionDetector(config.base_url, store=config.version_store)
        self.pages = PageAggregator(self)

        self._client: Optional[httpx.AsyncClient] = None
        self._version: Optional[CanvasVersion] = None
        self._feature_checker: Optional[FeatureChecker] = None
        self._quota_total = config.quota_total
        self._state_lock = threading.Lock()

        self.logger = logging.getLogger(self.__class__.__name__)
        self._request_count = 0
        self._total_request_time = 0.0

    @classmethod
    async def create(cls, config: ClientConfig, **kwargs: Any) -> "CanvasClient":
        """Build a client and open it (transport pool plus version detection)."""
        client = cls(config, **kwargs)
        await client.open()
        return client

    async def open(self) -> None:
        """Open the connection pool and detect the Canvas version."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.user_agent},
                limits=httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                    keepalive_expiry=90.0,
                ),
                transport=self.config.transport,
            )
            self.logger.debug(
                "HTTP client initialized (timeout=%.1fs, max_retries=%d)",
                self.config.timeout,
                self.retry_policy.max_retries,
            )

        if self._version is None:
            if self.dry_run:
                version = CanvasVersion.unknown("dry-run")
            else:
                version = await self._detector.detect(self._client)
            self._set_version(version)

    async def aclose(self) -> None:
        """Close the connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            if self._request_count > 0:
                self.logger.debug(
                    "HTTP client closed (requests=%d, avg_time=%.2fms)",
                    self._request_count,
                    self._total_request_time / self._request_count * 1000,
                )

    async def __aenter__(self) -> "CanvasClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -- version and features ---------------------------------------------

    def _set_version(self, version: CanvasVersion) -> None:
        with self._state_lock:
            self._version = version
            self._feature_checker = FeatureChecker(version)

    @property
    def version(self) -> Optional[CanvasVersion]:
        """The detected Canvas version, None until the client is opened."""
        with self._state_lock:
            return self._version

    def supports_feature(self, feature: str) -> bool:
        """Check if a feature is supported by the detected version.

        Before detection every feature is reported as supported.
        """
        checker = self._feature_checker
        return checker.supports_feature(feature) if checker is not None else True

    def warn_if_unsupported(self, feature: str) -> bool:
        checker = self._feature_checker
        return checker.warn_if_unsupported(feature) if checker is not None else True

    # -- shared settings ---------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def as_user_id(self) -> int:
        """Masquerade user id (0 = none). Fixed at construction."""
        return self._as_user_id

    @property
    def max_results(self) -> int:
        """Cap for paginated reads (0 = unlimited). Fixed at construction."""
        return self._max_results

    @property
    def quota_total(self) -> float:
        with self._state_lock:
            return self._quota_total

    @quota_total.setter
    def quota_total(self, value: float) -> None:
        with self._state_lock:
            self._quota_total = value

    @property
    def cache_enabled(self) -> bool:
        return self.response_cache.enabled

    @cache_enabled.setter
    def cache_enabled(self, enabled: bool) -> None:
        self.response_cache.enabled = enabled

    def clear_cache(self) -> None:
        """Clear all cached responses."""
        self.response_cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.response_cache.backend_stats()

    # -- request executor --------------------------------------------------

    def build_url(self, path: str) -> str:
        """Full request URL, with the masquerade parameter when configured."""
        url = self._base_url + path
        if self._as_user_id > 0:
            url = str(httpx.URL(url).copy_set_param(MASQUERADE_PARAM, str(self._as_user_id)))
        return url

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    async def request(self, method: str, path: str, body: Body = None) -> httpx.Response:
        """Make a Canvas request through the full executor pipeline.

        Parameters
        ----------
        method : str
            HTTP method (GET, POST, etc.).
        path : str
            Path relative to the base URL, including any query string.
        body : bytes or str, optional
            Request body, already JSON encoded.

        Returns
        -------
        httpx.Response
            The response (a synthetic empty-list response in dry-run mode).

        Raises
        ------
        TokenError
            If the token supplier fails; no request is made.
        APIError
            If the final response has a status >= 400.
        httpx.TransportError
            If every attempt failed at the transport level.
        """
        token = await resolve_token(self._token_source)
        url = self.build_url(path)
        headers = self._headers(token)
        content = body.encode() if isinstance(body, str) else body

        if self.dry_run:
            return self._handle_dry_run(method, url, headers, content)

        if self._client is None:
            raise RuntimeError("CanvasClient must be opened (use 'async with' or open())")

        await self.rate_limiter.wait()

        start_time = time.perf_counter()
        response = await self.retry_policy.execute_with_retry(
            lambda: self._attempt(method, url, headers, content)
        )
        elapsed = time.perf_counter() - start_time
        self._request_count += 1
        self._total_request_time += elapsed

        self.logger.debug(
            "%s %s -> %d (%.2fms)",
            method,
            url[:100],
            response.status_code,
            elapsed * 1000,
        )

        if response.status_code >= 400:
            raise APIError.from_response(response)

        return response

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes],
    ) -> httpx.Response:
        response = await self._client.request(method, url, headers=headers, content=content)
        self._update_rate_limit_from_headers(response)
        return response

    def _update_rate_limit_from_headers(self, response: httpx.Response) -> None:
        remaining = response.headers.get(RATE_LIMIT_REMAINING_HEADER)
        if not remaining:
            return
        try:
            remaining_value = float(remaining)
        except ValueError:
            remaining_value = math.nan
        if not math.isfinite(remaining_value):
            self.logger.debug("Ignoring non-numeric %s: %r", RATE_LIMIT_REMAINING_HEADER, remaining)
            return
        self.rate_limiter.adjust_rate(remaining_value, self.quota_total)

    def _handle_dry_run(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes],
    ) -> httpx.Response:
        command = self.renderer.render(
            method,
            url,
            list(headers.items()),
            content.decode("utf-8", errors="replace") if content else "",
        )
        self._output(command)

        # An empty list satisfies list-shaped callers; single-object decoders
        # fail after the command has been shown.
        return httpx.Response(
            200,
            content=b"[]",
            headers={"Content-Type": "application/json"},
            request=httpx.Request(method, url),
        )

    # -- verb calls ----------------------------------------------------------

    async def get(self, path: str) -> httpx.Response:
        return await self.request("GET", path)

    async def post(self, path: str, body: Body = None) -> httpx.Response:
        return await self.request("POST", path, body)

    async def put(self, path: str, body: Body = None) -> httpx.Response:
        return await self.request("PUT", path, body)

    async def delete(self, path: str) -> httpx.Response:
        return await self.request("DELETE", path)

    # -- JSON convenience calls ---------------------------------------------

    async def get_json(self, path: str, decode: Optional[Callable[[Any], T]] = None) -> Any:
        """GET a resource and decode its JSON body.

        Cached bodies are served without a network call when caching is on;
        fresh bodies are cached after they decode successfully.

        Parameters
        ----------
        path : str
            Resource path.
        decode : callable, optional
            Converts the decoded JSON value, e.g. a dataclass factory.

        Returns
        -------
        Any
            The decoded (and converted) body.
        """
        key = self.response_cache.key(path)
        cached = self.response_cache.lookup(key)
        if cached is not None:
            try:
                return _convert(decode, json.loads(cached))
            except (ValueError, DecodeError) as e:
                self.logger.debug("Ignoring undecodable cache entry %s: %s", key, e)

        response = await self.get(path)
        body = response.content
        result = _convert(decode, decode_body(body))
        if not self.dry_run:
            self.response_cache.store(key, body)
        return result

    async def post_json(self, path: str, body: Any, decode: Optional[Callable[[Any], T]] = None) -> Any:
        """POST a JSON body and decode the JSON response (None if empty)."""
        response = await self.post(path, encode_body(body))
        return _convert_optional(decode, response.content)

    async def put_json(self, path: str, body: Any, decode: Optional[Callable[[Any], T]] = None) -> Any:
        """PUT a JSON body and decode the JSON response (None if empty)."""
        response = await self.put(path, encode_body(body))
        return _convert_optional(decode, response.content)

    async def delete_json(self, path: str, decode: Optional[Callable[[Any], T]] = None) -> Any:
        """DELETE a resource and decode the JSON response (None if empty)."""
        response = await self.delete(path)
        return _convert_optional(decode, response.content)

    # -- pagination ----------------------------------------------------------

    async def get_all_pages(self, path: str, item_type: Optional[Callable[[Any], T]] = None) -> List[T]:
        """Fetch every page of a list endpoint. See :class:`PageAggregator`."""
        return await self.pages.get_all_pages(path, item_type)

    async def collect_pages(
        self,
        path: str,
        append: Callable[[Any], None],
        decode: Optional[Callable[[Any], Any]] = None,
    ) -> int:
        """Fetch every page, handing each element to ``append``."""
        return await self.pages.collect_pages(path, append, decode)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics.

        Returns
        -------
        dict
            Request count, timing and rate limiter figures.
        """
        return {
            "request_count": self._request_count,
            "total_time_ms": self._total_request_time * 1000,
            "avg_time_ms": (
                (self._total_request_time / self._request_count * 1000)
                if self._request_count > 0
                else 0
            ),
            "rate_limiter": self.rate_limiter.get_stats(),
            "cache": self.response_cache.get_stats(),
        }


def encode_body(body: Any) -> bytes:
    """JSON-encode a request body."""
    try:
        return json.dumps(body).encode()
    except (TypeError, ValueError) as e:
        raise DecodeError(f"failed to encode request body: {e}") from e


def decode_body(body: bytes) -> Any:
    """Decode a JSON response body.

    Raises:
        DecodeError: If the body is not valid JSON
    """
    try:
        return json.loads(body)
    except ValueError as e:
        raise DecodeError(f"failed to decode response: {e}") from e


def _convert(decode: Optional[Callable[[Any], T]], value: Any) -> Any:
    if decode is None:
        return value
    try:
        return decode(value)
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"failed to decode response: {e}") from e


def _convert_optional(decode: Optional[Callable[[Any], T]], body: bytes) -> Any:
    if not body.strip():
        return None
    return _convert(decode, decode_body(body))
