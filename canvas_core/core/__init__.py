"""Core functionality for canvas-core.

This package contains the request executor and everything it is built from:
- auth: credential suppliers
- cache: cache keys and best-effort response caching
- config: client configuration with validation
- dryrun: curl rendering for dry-run mode
- errors: structured API errors and classification predicates
- http_client: the Canvas client / request executor
- pagination: Link-header page aggregation
- rate_limiter: adaptive token-bucket throttling
- retry: retry policy with bounded exponential backoff
- version: version detection and feature gating
"""

from .auth import StaticTokenSource, TokenSource, resolve_token  # noqa: F401
from .cache import CacheBackend, CacheStats, ResponseCache, generate_cache_key  # noqa: F401
from .config import ClientConfig, Settings, ValidationResult  # noqa: F401
from .dryrun import CurlRenderer, generate_curl  # noqa: F401
from .errors import (  # noqa: F401
    APIError,
    CanvasError,
    ConfigurationError,
    DecodeError,
    ErrorDetail,
    TokenError,
    is_auth_error,
    is_forbidden_error,
    is_not_found_error,
    is_rate_limit_error,
    is_server_error,
)
from .http_client import CanvasClient  # noqa: F401
from .logging_setup import configure_logging  # noqa: F401
from .pagination import PageAggregator  # noqa: F401
from .rate_limiter import AdaptiveRateLimiter, TokenBucket  # noqa: F401
from .retry import RetryPolicy, default_retry_policy  # noqa: F401
from .version import (  # noqa: F401
    CachedVersionRecord,
    CanvasVersion,
    FeatureChecker,
    MemoryVersionStore,
    VersionDetector,
)

__all__ = [
    # Client
    "CanvasClient",
    "ClientConfig",
    "Settings",
    "ValidationResult",
    "configure_logging",
    # Auth
    "StaticTokenSource",
    "TokenSource",
    "resolve_token",
    # Caching
    "CacheBackend",
    "CacheStats",
    "ResponseCache",
    "generate_cache_key",
    # Dry run
    "CurlRenderer",
    "generate_curl",
    # Errors
    "APIError",
    "CanvasError",
    "ConfigurationError",
    "DecodeError",
    "ErrorDetail",
    "TokenError",
    "is_auth_error",
    "is_forbidden_error",
    "is_not_found_error",
    "is_rate_limit_error",
    "is_server_error",
    # Pagination
    "PageAggregator",
    # Rate limiting and retries
    "AdaptiveRateLimiter",
    "TokenBucket",
    "RetryPolicy",
    "default_retry_policy",
    # Versions
    "CachedVersionRecord",
    "CanvasVersion",
    "FeatureChecker",
    "MemoryVersionStore",
    "VersionDetector",
]
