"""canvas-core - resilient client engine for the Canvas LMS REST API.

Provides adaptive rate limiting, retries with bounded backoff, Link-header
pagination, response caching and version-gated feature checks for the
resource modules built on top of it.
"""

__version__ = "0.1.0"
__author__ = "canvas-core Contributors"

from canvas_core.core.config import ClientConfig
from canvas_core.core.errors import APIError, CanvasError
from canvas_core.core.http_client import CanvasClient

__all__ = ["CanvasClient", "ClientConfig", "APIError", "CanvasError", "__version__"]
