"""Error types and classification for Canvas API calls.

Failed responses (status >= 400) become :class:`APIError` instances that
carry the server's error details plus a ready-to-display suggestion.
Callers branch on the ``is_*_error`` predicates, never on message text.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

OAUTH_DOCS_URL = "https://canvas.instructure.com/doc/api/file.oauth.html"
THROTTLING_DOCS_URL = "https://canvas.instructure.com/doc/api/file.throttling.html"

SUGGESTIONS = {
    401: (
        "Your authentication token may be expired or invalid. "
        "Try running 'canvas auth login' again.",
        OAUTH_DOCS_URL,
    ),
    403: (
        "You don't have permission to access this resource. "
        "Check your Canvas role and permissions.",
        None,
    ),
    404: ("The requested resource was not found. Verify the ID and try again.", None),
    422: ("The request was invalid. Check the required fields and data format.", None),
    429: (
        "Rate limit exceeded. Requests will automatically slow down. Please wait a moment.",
        THROTTLING_DOCS_URL,
    ),
}

SERVER_ERROR_SUGGESTION = "Canvas is experiencing issues. Please try again in a few moments."


class CanvasError(Exception):
    """Base class for every error raised by canvas-core."""


class ConfigurationError(CanvasError, ValueError):
    """Raised when a client is built without a base URL or credential."""


class TokenError(CanvasError):
    """Raised when the credential supplier fails to produce a token."""


class DecodeError(CanvasError):
    """Raised when a response body cannot be decoded. Never retried."""


@dataclass(frozen=True)
class ErrorDetail:
    """One entry of the server's ``errors`` list."""

    message: str
    error_code: Optional[str] = None


class APIError(CanvasError):
    """Structured error built from a failed Canvas response.

    Attributes are read-only once constructed.
    """

    def __init__(
        self,
        status_code: int,
        errors: Tuple[ErrorDetail, ...] = (),
        suggestion: str = "",
        docs_url: Optional[str] = None,
        error_report_id: Optional[int] = None,
        response: Optional[httpx.Response] = None,
    ) -> None:
        self._status_code = status_code
        self._errors = tuple(errors)
        self._suggestion = suggestion
        self._docs_url = docs_url
        self._error_report_id = error_report_id
        self._response = response
        super().__init__(self._format())

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def errors(self) -> Tuple[ErrorDetail, ...]:
        return self._errors

    @property
    def suggestion(self) -> str:
        return self._suggestion

    @property
    def docs_url(self) -> Optional[str]:
        return self._docs_url

    @property
    def error_report_id(self) -> Optional[int]:
        return self._error_report_id

    @property
    def response(self) -> Optional[httpx.Response]:
        """The consumed response this error was built from."""
        return self._response

    @property
    def message(self) -> str:
        """First error message, or a generic one when the body had none."""
        if self._errors:
            return self._errors[0].message
        return "Unknown API error"

    def _format(self) -> str:
        msg = self.message
        if self._suggestion:
            msg += "\n\nSuggestion: " + self._suggestion
        if self._docs_url:
            msg += "\nDocs: " + self._docs_url
        return msg

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status_code": self._status_code,
            "errors": [
                {"message": e.message, "error_code": e.error_code} for e in self._errors
            ],
            "suggestion": self._suggestion,
            "docs_url": self._docs_url,
            "error_report_id": self._error_report_id,
        }

    @classmethod
    def from_response(cls, response: httpx.Response) -> "APIError":
        """Classify a failed response.

        The body is decoded as ``{"errors": [{"message": ...}]}``; when that
        fails the raw body text becomes the single message.

        Args:
            response: A response with status >= 400

        Returns:
            APIError with status-specific suggestion attached
        """
        body = response.content
        errors, report_id = _decode_error_body(body)
        if errors is None:
            errors = (ErrorDetail(message=body.decode("utf-8", errors="replace")),)

        suggestion, docs_url = suggestion_for(response.status_code)

        logger.debug(
            "Classified API error %d (%d details)", response.status_code, len(errors)
        )
        return cls(
            status_code=response.status_code,
            errors=errors,
            suggestion=suggestion,
            docs_url=docs_url,
            error_report_id=report_id,
            response=response,
        )


def suggestion_for(status_code: int) -> Tuple[str, Optional[str]]:
    """Get the remediation suggestion and docs URL for a status code."""
    if status_code in SUGGESTIONS:
        return SUGGESTIONS[status_code]
    if 500 <= status_code < 600:
        return SERVER_ERROR_SUGGESTION, None
    return "", None


def _decode_error_body(body: bytes) -> Tuple[Optional[Tuple[ErrorDetail, ...]], Optional[int]]:
    try:
        payload: Any = json.loads(body)
    except ValueError:
        return None, None

    if not isinstance(payload, dict):
        return None, None

    raw_errors = payload.get("errors", [])
    if isinstance(raw_errors, dict):
        # Some endpoints return {"errors": {"field": [{"message": ...}]}}
        raw_errors = [item for group in raw_errors.values() for item in _as_list(group)]
    if not isinstance(raw_errors, list):
        return None, None

    details = []
    for item in raw_errors:
        if isinstance(item, dict):
            details.append(
                ErrorDetail(
                    message=str(item.get("message", "")),
                    error_code=item.get("error_code"),
                )
            )
        else:
            details.append(ErrorDetail(message=str(item)))

    report_id = payload.get("error_report_id")
    return tuple(details), report_id if isinstance(report_id, int) else None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else [value]


def _iter_chain(exception: Optional[BaseException]) -> Iterator[BaseException]:
    seen = set()
    while exception is not None and id(exception) not in seen:
        seen.add(id(exception))
        yield exception
        exception = exception.__cause__ or exception.__context__


def find_api_error(exception: Optional[BaseException]) -> Optional[APIError]:
    """Find the first :class:`APIError` in an exception chain."""
    for exc in _iter_chain(exception):
        if isinstance(exc, APIError):
            return exc
    return None


def _status_of(exception: Optional[BaseException]) -> Optional[int]:
    api_error = find_api_error(exception)
    return api_error.status_code if api_error is not None else None


def is_rate_limit_error(exception: Optional[BaseException]) -> bool:
    """Check if the error is a rate limit error (429)."""
    return _status_of(exception) == 429


def is_auth_error(exception: Optional[BaseException]) -> bool:
    """Check if the error is an authentication error (401)."""
    return _status_of(exception) == 401


def is_not_found_error(exception: Optional[BaseException]) -> bool:
    """Check if the error is a not found error (404)."""
    return _status_of(exception) == 404


def is_forbidden_error(exception: Optional[BaseException]) -> bool:
    """Check if the error is a forbidden error (403)."""
    return _status_of(exception) == 403


def is_server_error(exception: Optional[BaseException]) -> bool:
    """Check if the error is a server error (5xx)."""
    status = _status_of(exception)
    return status is not None and 500 <= status < 600
