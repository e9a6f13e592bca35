"""Dry-run rendering of Canvas requests as curl command lines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

REDACTED_AUTHORIZATION = "Bearer [REDACTED]"


def escape_single_quotes(value: str) -> str:
    """Escape single quotes for a single-quoted shell word."""
    return value.replace("'", "'\\''")


@dataclass
class CurlOptions:
    """Inputs for :func:`generate_curl`."""

    method: str
    url: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: str = ""
    show_token: bool = False


def generate_curl(options: CurlOptions) -> str:
    """Generate a curl command equivalent to a request.

    The ``Authorization`` header is redacted unless ``show_token`` is set.

    Args:
        options: Request method, URL, headers and body

    Returns:
        Multi-line curl command joined with shell line continuations
    """
    parts = [f"curl -X {options.method} '{escape_single_quotes(options.url)}'"]

    for key, value in options.headers:
        if key == "Authorization" and not options.show_token:
            value = REDACTED_AUTHORIZATION
        parts.append(f"-H '{key}: {escape_single_quotes(value)}'")

    if options.body:
        parts.append(f"-d '{escape_single_quotes(options.body)}'")

    return " \\\n  ".join(parts)


class CurlRenderer:
    """Default dry-run renderer used by the request executor."""

    def __init__(self, show_token: bool = False) -> None:
        self.show_token = show_token

    def render(self, method: str, url: str, headers: List[Tuple[str, str]], body: str = "") -> str:
        return generate_curl(
            CurlOptions(
                method=method,
                url=url,
                headers=headers,
                body=body,
                show_token=self.show_token,
            )
        )
