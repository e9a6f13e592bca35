"""Utility modules for canvas-core."""

from canvas_core.utils.parsers import (
    LinkHeaderParser,
    PaginationLinks,
    get_page_number,
    get_per_page,
    parse_link_header,
)

__all__ = [
    "LinkHeaderParser",
    "PaginationLinks",
    "get_page_number",
    "get_per_page",
    "parse_link_header",
]
