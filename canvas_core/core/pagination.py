"""Pagination over Canvas list endpoints.

Pages are fetched one after another through the client's GET funnel,
following the ``next`` relation of each response's ``Link`` header until
there is none or the configured result cap is reached. Uncapped results are
cached as one combined entry under a key namespace separate from
single-resource reads.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, TypeVar
from urllib.parse import urlsplit

from canvas_core.core.errors import DecodeError
from canvas_core.utils.parsers import LinkHeaderParser

if TYPE_CHECKING:
    from canvas_core.core.http_client import CanvasClient

T = TypeVar("T")


def next_request_path(next_url: str) -> str:
    """Path and query of a ``next`` link; scheme and host are discarded."""
    parts = urlsplit(next_url)
    if parts.query:
        return f"{parts.path}?{parts.query}"
    return parts.path


def decode_element(decode: Optional[Callable[[Any], T]], raw: Any) -> T:
    """Materialise one list element, wrapping conversion failures."""
    if decode is None:
        return raw
    try:
        return decode(raw)
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"failed to decode element: {e}") from e


class PageAggregator:
    """Fetches and combines every page of a list endpoint."""

    def __init__(self, client: "CanvasClient", link_parser: Optional[LinkHeaderParser] = None) -> None:
        self.client = client
        self.link_parser = link_parser or LinkHeaderParser()
        self.logger = logging.getLogger(self.__class__.__name__)

    async def fetch_raw(self, path: str) -> List[Any]:
        """Fetch all pages as decoded JSON values in server order.

        Args:
            path: First page path, relative to the base URL

        Returns:
            Combined list, truncated to ``max_results`` when a cap is set

        Raises:
            DecodeError: If a page body is not a JSON list
        """
        max_results = self.client.max_results
        cache = self.client.response_cache
        # A capped read neither reads nor writes the full-list entry.
        use_cache = max_results == 0
        key = cache.pages_key(path)

        if use_cache:
            cached = cache.lookup(key)
            if cached is not None:
                try:
                    items = json.loads(cached)
                    if isinstance(items, list):
                        return items
                except ValueError as e:
                    self.logger.debug("Ignoring undecodable pages cache entry %s: %s", key, e)

        items: List[Any] = []
        current = path
        page_count = 0

        while current:
            response = await self.client.get(current)
            page_count += 1

            try:
                page = json.loads(response.content)
            except ValueError as e:
                raise DecodeError(f"failed to decode response: {e}") from e
            if not isinstance(page, list):
                raise DecodeError(
                    f"expected a JSON list from {current}, got {type(page).__name__}"
                )

            items.extend(page)

            if max_results > 0 and len(items) >= max_results:
                del items[max_results:]
                self.logger.debug("Reached result cap of %d after %d pages", max_results, page_count)
                break

            links = self.link_parser.parse_headers(response.headers)
            current = next_request_path(links.next) if links.has_next_page() else ""

        self.logger.debug("Fetched %d items from %s in %d pages", len(items), path, page_count)

        if use_cache and not self.client.dry_run:
            cache.store(key, json.dumps(items).encode())

        return items

    async def get_all_pages(self, path: str, item_type: Optional[Callable[[Any], T]] = None) -> List[T]:
        """Fetch every page and return the elements as ``item_type`` values.

        Args:
            path: First page path
            item_type: Element constructor applied to each decoded JSON value
                (e.g. a dataclass ``from_dict``); raw values when omitted

        Returns:
            Elements in server order
        """
        return [decode_element(item_type, raw) for raw in await self.fetch_raw(path)]

    async def collect_pages(
        self,
        path: str,
        append: Callable[[Any], None],
        decode: Optional[Callable[[Any], Any]] = None,
    ) -> int:
        """Fetch every page into a caller-owned container.

        Each element is decoded with ``decode`` and then handed to
        ``append``, so any container works (``list.append``, ``set.add``,
        a closure filling a dict, ...).

        Args:
            path: First page path
            append: Receives each element in server order
            decode: Element constructor; raw values when omitted

        Returns:
            Number of elements appended
        """
        count = 0
        for raw in await self.fetch_raw(path):
            append(decode_element(decode, raw))
            count += 1
        return count
