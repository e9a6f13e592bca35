"""Tests for pagination over list endpoints."""

import httpx
import pytest

from conftest import BASE_URL, RecordingHandler, json_response

from canvas_core.core.errors import DecodeError
from canvas_core.core.pagination import next_request_path
from canvas_core.storage.memory import MemoryCache


def two_pages(request: httpx.Request) -> httpx.Response:
    """First page links to a second page on an absolute URL."""
    if request.url.params.get("page") == "2":
        return json_response([{"id": 2}])
    return json_response(
        [{"id": 1}],
        headers={"Link": f'<{BASE_URL}/api/v1/courses?page=2&per_page=1>; rel="next"'},
    )


class TestNextRequestPath:
    """Tests for next_request_path."""

    def test_strips_scheme_and_host(self):
        assert (
            next_request_path("https://canvas.example.com/api/v1/courses?page=2&per_page=10")
            == "/api/v1/courses?page=2&per_page=10"
        )

    def test_no_query(self):
        assert next_request_path("https://canvas.example.com/api/v1/courses") == "/api/v1/courses"


class TestGetAllPages:
    """Tests for the returning pagination flavor."""

    @pytest.mark.asyncio
    async def test_follows_next_links(self, make_client):
        """Test two pages are combined in order with two fetches."""
        handler = RecordingHandler(two_pages)
        client = await make_client(handler)

        items = await client.get_all_pages("/api/v1/courses")

        assert items == [{"id": 1}, {"id": 2}]
        assert len(handler.requests) == 2
        assert handler.requests[1].url.path == "/api/v1/courses"
        assert handler.requests[1].url.params["page"] == "2"

    @pytest.mark.asyncio
    async def test_item_type(self, make_client):
        """Test elements are converted with item_type."""
        client = await make_client(RecordingHandler(two_pages))
        ids = await client.get_all_pages("/api/v1/courses", lambda raw: raw["id"])
        assert ids == [1, 2]

    @pytest.mark.asyncio
    async def test_max_results_cap(self, make_client):
        """Test a cap of one stops after the first page."""
        handler = RecordingHandler(two_pages)
        client = await make_client(handler, max_results=1)

        items = await client.get_all_pages("/api/v1/courses")

        assert items == [{"id": 1}]
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_cap_truncates_page(self, make_client):
        """Test a page larger than the cap is cut down."""
        handler = RecordingHandler(lambda r: json_response([{"id": n} for n in range(5)]))
        client = await make_client(handler, max_results=3)

        items = await client.get_all_pages("/api/v1/courses")
        assert [item["id"] for item in items] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_empty_list(self, make_client):
        client = await make_client(RecordingHandler(lambda r: json_response([])))
        assert await client.get_all_pages("/api/v1/courses") == []

    @pytest.mark.asyncio
    async def test_non_list_page(self, make_client):
        """Test an object body is a decode error."""
        client = await make_client(RecordingHandler(lambda r: json_response({"id": 1})))
        with pytest.raises(DecodeError):
            await client.get_all_pages("/api/v1/courses")

    @pytest.mark.asyncio
    async def test_element_decode_failure(self, make_client):
        client = await make_client(RecordingHandler(two_pages))
        with pytest.raises(DecodeError):
            await client.get_all_pages("/api/v1/courses", lambda raw: raw["missing"])


class TestCollectPages:
    """Tests for the caller-container pagination flavor."""

    @pytest.mark.asyncio
    async def test_matches_get_all_pages(self, make_client):
        """Test both flavors produce the same elements."""
        handler = RecordingHandler(two_pages)
        client = await make_client(handler)

        returned = await client.get_all_pages("/api/v1/courses")
        collected = []
        count = await client.collect_pages("/api/v1/courses", collected.append)

        assert collected == returned
        assert count == 2

    @pytest.mark.asyncio
    async def test_custom_container(self, make_client):
        client = await make_client(RecordingHandler(two_pages))
        ids = set()
        await client.collect_pages("/api/v1/courses", ids.add, decode=lambda raw: raw["id"])
        assert ids == {1, 2}


class TestPagesCache:
    """Tests for caching of combined page results."""

    @pytest.mark.asyncio
    async def test_uncapped_read_cached(self, make_client):
        """Test a repeated uncapped read is served from cache."""
        handler = RecordingHandler(two_pages)
        client = await make_client(handler, cache=MemoryCache(), cache_enabled=True)

        first = await client.get_all_pages("/api/v1/courses")
        second = await client.get_all_pages("/api/v1/courses")

        assert first == second == [{"id": 1}, {"id": 2}]
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_capped_read_bypasses_cache(self, make_client):
        """Test capped reads neither read nor write the pages entry."""
        cache = MemoryCache()
        handler = RecordingHandler(two_pages)
        capped = await make_client(handler, cache=cache, cache_enabled=True, max_results=1)

        await capped.get_all_pages("/api/v1/courses")
        assert cache.stats().total == 0

        uncapped = await make_client(handler, cache=cache, cache_enabled=True)
        await uncapped.get_all_pages("/api/v1/courses")
        handler.requests.clear()

        assert await capped.get_all_pages("/api/v1/courses") == [{"id": 1}]
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_pages_and_single_reads_separate(self, make_client):
        """Test a list read does not populate the single-resource key."""
        cache = MemoryCache()
        handler = RecordingHandler(two_pages)
        client = await make_client(handler, cache=cache, cache_enabled=True)

        await client.get_all_pages("/api/v1/courses")
        assert cache.get(client.response_cache.key("/api/v1/courses")) is None
        assert cache.get(client.response_cache.pages_key("/api/v1/courses")) is not None
