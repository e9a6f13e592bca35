"""Tests for credential suppliers."""

import asyncio
from types import SimpleNamespace

import pytest

from canvas_core.core.auth import StaticTokenSource, TokenSource, resolve_token
from canvas_core.core.errors import TokenError


class RefreshingSource:
    """Async source that counts refreshes."""

    def __init__(self):
        self.calls = 0

    async def token(self):
        self.calls += 1
        return f"token-{self.calls}"


class TestResolveToken:
    """Tests for resolve_token."""

    @pytest.mark.asyncio
    async def test_plain_string(self):
        assert await resolve_token("abc") == "abc"

    @pytest.mark.asyncio
    async def test_static_source(self):
        source = StaticTokenSource("abc")
        assert isinstance(source, TokenSource)
        assert await resolve_token(source) == "abc"

    @pytest.mark.asyncio
    async def test_async_source_called_each_time(self):
        """Test the supplier is consulted on every resolve."""
        source = RefreshingSource()
        assert await resolve_token(source) == "token-1"
        assert await resolve_token(source) == "token-2"

    @pytest.mark.asyncio
    async def test_callable(self):
        assert await resolve_token(lambda: "from-callable") == "from-callable"

    @pytest.mark.asyncio
    async def test_oauth_token_object(self):
        """Test objects carrying access_token are unwrapped."""
        assert await resolve_token(lambda: SimpleNamespace(access_token="oauth")) == "oauth"

    @pytest.mark.asyncio
    async def test_supplier_failure(self):
        """Test supplier errors are wrapped in TokenError."""

        def broken():
            raise RuntimeError("refresh failed")

        with pytest.raises(TokenError, match="failed to get token: refresh failed") as exc_info:
            await resolve_token(broken)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_token(self):
        with pytest.raises(TokenError):
            await resolve_token(lambda: "")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test cancellation is not turned into TokenError."""

        class Cancelled:
            async def token(self):
                raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await resolve_token(Cancelled())
