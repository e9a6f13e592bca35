"""Credential suppliers for the request executor.

A supplier is either a fixed token string or an object with a ``token()``
method (sync or async) that may refresh the credential on demand. Sync
suppliers run in a worker thread so a blocking refresh never stalls the
event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Protocol, Union, runtime_checkable

from canvas_core.core.errors import TokenError

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenSource(Protocol):
    """Anything that can hand out a current access token."""

    def token(self) -> Union[str, Awaitable[str]]:
        ...


class StaticTokenSource:
    """Token source returning one fixed token."""

    def __init__(self, access_token: str) -> None:
        self._access_token = access_token

    def token(self) -> str:
        return self._access_token


async def resolve_token(source: Any) -> str:
    """Get the current access token from a supplier.

    Args:
        source: A token string, a :class:`TokenSource`, or a zero-argument
            callable returning a token

    Returns:
        The access token

    Raises:
        TokenError: If the supplier fails or returns an empty token
    """
    if isinstance(source, str):
        return source

    getter = source.token if hasattr(source, "token") else source

    try:
        if inspect.iscoroutinefunction(getter):
            value = await getter()
        else:
            value = await asyncio.to_thread(getter)
            if inspect.isawaitable(value):
                value = await value
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Token supplier failed: %s", e)
        raise TokenError(f"failed to get token: {e}") from e

    # Objects shaped like OAuth tokens carry the string in access_token.
    value = getattr(value, "access_token", value)
    if not value:
        raise TokenError("token supplier returned an empty token")
    return str(value)
