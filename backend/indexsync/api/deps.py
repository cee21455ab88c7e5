"""Dependencies for admin endpoints."""

import asyncio
import secrets
from typing import AsyncGenerator, Optional

from fastapi import Header, HTTPException, Request

from indexsync.core.config import settings
from indexsync.core.exceptions import NotConfiguredError
from indexsync.core.logging import logger
from indexsync.platform.concurrency.cancellation import CancellationToken
from indexsync.platform.search_index.registry import IndexRegistry

DISCONNECT_POLL_SECONDS = 1.0


async def require_admin(
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    """Check the admin token header.

    Raises:
        HTTPException: If no admin token is configured or the header does not match
    """
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=403, detail="Admin API is disabled")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Admin access required")


def get_registry(request: Request) -> IndexRegistry:
    """Return the index registry built at startup."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise NotConfiguredError("search index")
    return registry


async def watch_disconnect(
    request: Request, token: CancellationToken, poll_seconds: float = DISCONNECT_POLL_SECONDS
) -> None:
    """Cancel ``token`` once the client of ``request`` goes away."""
    while not token.stopped:
        if await request.is_disconnected():
            logger.info(f"Client disconnected from {request.url.path}, cancelling job")
            token.cancel("client disconnected")
            return
        await asyncio.sleep(poll_seconds)


async def get_cancellation_token(request: Request) -> AsyncGenerator[CancellationToken, None]:
    """Token of a job run by the request, cancelled when the client disconnects."""
    token = CancellationToken()
    watcher = asyncio.create_task(watch_disconnect(request, token))
    try:
        yield token
    finally:
        watcher.cancel()
