"""Retry helpers for external store calls.

Transient failures (network, timeouts, 5xx, 429) are retried with exponential
backoff up to ``STORE_RETRY_MAX_ATTEMPTS``. Cancellation is never retried.
"""

import asyncio

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from indexsync.core.config import settings
from indexsync.core.exceptions import OperationCancelledError, TransientStoreError


def should_retry_store_error(exception: BaseException) -> bool:
    """Check if an exception from a store call is worth retrying.

    Args:
        exception: Exception to check

    Returns:
        True for transient store errors and raw httpx timeouts/5xx/429
    """
    if isinstance(exception, OperationCancelledError):
        return False
    if isinstance(exception, TransientStoreError):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500
    return isinstance(
        exception, (httpx.TimeoutException, httpx.TransportError, asyncio.TimeoutError)
    )


wait_store_backoff = wait_exponential(
    multiplier=settings.STORE_RETRY_BASE_SECONDS,
    min=settings.STORE_RETRY_BASE_SECONDS,
    max=settings.STORE_RETRY_MAX_SECONDS,
)

retry_if_transient = retry_if_exception(should_retry_store_error)

# Decorator for coroutine functions calling an external store
retry_transient = retry(
    retry=retry_if_transient,
    stop=stop_after_attempt(settings.STORE_RETRY_MAX_ATTEMPTS),
    wait=wait_store_backoff,
    reraise=True,
)
