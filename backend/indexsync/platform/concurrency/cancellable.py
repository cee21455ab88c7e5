"""Store operations that can be aborted from outside.

``execute(query)`` on a store client returns a :class:`CancellableQuery`. The
query starts right away; ``result()`` waits for it and ``cancel()`` asks the
store to abort it server-side, then drops the client-side wait. Call sites
register ``cancel`` on the job's token before awaiting ``result()`` so an aborted
request reaches into the store.
"""

import asyncio
from typing import Awaitable, Callable, Generic, Optional, Protocol, TypeVar

from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import logger
from indexsync.platform.concurrency.cancellation import CancellationToken

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class CancellableQuery(Generic[T]):
    """Handle for one in-flight store operation."""

    def __init__(
        self,
        run: Callable[[], Awaitable[T]],
        abort: Optional[Callable[[], Awaitable[None]]] = None,
        label: str = "query",
    ):
        """Start ``run`` immediately.

        Args:
            run: Coroutine function performing the operation
            abort: Coroutine function cancelling the operation on the store side
            label: Description used in log messages
        """
        self.label = label
        self._abort = abort
        self._cancelled = False
        self._task: asyncio.Task = asyncio.ensure_future(run())

    @property
    def done(self) -> bool:
        """Whether the operation finished (successfully or not)."""
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel`` was called before the operation finished."""
        return self._cancelled

    async def result(self) -> T:
        """Wait for the operation.

        Raises:
            OperationCancelledError: If the operation was cancelled
        """
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._cancelled:
                raise OperationCancelledError(f"{self.label} cancelled") from None
            self._task.cancel()
            raise
        except Exception as e:
            if self._cancelled:
                raise OperationCancelledError(f"{self.label} cancelled") from e
            raise

    async def cancel(self) -> None:
        """Abort the operation. A no-op once it finished."""
        if self._task.done() or self._cancelled:
            return
        self._cancelled = True
        if self._abort is not None:
            try:
                await self._abort()
            except Exception as e:
                logger.warning(f"Server-side cancel of {self.label} failed: {e}")
        if not self._task.done():
            self._task.cancel()


class CancellableExecutor(Protocol[T_co]):
    """A store client whose queries can be cancelled."""

    def execute(self, query: str, *args) -> "CancellableQuery[T_co]":
        """Start ``query`` and return its handle."""
        ...


async def run_cancellable(query: CancellableQuery[T], token: Optional[CancellationToken]) -> T:
    """Await ``query`` while its cancel is registered on ``token``."""
    if token is None:
        return await query.result()
    unregister = token.register(query.cancel)
    try:
        return await query.result()
    finally:
        unregister()
