"""Cooperative cancellation token shared by every task of one job."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import logger

CancelCallback = Callable[[], Union[None, Awaitable[Any]]]


class CancellationToken:
    """Stop flag plus the cancel callbacks registered by in-flight operations.

    Cancellation is advisory: tasks check ``stopped`` at the top of their body
    and return without side effects when it is set. Callbacks registered with
    ``register`` abort specific store operations and run exactly once, either
    when ``cancel`` is called or immediately if the token is already cancelled.
    Coroutine callbacks are scheduled on the running loop.
    """

    def __init__(self, reason: Optional[str] = None):
        """Create a live (not cancelled) token."""
        self._stopped = False
        self._reason = reason
        self._callbacks: List[CancelCallback] = []
        self._pending: Set[asyncio.Task] = set()
        self._listeners: List[Callable[[], None]] = []

    @property
    def stopped(self) -> bool:
        """Whether the job was asked to stop."""
        return self._stopped

    @property
    def reason(self) -> Optional[str]:
        """Why the token was cancelled, if given."""
        return self._reason

    def register(self, callback: CancelCallback) -> Callable[[], None]:
        """Register a cancel callback.

        Args:
            callback: Sync function or coroutine function aborting one operation

        Returns:
            Function that unregisters the callback once the operation finished
        """
        if self._stopped:
            self._invoke(callback)
            return lambda: None

        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Add a synchronous listener notified on cancel (used to wake waiting workers)."""
        if self._stopped:
            listener()
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        """Remove a listener added with ``add_listener``; a no-op if it is gone."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def cancel(self, reason: Optional[str] = None) -> None:
        """Set the stop flag and invoke every registered callback once."""
        if self._stopped:
            return
        self._stopped = True
        if reason:
            self._reason = reason

        callbacks, self._callbacks = self._callbacks, []
        listeners, self._listeners = self._listeners, []
        logger.debug(
            f"Cancelling job: {len(callbacks)} in-flight operation(s)",
            extra={"reason": self._reason},
        )
        for callback in callbacks:
            self._invoke(callback)
        for listener in listeners:
            listener()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token was cancelled."""
        if self._stopped:
            raise OperationCancelledError(self._reason or "operation cancelled")

    async def wait_pending(self) -> None:
        """Wait for scheduled coroutine callbacks to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _invoke(self, callback: CancelCallback) -> None:
        try:
            result = callback()
        except Exception as e:
            logger.warning(f"Cancel callback failed: {e}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._on_callback_done)

    def _on_callback_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Cancel callback failed: {task.exception()}")
