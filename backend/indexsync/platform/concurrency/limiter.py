"""Bounded-concurrency task runner.

Tasks are zero-argument coroutine functions. They come either from a fixed
iterable or from a *supplier* that returns the next task, or None when it has
nothing to hand out right now. Running tasks may push more work into the
supplier's queue, so a worker that finds no work waits until its siblings are
idle before concluding the job is done.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Awaitable, Callable, Deque, Iterable, Optional, Tuple, Union

from indexsync.core.exceptions import OperationCancelledError
from indexsync.core.logging import ContextualLogger, logger as default_logger
from indexsync.platform.concurrency.cancellation import CancellationToken

Task = Callable[[], Awaitable[Any]]
TaskSupplier = Callable[[], Optional[Task]]
TaskSource = Union[Iterable[Task], TaskSupplier]


@dataclass
class LimiterStats:
    """Counters for one limiter run."""

    started: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    max_active: int = 0
    elapsed_seconds: float = 0.0


class TaskPriority(IntEnum):
    """Lanes of a PriorityTaskQueue, drained highest first."""

    HIGH = 0
    LOW = 1


class PriorityTaskQueue:
    """Two-lane task queue usable as a limiter supplier.

    Maintenance jobs push "fix" tasks discovered by a "fetch" task onto the
    HIGH lane so they are drained before the next fetch starts.
    """

    def __init__(self) -> None:
        """Create an empty queue."""
        self._lanes: Tuple[Deque[Task], Deque[Task]] = (deque(), deque())

    def push(self, task: Task, priority: TaskPriority = TaskPriority.LOW) -> None:
        """Add a task to the given lane."""
        self._lanes[priority].append(task)

    def next(self) -> Optional[Task]:
        """Return the next task without blocking, or None if both lanes are empty."""
        for lane in self._lanes:
            if lane:
                return lane.popleft()
        return None

    __call__ = next

    def __len__(self) -> int:
        """Number of queued tasks across lanes."""
        return sum(len(lane) for lane in self._lanes)


class ConcurrencyLimiter:
    """Runs tasks with at most ``limit`` executing at once.

    A task raising is logged at the task boundary and the limiter keeps going;
    retrying is up to the task. Once the token is cancelled no new task is
    started; tasks already running finish on their own.
    """

    def __init__(
        self,
        limit: int,
        token: Optional[CancellationToken] = None,
        logger: Optional[ContextualLogger] = None,
        name: str = "tasks",
    ):
        """Initialize the limiter.

        Args:
            limit: Maximum number of concurrently executing tasks
            token: Cancellation token shared with the tasks
            logger: Logger for task failures
            name: Label used in log messages
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit
        self.token = token or CancellationToken()
        self.logger = logger or default_logger
        self.name = name
        self.stats = LimiterStats()
        self._active = 0
        self._changed = asyncio.Event()

    @property
    def active(self) -> int:
        """Number of tasks currently executing."""
        return self._active

    async def run(self, source: TaskSource) -> LimiterStats:
        """Run every task from ``source`` and return the run's counters."""
        supplier = _as_supplier(source)
        self.token.add_listener(self._changed.set)
        start = time.monotonic()

        workers = [asyncio.create_task(self._worker(supplier)) for _ in range(self.limit)]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            raise
        finally:
            self.token.remove_listener(self._changed.set)
            self.stats.elapsed_seconds = time.monotonic() - start

        if self.token.stopped:
            self.logger.info(
                f"Stopped {self.name} after {self.stats.started} started "
                f"({self.stats.failed} failed)"
            )
        return self.stats

    async def _worker(self, supplier: TaskSupplier) -> None:
        while not self.token.stopped:
            task = supplier()
            if task is None:
                if self._active == 0:
                    # Nothing queued and nobody left who could queue more
                    self._changed.set()
                    return
                self._changed.clear()
                await self._changed.wait()
                continue
            await self._execute(task)

    async def _execute(self, task: Task) -> None:
        self._active += 1
        self.stats.started += 1
        self.stats.max_active = max(self.stats.max_active, self._active)
        try:
            await task()
            self.stats.succeeded += 1
        except OperationCancelledError:
            self.stats.cancelled += 1
            self.logger.debug(f"Task in {self.name} cancelled")
        except Exception as e:
            self.stats.failed += 1
            self.logger.error(f"Task in {self.name} failed: {e}", exc_info=True)
        finally:
            self._active -= 1
            self._changed.set()


async def limit_concurrency(
    source: TaskSource,
    limit: int,
    token: Optional[CancellationToken] = None,
    logger: Optional[ContextualLogger] = None,
    name: str = "tasks",
) -> LimiterStats:
    """Run tasks from ``source`` with bounded concurrency.

    Example:
        queue = PriorityTaskQueue()
        queue.push(fetch_next_page)
        await limit_concurrency(queue, limit=5, token=token)
    """
    limiter = ConcurrencyLimiter(limit, token=token, logger=logger, name=name)
    return await limiter.run(source)


def _as_supplier(source: TaskSource) -> TaskSupplier:
    if callable(source):
        return source
    iterator = iter(source)
    return lambda: next(iterator, None)
