"""Runs a workload's batches against a connection pool at a chosen concurrency."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Iterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Protocol

from dsqlgen.events import QueryErr, QueryOk, WorkloadComplete
from dsqlgen.workloads import Inserts, Workload

log = logging.getLogger(__name__)

_MAX_DELAY_MS = 2**64 - 1
_RETRY_BASE_MS = 10
_IDLE_WAIT = 0.001

# Raised by queues that have been shut down, on Python versions that support it.
_QUEUE_CLOSED: tuple[type[BaseException], ...] = tuple(
    exc for exc in (getattr(asyncio, "QueueShutDown", None),) if exc is not None
)


class _Pool(Protocol):
    """A connection pool that lends out database clients."""

    def borrow(self) -> AbstractAsyncContextManager[Any]: ...


class _Queue(Protocol):
    """Where runner messages are sent."""

    async def put(self, item: Any) -> None: ...


class _BatchExecutor(Protocol):
    async def execute_batch_with_retry(
        self, pool: _Pool, queue: _Queue, always_rollback: bool
    ) -> bool: ...


def backoff_delays(base_ms: int) -> Iterator[float]:
    """Yield exponentially growing delays in seconds: base, base², base³ ... milliseconds.

    The delays saturate at the largest unsigned 64-bit number of milliseconds.
    """
    current = base_ms
    while True:
        yield current / 1000
        current = min(current * base_ms, _MAX_DELAY_MS)


def _elapsed_since(start: float) -> timedelta:
    return timedelta(seconds=time.monotonic() - start)


@dataclass(frozen=True)
class InsertsExecutor:
    """Runs one workload transaction per batch, retrying with jittered backoff."""

    workload: Workload

    async def _attempt(self, pool: _Pool, always_rollback: bool) -> Inserts:
        async with pool.borrow() as client:
            await client.execute("BEGIN")
            try:
                inserts = await self.workload.transaction(client)
            except Exception:
                try:
                    await client.execute("ROLLBACK")
                except Exception as rollback_error:
                    log.debug("rollback after failure also failed: %s", rollback_error)
                raise
            await client.execute("ROLLBACK" if always_rollback else "COMMIT")
            return inserts

    async def execute_batch_with_retry(
        self, pool: _Pool, queue: _Queue, always_rollback: bool
    ) -> bool:
        """Run a batch until it succeeds; report every attempt on the queue.

        Returns False only when the queue is closed before the batch succeeds.
        """
        for delay in backoff_delays(_RETRY_BASE_MS):
            start = time.monotonic()
            try:
                inserts = await self._attempt(pool, always_rollback)
            except Exception as err:
                try:
                    await queue.put(QueryErr(_elapsed_since(start), str(err)))
                except _QUEUE_CLOSED:
                    return False
            else:
                with contextlib.suppress(*_QUEUE_CLOSED):
                    await queue.put(
                        QueryOk(
                            duration=_elapsed_since(start),
                            rows_inserted=inserts.rows_inserted,
                            logical_bytes_written=inserts.logical_bytes_written,
                        )
                    )
                return True
            await asyncio.sleep(delay * random.random())
        return False


class WorkloadRunner:
    """Keeps a number of batches in flight until the requested total has completed."""

    def __init__(
        self,
        pool: _Pool,
        executor: _BatchExecutor,
        concurrency: int,
        batches: int,
        queue: _Queue,
        always_rollback: bool = False,
    ) -> None:
        self.pool = pool
        self.executor = executor
        self._concurrency = concurrency
        self._batches = batches
        self.queue = queue
        self.always_rollback = always_rollback

    def spawn(self) -> asyncio.Task[None]:
        """Start running batches in the background; announce completion on the queue."""
        return asyncio.create_task(self._run())

    def _start_batch(self) -> asyncio.Task[bool]:
        return asyncio.create_task(
            self.executor.execute_batch_with_retry(self.pool, self.queue, self.always_rollback)
        )

    async def _run(self) -> None:
        running: set[asyncio.Task[bool]] = set()
        complete = 0
        spawned = 0
        try:
            while True:
                total = self._batches
                if complete >= total:
                    break

                while len(running) < self._concurrency and spawned < total:
                    running.add(self._start_batch())
                    spawned += 1

                if running:
                    done, running = await asyncio.wait(
                        running, return_when=asyncio.FIRST_COMPLETED
                    )
                    complete += sum(1 for task in done if _succeeded(task))
                elif spawned >= total:
                    break
                else:
                    await asyncio.sleep(_IDLE_WAIT)

            if running:
                await asyncio.wait(running)
                complete += sum(1 for task in running if _succeeded(task))
                running = set()
        finally:
            for task in running:
                task.cancel()

        await self.queue.put(WorkloadComplete())

    def set_concurrency(self, value: int) -> None:
        self._concurrency = value

    def concurrency(self) -> int:
        return self._concurrency

    def set_batches(self, value: int) -> None:
        self._batches = value

    def batches(self) -> int:
        return self._batches


def _succeeded(task: asyncio.Task[bool]) -> bool:
    if task.cancelled():
        return False
    if task.exception() is not None:
        log.error("batch task failed: %s", task.exception())
        return False
    return task.result() is True


async def create_runner(
    pool: _Pool,
    workload: Workload,
    executor: _BatchExecutor,
    concurrency: int,
    batches: int,
    queue: _Queue,
    always_rollback: bool = False,
) -> WorkloadRunner:
    """Set up the workload's schema on a pooled connection and return a ready runner."""
    if concurrency <= 0:
        raise ValueError("concurrency must be non-zero")
    log.info("will setup schema")
    async with pool.borrow() as client:
        log.info("connection acquired")
        await workload.setup(client)
    log.info("schema ready")
    return WorkloadRunner(pool, executor, concurrency, batches, queue, always_rollback)