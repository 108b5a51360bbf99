"""Messages sent from the workload runner to the monitors, and the listener that applies them."""

from __future__ import annotations

import asyncio
import queue as _queue
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Union

from dsqlgen.usage import Usage

_ONE_MILLISECOND = timedelta(milliseconds=1)


@dataclass(frozen=True)
class QueryOk:
    """A batch that committed (or rolled back on purpose) successfully."""

    duration: timedelta
    rows_inserted: int
    logical_bytes_written: int

    @property
    def duration_ms(self) -> int:
        return self.duration // _ONE_MILLISECOND


@dataclass(frozen=True)
class QueryErr:
    """A failed attempt at running a batch."""

    duration: timedelta
    msg: str


@dataclass(frozen=True)
class InitialUsage:
    """Usage measured before the workload started."""

    usage: Usage


@dataclass(frozen=True)
class UsageUpdated:
    """The latest usage measurement."""

    usage: Usage


@dataclass(frozen=True)
class WorkloadComplete:
    """All batches have finished."""


@dataclass(frozen=True)
class PoolConnected:
    """The connection pool opened a connection."""

    connection_id: Any = None


@dataclass(frozen=True)
class PoolDisconnected:
    """The connection pool lost or closed a connection."""

    connection_id: Any = None


@dataclass(frozen=True)
class PoolError:
    """The connection pool failed to open or keep a connection."""

    error: Any
    connection_id: Any = None


Message = Union[
    QueryOk,
    QueryErr,
    InitialUsage,
    UsageUpdated,
    WorkloadComplete,
    PoolConnected,
    PoolDisconnected,
    PoolError,
]


class EventListener:
    """Reads runner messages from a queue and applies them to the UI model.

    The model is expected to expose ``runner``, ``metrics``, ``progress``,
    ``latency_state``, ``performance_state``, ``error_state`` and ``usage_cost``.
    """

    def __init__(self, queue: asyncio.Queue | _queue.Queue) -> None:
        self.queue = queue
        self.completed = False

    def process_message(self, message: Message, model: Any) -> None:
        """Apply one message to the model."""
        match message:
            case QueryOk():
                model.latency_state.record(message.duration_ms)
                model.metrics.completed_batches += 1
                model.performance_state.update(message)
                self._refresh_progress(model)
            case QueryErr():
                model.error_state.record_error(message.msg)
                self._refresh_progress(model)
            case InitialUsage():
                model.usage_cost.initial = message.usage
            case UsageUpdated():
                model.usage_cost.latest = message.usage
            case WorkloadComplete():
                self.completed = True
            case PoolConnected():
                model.performance_state.open += 1
            case PoolDisconnected():
                model.performance_state.open -= 1
            case PoolError():
                model.error_state.record_error(str(message.error))
            case _:
                raise TypeError(f"unknown message: {message!r}")

    @staticmethod
    def _refresh_progress(model: Any) -> None:
        progress = model.progress
        progress.total = model.runner.batches()
        progress.completed = model.metrics.completed_batches
        progress.pct = 100.0 * progress.completed / progress.total if progress.total else 0.0

    def process_available_messages(self, model: Any) -> None:
        """Apply every message already waiting in the queue, without blocking."""
        while True:
            try:
                message = self.queue.get_nowait()
            except (asyncio.QueueEmpty, _queue.Empty):
                return
            self.process_message(message, model)