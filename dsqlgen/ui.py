"""Headless monitoring of a workload run, reporting start and results as JSON lines."""

from __future__ import annotations

import asyncio
import contextlib
import json
import math
import sys
import time
from datetime import datetime, timezone
from typing import Any

from dsqlgen.events import EventListener, Message, QueryErr, QueryOk, WorkloadComplete
from dsqlgen.runner import WorkloadRunner
from dsqlgen.tui.latency import LatencyHistogram

_DRAIN_LIMIT = 50
_ERRORS_SHOWN = 5
_QUEUE_CLOSED: tuple[type[BaseException], ...] = tuple(
    exc for exc in (getattr(asyncio, "QueueShutDown", None),) if exc is not None
)


def _rfc3339(moment: datetime) -> str:
    """Format a UTC time with as many fractional digits (0, 3 or 6) as it needs."""
    micros = moment.microsecond
    if micros == 0:
        timespec = "seconds"
    elif micros % 1000 == 0:
        timespec = "milliseconds"
    else:
        timespec = "microseconds"
    return moment.isoformat(timespec=timespec)


def _to_json(document: dict[str, Any]) -> str:
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class HeadlessMonitor:
    """Collects batch results without a terminal UI and summarises them at the end."""

    def __init__(
        self,
        queue: asyncio.Queue,
        concurrency: int,
        rows_per_transaction: int | None,
        workload_name: str,
        always_rollback: bool = False,
    ) -> None:
        self.listener = EventListener(queue)
        self.latency_histogram = LatencyHistogram()
        self.completed_batches = 0
        self.error_count = 0
        self.start_time = time.monotonic()
        self.start_time_utc = datetime.now(timezone.utc)
        self.total_batches = 0
        self.errors: list[str] = []
        self.concurrency = concurrency
        self.rows_per_transaction = rows_per_transaction
        self.workload_name = workload_name
        self.always_rollback = always_rollback

    def start_config(self) -> dict[str, Any]:
        return {
            "phase": "start",
            "start_time_utc": _rfc3339(self.start_time_utc),
            "workload": self.workload_name,
            "total_batches": self.total_batches,
            "concurrency": self.concurrency,
            "always_rollback": self.always_rollback,
            "rows_per_transaction": self.rows_per_transaction,
        }

    async def run(self, runner: WorkloadRunner) -> None:
        """Start the runner, print the start configuration and collect messages until done."""
        self.total_batches = runner.batches()
        running = runner.spawn()
        print(_to_json(self.start_config()))

        queue = self.listener.queue
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, running}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await getter
                break
            try:
                message = getter.result()
            except _QUEUE_CLOSED:
                break
            self.process_message(message)
            if self.listener.completed:
                with contextlib.suppress(Exception):
                    await running
                break

        for _ in range(_DRAIN_LIMIT):
            try:
                message = queue.get_nowait()
            except (asyncio.QueueEmpty, *_QUEUE_CLOSED):
                break
            self.process_message(message)

    def process_message(self, message: Message) -> None:
        """Count successes, failures and completion; other messages are ignored."""
        match message:
            case QueryOk():
                with contextlib.suppress(ValueError):
                    self.latency_histogram.record(message.duration_ms)
                self.completed_batches += 1
            case QueryErr():
                self.error_count += 1
                self.errors.append(message.msg)
            case WorkloadComplete():
                self.listener.completed = True
            case _:
                pass

    def final_stats(self) -> dict[str, Any]:
        duration = time.monotonic() - self.start_time
        results: dict[str, Any] = {
            "phase": "results",
            "end_time_utc": _rfc3339(datetime.now(timezone.utc)),
            "duration_s": f"{duration:.3f}",
            "completed_batches": self.completed_batches,
            "error_count": self.error_count,
        }

        if self.completed_batches > 0:
            rate = self.completed_batches / duration if duration > 0 else math.inf
            results["throughput_batches_per_sec"] = f"{rate:.1f}"

            histogram = self.latency_histogram
            if len(histogram) > 0:
                results["latency"] = {
                    "p50_ms": f"{float(histogram.value_at_quantile(0.5)):.1f}",
                    "p95_ms": f"{float(histogram.value_at_quantile(0.95)):.1f}",
                    "p99_ms": f"{float(histogram.value_at_quantile(0.99)):.1f}",
                    "p999_ms": f"{float(histogram.value_at_quantile(0.999)):.1f}",
                    "max_ms": f"{float(histogram.max()):.1f}",
                    "mean_ms": f"{histogram.mean():.1f}",
                    "stddev_ms": f"{histogram.stdev():.1f}",
                }

        if self.error_count > 0 and self.errors:
            results["errors"] = [
                error.replace("\t", " ").replace("\n", " ")
                for error in self.errors[:_ERRORS_SHOWN]
            ]
        return results

    def print_final_stats(self) -> None:
        """Write the final results as one JSON line; nothing is written if they cannot be encoded."""
        results = self.final_stats()
        try:
            line = _to_json(results)
        except (TypeError, ValueError):
            return
        sys.stdout.write(line + "\n")
        sys.stdout.flush()