"""Throughput tracking and the data behind the performance panel."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import NamedTuple

from dsqlgen.events import QueryOk
from dsqlgen.history import BucketConfig, TimestampedHistory, bucket_data
from dsqlgen.usage import appropriate_unit

HISTORY_WINDOW = 300.0
STATS_WINDOW = 5


class PerformanceSeries(NamedTuple):
    """Chart data: (x, transactions per second) points and the top of the y axis."""

    points: list[tuple[float, float]]
    y_max: float

    @property
    def y_labels(self) -> list[str]:
        return ["0", f"{self.y_max / 2:.0f}", f"{self.y_max:.0f}"]


@dataclass
class PerformanceState:
    """Recent successful batches and the number of open pool connections."""

    tps_history: TimestampedHistory[QueryOk] = field(
        default_factory=lambda: TimestampedHistory(HISTORY_WINDOW)
    )
    open: int = 0

    @property
    def title(self) -> str:
        return f"Performance ({STATS_WINDOW} sec)"

    def update(self, ok: QueryOk) -> None:
        """Add a successful batch to the history, stamped now."""
        self.tps_history.push(ok)

    def stats_lines(self, now: float | None = None) -> list[str]:
        """Throughput over the last few seconds before ``now`` (monotonic seconds)."""
        if now is None:
            now = time.monotonic()
        since = now - STATS_WINDOW
        recent = [point.value for point in self.tps_history if point.timestamp >= since]
        tps = len(recent) / STATS_WINDOW
        rps = sum(ok.rows_inserted for ok in recent) / STATS_WINDOW
        bps = sum(ok.logical_bytes_written for ok in recent) / STATS_WINDOW
        value, unit = appropriate_unit(bps, binary=True)
        return [
            f"Transactions/sec: {int(tps)}",
            f"Rows/sec: {int(rps)}",
            f"Throughput: {value:.2f} {unit}/sec",
            f"Pool: {self.open} open",
        ]

    def chart_series(self, now: float | None = None) -> PerformanceSeries | None:
        """Transactions per second over five minutes; None when there is no data.

        ``now`` is a monotonic time in seconds.
        """
        if not len(self.tps_history):
            return None
        if now is None:
            now = time.monotonic()
        buckets = bucket_data(
            self.tps_history.data,
            BucketConfig(1.0, 300),
            lambda values: float(len(values)),
            0.0,
            now,
        )
        peak = max(max(buckets), 0.0)
        return PerformanceSeries(
            points=[(float(i), v) for i, v in enumerate(buckets)],
            y_max=max(peak * 1.1, 10.0),
        )