"""Latency histogram, latency history and the data behind the latency panel."""

from __future__ import annotations

import math
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import NamedTuple

from dsqlgen.history import BucketConfig, TimestampedHistory, bucket_data

HISTORY_WINDOW = 300.0
LOWEST_TRACKABLE = 1
HIGHEST_TRACKABLE = 600_000

# Three significant digits need 2048 sub-buckets (2 ** 11) per bucket.
_SUB_BUCKET_BITS = 11
_SUB_BUCKET_COUNT = 1 << _SUB_BUCKET_BITS


def _bucket_shift(value: int) -> int:
    return max(0, value.bit_length() - _SUB_BUCKET_BITS)


def _lowest_equivalent(value: int) -> int:
    shift = _bucket_shift(value)
    return (value >> shift) << shift


def _range_size(value: int) -> int:
    return 1 << _bucket_shift(value)


def _highest_equivalent(value: int) -> int:
    return _lowest_equivalent(value) + _range_size(value) - 1


def _median_equivalent(value: int) -> int:
    return _lowest_equivalent(value) + (_range_size(value) >> 1)


_MAX_RECORDABLE = (_SUB_BUCKET_COUNT << _bucket_shift(HIGHEST_TRACKABLE)) - 1


class LatencyHistogram:
    """A high-dynamic-range histogram of millisecond latencies, precise to three digits."""

    def __init__(self) -> None:
        self._counts: Counter[int] = Counter()
        self._total = 0

    def record(self, value: int) -> None:
        """Count one value; raise ValueError if it lies outside the trackable range."""
        if value < 0 or value > _MAX_RECORDABLE:
            raise ValueError(f"value {value} is outside the histogram's range")
        self._counts[_lowest_equivalent(int(value))] += 1
        self._total += 1

    def value_at_quantile(self, quantile: float) -> int:
        """Return the highest value equivalent to the given quantile, or 0 when empty."""
        quantile = min(max(quantile, 0.0), 1.0)
        target = max(1, math.ceil(quantile * self._total))
        running = 0
        for value in sorted(self._counts):
            running += self._counts[value]
            if running >= target:
                return _lowest_equivalent(value) if quantile == 0.0 else _highest_equivalent(value)
        return 0

    def max(self) -> int:
        if not self._counts:
            return 0
        return _highest_equivalent(max(self._counts))

    def mean(self) -> float:
        if not self._total:
            return 0.0
        weighted = sum(_median_equivalent(v) * n for v, n in self._counts.items())
        return weighted / self._total

    def stdev(self) -> float:
        if not self._total:
            return 0.0
        mean = self.mean()
        squares = sum((_median_equivalent(v) - mean) ** 2 * n for v, n in self._counts.items())
        return math.sqrt(squares / self._total)

    def reset(self) -> None:
        self._counts.clear()
        self._total = 0

    def copy(self) -> LatencyHistogram:
        clone = LatencyHistogram()
        clone._counts = Counter(self._counts)
        clone._total = self._total
        return clone

    def __len__(self) -> int:
        return self._total


class LatencySeries(NamedTuple):
    """Chart data: (x, y) points for p50 and p99, and the top of the y axis."""

    p50: list[tuple[float, float]]
    p99: list[tuple[float, float]]
    y_max: float

    @property
    def y_labels(self) -> list[str]:
        return ["0", f"{self.y_max / 2:.0f}", f"{self.y_max:.0f}"]


@dataclass
class LatencyState:
    """The current latency histogram and its recent snapshots."""

    latest_latency_histogram: LatencyHistogram = field(default_factory=LatencyHistogram)
    latency_histogram_history: TimestampedHistory[LatencyHistogram] = field(
        default_factory=lambda: TimestampedHistory(HISTORY_WINDOW)
    )

    def update(self, histogram: LatencyHistogram) -> None:
        """Replace the latest histogram and add it to the history."""
        self.latest_latency_histogram = histogram.copy()
        self.latency_histogram_history.push(histogram)

    def record(self, latency_ms: int) -> None:
        """Record one latency and snapshot the histogram into the history."""
        self.latest_latency_histogram.record(latency_ms)
        self.latency_histogram_history.push(self.latest_latency_histogram.copy())

    def stats_lines(self) -> list[str]:
        h = self.latest_latency_histogram
        return [
            f"p50:   {float(h.value_at_quantile(0.50)):.1f} ms",
            f"p90:   {float(h.value_at_quantile(0.90)):.1f} ms",
            f"p99:   {float(h.value_at_quantile(0.99)):.1f} ms",
            f"p99.9: {float(h.value_at_quantile(0.999)):.1f} ms",
        ]

    def chart_series(self, now: float | None = None) -> LatencySeries | None:
        """Per-second p50/p99 over the last five minutes; None when there is no data.

        ``now`` is a monotonic time in seconds.
        """
        history = self.latency_histogram_history
        if not len(history):
            return None
        if now is None:
            now = time.monotonic()
        config = BucketConfig(1.0, 300)
        p50 = bucket_data(history.data, config, lambda hs: float(hs[-1].value_at_quantile(0.50)), 0.0, now)
        p99 = bucket_data(history.data, config, lambda hs: float(hs[-1].value_at_quantile(0.99)), 0.0, now)
        peak = max(max(p50), max(p99), 0.0)
        return LatencySeries(
            p50=[(float(i), v) for i, v in enumerate(p50)],
            p99=[(float(i), v) for i, v in enumerate(p99)],
            y_max=max(peak * 1.1, 10.0),
        )