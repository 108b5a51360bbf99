"""Timestamped history tracking and time bucketing for charts."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class TimestampedDataPoint(Generic[T]):
    """A value paired with a monotonic timestamp in seconds."""

    value: T
    timestamp: float = field(default_factory=time.monotonic)


class TimestampedHistory(Generic[T]):
    """Keeps timestamped values that fall inside a sliding time window."""

    def __init__(self, window_duration: float) -> None:
        self.window_duration = window_duration
        self._data: deque[TimestampedDataPoint[T]] = deque()

    def push(self, value: T, timestamp: float | None = None) -> None:
        """Append a value, stamped now unless a timestamp is given, and drop stale points."""
        if timestamp is None:
            timestamp = time.monotonic()
        self._data.append(TimestampedDataPoint(value, timestamp))
        self._drop_older_than(timestamp - self.window_duration)

    def _drop_older_than(self, cutoff: float) -> None:
        while self._data and self._data[0].timestamp < cutoff:
            self._data.popleft()

    @property
    def data(self) -> deque[TimestampedDataPoint[T]]:
        return self._data

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[TimestampedDataPoint[T]]:
        return iter(self._data)


@dataclass(frozen=True)
class BucketConfig:
    """How a time range is divided for chart rendering."""

    bucket_duration: float
    total_buckets: int


def bucket_data(
    data: Iterable[TimestampedDataPoint[T]],
    config: BucketConfig,
    aggregator: Callable[[Sequence[T]], float],
    default: float = 0.0,
    now: float | None = None,
) -> list[float]:
    """Group points into buckets ending at ``now`` and aggregate each non-empty bucket."""
    buckets = [default] * config.total_buckets
    points = list(data)
    if not points:
        return buckets

    if now is None:
        now = time.monotonic()
    start = now - config.bucket_duration * config.total_buckets

    grouped: list[list[T]] = [[] for _ in range(config.total_buckets)]
    for point in points:
        if point.timestamp < start:
            continue
        index = int((point.timestamp - start) / config.bucket_duration)
        if index < config.total_buckets:
            grouped[index].append(point.value)

    for index, values in enumerate(grouped):
        if values:
            buckets[index] = aggregator(values)
    return buckets