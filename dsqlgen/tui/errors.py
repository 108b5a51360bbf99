"""Error tracking and the data behind the errors panel."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import NamedTuple

from dsqlgen.history import BucketConfig, TimestampedHistory, bucket_data

log = logging.getLogger(__name__)

HISTORY_WINDOW = 300.0
RECENT_ERRORS = 5


@dataclass(frozen=True)
class ErrorEntry:
    """An error message with its wall-clock time in seconds since the epoch."""

    timestamp: float
    message: str


def _truncate(message: str, limit: int) -> str:
    return f"{message[:limit]}..." if len(message) > limit else message


def _ago(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"


class ErrorSeries(NamedTuple):
    """Chart data: (x, errors per second) points and the top of the y axis."""

    points: list[tuple[float, float]]
    y_max: float

    @property
    def y_labels(self) -> list[str]:
        return ["0", f"{self.y_max / 2:.1f}", f"{self.y_max:.1f}"]


@dataclass
class ErrorState:
    """Error count, the most recent errors and the error-rate history."""

    error_history: TimestampedHistory[float] = field(
        default_factory=lambda: TimestampedHistory(HISTORY_WINDOW)
    )
    last_errors: deque[ErrorEntry] = field(default_factory=lambda: deque(maxlen=RECENT_ERRORS))
    error_count: int = 0

    def update(self, errors_per_second: float) -> None:
        self.error_history.push(errors_per_second)

    def record_error(self, message: str) -> None:
        """Count an error, keep it among the recent ones and add it to the rate history."""
        log.error("%s", message)
        self.error_count += 1
        self.last_errors.append(ErrorEntry(time.time(), message))
        self.update(1.0)

    def error_list_lines(self, now: float | None = None) -> list[str]:
        """Lines for the error list, with ages relative to ``now`` (wall-clock seconds)."""
        if now is None:
            now = time.time()
        lines = [f"Total errors: {self.error_count}"]
        if self.last_errors:
            lines += ["", "Recent errors:"]
            for entry in self.last_errors:
                elapsed = int(max(0.0, now - entry.timestamp))
                lines.append(f"[{_ago(elapsed)}] {_truncate(entry.message, 40)}")
        return lines

    def summary_text(self) -> str:
        """The plain error panel, with UTC times of day for recent errors."""
        text = f"Total errors: {self.error_count}\n"
        if self.last_errors:
            text += "\nRecent errors:\n"
            for number, entry in enumerate(self.last_errors, start=1):
                secs = int(max(0.0, entry.timestamp))
                hours, minutes, seconds = (secs // 3600) % 24, (secs // 60) % 60, secs % 60
                message = _truncate(entry.message, 60)
                text += f"{number}: [{hours}:{minutes:02}:{seconds:02}] {message}\n"
        text += "\nPress 'q' or ESC to quit"
        return text

    def chart_series(self, now: float | None = None) -> ErrorSeries | None:
        """Average error rate per second over five minutes; None when there is no data.

        ``now`` is a monotonic time in seconds.
        """
        if not len(self.error_history):
            return None
        if now is None:
            now = time.monotonic()
        buckets = bucket_data(
            self.error_history.data,
            BucketConfig(1.0, 300),
            lambda values: sum(values) / len(values),
            0.0,
            now,
        )
        peak = max(max(buckets), 0.0)
        return ErrorSeries(
            points=[(float(i), v) for i, v in enumerate(buckets)],
            y_max=max(peak * 1.1, 1.0),
        )