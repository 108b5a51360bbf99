"""The UI model holding every panel's state."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from dsqlgen.tui.errors import RECENT_ERRORS, ErrorEntry, ErrorState
from dsqlgen.tui.latency import LatencyHistogram, LatencyState
from dsqlgen.tui.performance import PerformanceState
from dsqlgen.tui.progress import ProgressState
from dsqlgen.tui.usage_cost import UsageCostState


@dataclass
class Metrics:
    """Batch counters, including per-tick counts that are reset on read."""

    completed_batches: int = 0
    completed_since_last_tick: int = 0
    error_count: int = 0
    errors_since_last_tick: int = 0
    last_errors: deque[ErrorEntry] = field(default_factory=lambda: deque(maxlen=RECENT_ERRORS))
    latency_histogram: LatencyHistogram = field(default_factory=LatencyHistogram)

    def get_and_reset(self) -> tuple[int, int, LatencyHistogram]:
        """Return the per-tick completions, errors and latencies, then reset them."""
        completed = self.completed_since_last_tick
        errors = self.errors_since_last_tick
        histogram = self.latency_histogram.copy()
        self.completed_since_last_tick = 0
        self.errors_since_last_tick = 0
        self.latency_histogram.reset()
        return completed, errors, histogram


@dataclass
class Model:
    """All UI state, together with the runner it monitors."""

    runner: Any
    metrics: Metrics = field(default_factory=Metrics)
    progress_pct: float = 0.0
    usage_cost: UsageCostState = field(default_factory=UsageCostState)
    progress: ProgressState = field(default_factory=ProgressState)
    latency_state: LatencyState = field(default_factory=LatencyState)
    performance_state: PerformanceState = field(default_factory=PerformanceState)
    error_state: ErrorState = field(default_factory=ErrorState)