import asyncio
from datetime import timedelta

from dsqlgen.events import EventListener, PoolConnected, QueryErr, QueryOk, UsageUpdated
from dsqlgen.tui.errors import ErrorEntry
from dsqlgen.tui.model import Metrics, Model
from dsqlgen.usage import DpuMetrics, Usage


class _Runner:
    def __init__(self, batches):
        self._batches = batches

    def batches(self):
        return self._batches


def test_get_and_reset_returns_and_clears():
    metrics = Metrics(completed_since_last_tick=3, errors_since_last_tick=2)
    metrics.latency_histogram.record(5)
    completed, errors, histogram = metrics.get_and_reset()
    assert (completed, errors) == (3, 2)
    assert len(histogram) == 1
    assert metrics.completed_since_last_tick == 0
    assert metrics.errors_since_last_tick == 0
    assert len(metrics.latency_histogram) == 0


def test_get_and_reset_histogram_is_independent():
    metrics = Metrics()
    metrics.latency_histogram.record(5)
    _, _, histogram = metrics.get_and_reset()
    metrics.latency_histogram.record(7)
    metrics.latency_histogram.record(8)
    assert len(histogram) == 1


def test_get_and_reset_keeps_totals():
    metrics = Metrics(completed_batches=9, error_count=4, completed_since_last_tick=1)
    metrics.get_and_reset()
    assert metrics.completed_batches == 9
    assert metrics.error_count == 4


def test_last_errors_keeps_five():
    metrics = Metrics()
    for i in range(8):
        metrics.last_errors.append(ErrorEntry(float(i), f"e{i}"))
    assert [e.message for e in metrics.last_errors] == ["e3", "e4", "e5", "e6", "e7"]


def test_model_defaults():
    runner = _Runner(10)
    model = Model(runner)
    assert model.runner is runner
    assert model.progress.completed == 0
    assert model.progress.total == 0
    assert model.progress_pct == 0.0
    assert model.error_state.error_count == 0
    assert model.performance_state.open == 0


def test_listener_updates_model():
    model = Model(_Runner(4))
    queue = asyncio.Queue()
    for message in (
        QueryOk(timedelta(milliseconds=12), 3, 300),
        QueryErr(timedelta(milliseconds=1), "boom"),
        PoolConnected(),
        UsageUpdated(Usage(DpuMetrics(total=2.0))),
    ):
        queue.put_nowait(message)
    EventListener(queue).process_available_messages(model)
    assert model.metrics.completed_batches == 1
    assert model.progress.completed == 1
    assert model.progress.total == 4
    assert len(model.latency_state.latest_latency_histogram) == 1
    assert len(model.performance_state.tps_history) == 1
    assert model.performance_state.open == 1
    assert model.error_state.error_count == 1
    assert model.usage_cost.latest.dpu_metrics.total == 2.0