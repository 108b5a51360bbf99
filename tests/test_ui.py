import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import pytest

from dsqlgen.events import InitialUsage, QueryErr, QueryOk, WorkloadComplete
from dsqlgen.runner import InsertsExecutor, create_runner
from dsqlgen.ui import HeadlessMonitor
from dsqlgen.usage import Usage
from dsqlgen.workloads import Inserts, Workload


class FakeClient:
    async def execute(self, query, params=()):
        return 1

    async def query_one(self, query, params=()):
        return [False]

    async def statement(self, name, query):
        return query


class FakePool:
    @asynccontextmanager
    async def borrow(self):
        yield FakeClient()


class SimpleWorkload(Workload):
    async def setup(self, client):
        await client.execute("SETUP")

    async def transaction(self, client):
        await asyncio.sleep(0)
        return Inserts(2, 20)


def ok(ms):
    return QueryOk(timedelta(milliseconds=ms), 1, 10)


def make_monitor(queue=None, rows=10, name="tiny"):
    return HeadlessMonitor(queue or asyncio.Queue(), 4, rows, name, False)


def test_process_message_counts_results():
    monitor = make_monitor()
    monitor.process_message(ok(5))
    monitor.process_message(ok(7))
    monitor.process_message(QueryErr(timedelta(milliseconds=1), "boom"))
    assert monitor.completed_batches == 2
    assert len(monitor.latency_histogram) == 2
    assert monitor.error_count == 1
    assert monitor.errors == ["boom"]


def test_process_message_marks_completion_and_ignores_usage():
    monitor = make_monitor()
    monitor.process_message(InitialUsage(Usage()))
    assert monitor.completed_batches == 0
    assert monitor.error_count == 0
    assert monitor.listener.completed is False
    monitor.process_message(WorkloadComplete())
    assert monitor.listener.completed is True


def test_final_stats_without_results():
    stats = make_monitor().final_stats()
    assert stats["phase"] == "results"
    assert stats["completed_batches"] == 0
    assert stats["error_count"] == 0
    assert "latency" not in stats
    assert "errors" not in stats
    assert "throughput_batches_per_sec" not in stats
    assert float(stats["duration_s"]) >= 0


def test_final_stats_latency_from_recorded_values():
    monitor = make_monitor()
    for _ in range(3):
        monitor.process_message(ok(5))
    stats = monitor.final_stats()
    latency = stats["latency"]
    assert latency["p50_ms"] == "5.0"
    assert latency["p999_ms"] == "5.0"
    assert latency["max_ms"] == "5.0"
    assert latency["mean_ms"] == "5.0"
    assert float(stats["throughput_batches_per_sec"]) > 0


def test_final_stats_errors_are_limited_and_flattened():
    monitor = make_monitor()
    for i in range(7):
        monitor.process_message(QueryErr(timedelta(0), f"line\tone\nerror {i}"))
    stats = monitor.final_stats()
    assert stats["error_count"] == 7
    assert len(stats["errors"]) == 5
    assert stats["errors"][0] == "line one error 0"
    assert all("\n" not in e and "\t" not in e for e in stats["errors"])


def test_start_config_describes_run():
    monitor = make_monitor(rows=10, name="tiny")
    config = monitor.start_config()
    assert config["phase"] == "start"
    assert config["workload"] == "tiny"
    assert config["rows_per_transaction"] == 10
    assert config["concurrency"] == 4
    assert config["total_batches"] == 0
    started = datetime.fromisoformat(config["start_time_utc"])
    assert started.utcoffset() == timedelta(0)


def test_print_final_stats_prints_one_sorted_json_line(capsys):
    monitor = make_monitor()
    monitor.process_message(ok(5))
    monitor.print_final_stats()
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    document = json.loads(lines[0])
    assert document["completed_batches"] == 1
    assert list(document) == sorted(document)


@pytest.mark.asyncio
async def test_run_collects_all_batches(capsys):
    queue = asyncio.Queue()
    workload = SimpleWorkload()
    runner = await create_runner(FakePool(), workload, InsertsExecutor(workload), 2, 6, queue)
    monitor = HeadlessMonitor(queue, 2, None, "counter", True)
    await monitor.run(runner)
    assert monitor.completed_batches == 6
    assert monitor.total_batches == 6
    assert monitor.listener.completed is True
    first = json.loads(capsys.readouterr().out.splitlines()[0])
    assert first["phase"] == "start"
    assert first["total_batches"] == 6
    assert first["rows_per_transaction"] is None
    assert first["always_rollback"] is True
    assert list(first) == sorted(first)