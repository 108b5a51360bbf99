# dsqlgen

A library for load-testing distributed SQL clusters: it runs a workload as a
fixed number of batches at a chosen concurrency, retries failed batches with
jittered exponential backoff, and turns the results into latency, throughput,
error and rough cost figures.

It needs only the Python standard library (3.10 or later).

## Workloads

`dsqlgen.workloads` defines the `Workload` interface, with two coroutines:
`setup(client)` prepares the schema and `transaction(client)` runs one batch
inside an already open transaction and returns an `Inserts` value
(`rows_inserted`, `logical_bytes_written`).

- `TinyRows(rows_per_transaction)` inserts that many small random text rows
  into the `tiny` table, counted as 68 bytes each.
- `OneKibRows(rows_per_transaction)` does the same into the `onekib` table,
  counted as 1024 bytes each.
- `Counter()` increments one row of the `counter` table.
- `Tpcb(scale=1, no_initialize=False, no_deinitialize=False)` runs a TPC-B
  style transaction on pgbench-shaped tables. `setup` drops the tables unless
  `no_deinitialize` is set, then creates and fills missing ones unless
  `no_initialize` is set. `num_branches()`, `num_tellers()` and
  `num_accounts()` are `scale`, `10 * scale` and `100_000 * scale`. A
  transaction raises `RuntimeError` when an account, teller or branch row is
  missing.

A client is any object with the coroutines `execute(query, params=())`
(returning the affected row count), `query_one(query, params=())` (returning
a row that can be indexed by position and by column name) and
`statement(name, query)` (returning a prepared statement `execute` accepts).

## Running batches

```python
import asyncio

from dsqlgen.runner import InsertsExecutor, create_runner
from dsqlgen.ui import HeadlessMonitor
from dsqlgen.workloads import TinyRows


async def run(pool):
    queue = asyncio.Queue()
    workload = TinyRows(rows_per_transaction=100)
    runner = await create_runner(
        pool, workload, InsertsExecutor(workload),
        concurrency=10, batches=2000, queue=queue,
    )
    monitor = HeadlessMonitor(queue, 10, 100, "tiny")
    await monitor.run(runner)
    monitor.print_final_stats()
```

`pool` is any object whose `borrow()` returns an async context manager
yielding a client.

- `create_runner` runs the workload's `setup` on one borrowed client and
  returns a `WorkloadRunner`; it raises `ValueError` for a concurrency of zero
  or less.
- `WorkloadRunner.spawn()` starts an asyncio task that keeps up to
  `concurrency()` batches in flight until `batches()` have completed, then puts
  `WorkloadComplete()` on the queue. `set_concurrency` and `set_batches` change
  both figures while it runs.
- `InsertsExecutor.execute_batch_with_retry` wraps each attempt in
  `BEGIN`/`COMMIT` (or `ROLLBACK` when `always_rollback` is set, and always
  after a failure), reports every attempt as `QueryOk` or `QueryErr`, and
  retries until one succeeds. Its delays come from `backoff_delays(10)`
  (10 ms, 100 ms, 1 s, ...) scaled by a random factor.

## Messages

`dsqlgen.events` holds the messages: `QueryOk`, `QueryErr`, `InitialUsage`,
`UsageUpdated`, `WorkloadComplete`, `PoolConnected`, `PoolDisconnected` and
`PoolError`. `EventListener` applies them to a `dsqlgen.tui.model.Model`,
either one at a time with `process_message` or all that are waiting with
`process_available_messages`.

## Headless results

`dsqlgen.ui.HeadlessMonitor.run(runner)` starts the runner, prints one JSON
line with the start configuration and collects messages until the run ends.
`final_stats()` returns, and `print_final_stats()` prints as one JSON line,
the duration, completed batches, error count, throughput, latency percentiles
(p50, p95, p99, p99.9, max, mean, standard deviation) and the first five error
messages.

## Panel state

`dsqlgen.tui` keeps the state a live monitor draws from, as plain text and
chart data:

- `latency.LatencyHistogram`, a three-significant-digit histogram of
  milliseconds up to ten minutes, and `latency.LatencyState` with
  `stats_lines()` and `chart_series(now)`.
- `errors.ErrorState` with `record_error`, `error_list_lines(now)`,
  `summary_text()` and `chart_series(now)`.
- `performance.PerformanceState` with `stats_lines(now)` (over the last five
  seconds) and `chart_series(now)`.
- `progress.ProgressState` with `label()` and `percent`.
- `usage_cost.UsageCostState` with `rows()` for the usage and cost table.
- `model.Metrics` and `model.Model`, which gather all of them.

Chart series cover the last five minutes in one-second buckets and are built
with `dsqlgen.history`: `TimestampedHistory` keeps values inside a sliding
window of monotonic seconds, and `bucket_data` with `BucketConfig` groups them
into fixed-width buckets.

## Usage and cost estimates

```python
from dsqlgen.usage import DpuMetrics, StorageMetrics, Usage, calculate_costs, format_usage

dpus = DpuMetrics(total=1_000_000.0, compute=400_000.0, read=300_000.0, write=300_000.0)
storage = StorageMetrics(size_bytes=5_000_000_000.0)
usage = Usage(dpu_metrics=dpus, storage_metrics=storage,
              cost_estimate=calculate_costs(dpus, storage))
print(format_usage(usage))
```

`format_usage_with_diff` adds delta columns, `print_usage` and
`print_usage_with_diff` print the tables, `format_bytes` renders sizes in
decimal or binary units, and `this_month_to_now` returns the start of the
current UTC month and the current time. The estimate is for experimentation
only and should not be relied on for billing.

## What it does not do

- There is no command-line program; everything is called from Python.
- It has no database driver or connection pool of its own: the caller
  supplies the pool and clients described above.
- It does not fetch usage metrics from any monitoring service; DPU and storage
  figures have to be supplied.
- It does not draw a full-screen terminal dashboard; the `dsqlgen.tui` classes
  provide the text and chart data for one.

## Tests

Install the `test` extra and run `pytest`.