"""Workloads: the schema each one needs and the transaction it runs per batch."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol

NUM_TELLERS = 10
NUM_ACCOUNTS = 100_000
ROWS_PER_TX = 1000


class _Client(Protocol):
    """The database client a workload runs its statements on."""

    async def execute(self, query: Any, params: Sequence[Any] = ()) -> int: ...

    async def query_one(self, query: str, params: Sequence[Any] = ()) -> Any: ...

    async def statement(self, name: str, query: str) -> Any: ...


@dataclass(frozen=True)
class Inserts:
    """What a transaction wrote: row count and logical bytes."""

    rows_inserted: int
    logical_bytes_written: int


class Workload(ABC):
    """A load pattern: one-off schema setup and a transaction run per batch."""

    @abstractmethod
    async def setup(self, client: _Client) -> None:
        """Prepare the schema the workload needs."""

    @abstractmethod
    async def transaction(self, client: _Client) -> Inserts:
        """Run the statements of one batch inside an already open transaction."""


@dataclass(frozen=True)
class _BulkInsert(Workload):
    rows_per_transaction: int

    table: ClassVar[str]
    bytes_per_row: ClassVar[int]

    @property
    def query(self) -> str:
        return (
            f"INSERT INTO {self.table} (content) SELECT md5(random()::text) "
            f"FROM generate_series(1, {self.rows_per_transaction})"
        )

    async def setup(self, client: _Client) -> None:
        await client.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} (\n"
            "    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),\n"
            "    content text\n"
            ");"
        )

    async def transaction(self, client: _Client) -> Inserts:
        statement = await client.statement("q", self.query)
        await client.execute(statement)
        return Inserts(
            rows_inserted=self.rows_per_transaction,
            logical_bytes_written=self.rows_per_transaction * self.bytes_per_row,
        )


@dataclass(frozen=True)
class TinyRows(_BulkInsert):
    """Inserts small random text rows into the ``tiny`` table."""

    table: ClassVar[str] = "tiny"
    bytes_per_row: ClassVar[int] = 68


@dataclass(frozen=True)
class OneKibRows(_BulkInsert):
    """Inserts rows accounted as one KiB each into the ``onekib`` table."""

    table: ClassVar[str] = "onekib"
    bytes_per_row: ClassVar[int] = 1024


@dataclass(frozen=True)
class Counter(Workload):
    """Increments a single shared counter row, a worst case for contention."""

    query: ClassVar[str] = "UPDATE counter SET value = value + 1 WHERE id = 1"

    async def setup(self, client: _Client) -> None:
        await client.execute(
            "CREATE TABLE IF NOT EXISTS counter (\n"
            "    id INT PRIMARY KEY,\n"
            "    value INT\n"
            ");"
        )
        await client.execute("INSERT INTO counter VALUES (1, 0) ON CONFLICT DO NOTHING")

    async def transaction(self, client: _Client) -> Inserts:
        statement = await client.statement("q", self.query)
        await client.execute(statement)
        # An update, counted as one row for throughput reporting.
        return Inserts(rows_inserted=1, logical_bytes_written=12)


def _id_ranges(count: int) -> Iterator[tuple[int, int]]:
    """Inclusive id ranges of at most ROWS_PER_TX covering 1..count."""
    for start in range(1, count + 1, ROWS_PER_TX):
        yield start, min(start + ROWS_PER_TX - 1, count)


@dataclass(frozen=True)
class Tpcb(Workload):
    """A TPC-B style workload over pgbench-like tables."""

    scale: int = 1
    no_initialize: bool = False
    no_deinitialize: bool = False

    def num_accounts(self) -> int:
        return self.scale * NUM_ACCOUNTS

    def num_tellers(self) -> int:
        return self.scale * NUM_TELLERS

    def num_branches(self) -> int:
        return self.scale

    async def setup(self, client: _Client) -> None:
        if not self.no_deinitialize:
            await self._drop_tables(client)
        if not self.no_initialize:
            await self._initialize(client)

    async def _drop_tables(self, client: _Client) -> None:
        for table in ("pgbench_history", "pgbench_accounts", "pgbench_tellers", "pgbench_branches"):
            await client.execute(f"DROP TABLE IF EXISTS {table}")

    async def _initialize(self, client: _Client) -> None:
        await self._initialize_branches(client)
        await self._initialize_tellers(client)
        await self._initialize_accounts(client)
        await self._initialize_history(client)

    @staticmethod
    async def _exists(client: _Client, table: str) -> bool:
        row = await client.query_one(f"SELECT to_regclass('{table}') IS NOT NULL")
        return bool(row[0])

    @staticmethod
    async def _create_index(client: _Client, sql: str) -> None:
        row = await client.query_one(sql)
        await client.execute("CALL sys.wait_for_job($1)", [row["job_id"]])

    async def _initialize_branches(self, client: _Client) -> None:
        if await self._exists(client, "pgbench_branches"):
            return
        await client.execute(
            "CREATE TABLE pgbench_branches (\n"
            "    bid INTEGER PRIMARY KEY,\n"
            "    bbalance INTEGER,\n"
            "    filler CHAR(88)\n"
            ");"
        )
        for start, stop in _id_ranges(self.num_branches()):
            await client.execute(
                "INSERT INTO pgbench_branches (bid, bbalance)\n"
                f"SELECT bid, 0 FROM generate_series({start}, {stop}) as bid\n"
            )

    async def _initialize_tellers(self, client: _Client) -> None:
        if await self._exists(client, "pgbench_tellers"):
            return
        await client.execute(
            "CREATE TABLE pgbench_tellers (\n"
            "    tid INTEGER PRIMARY KEY,\n"
            "    bid INTEGER,\n"
            "    tbalance INTEGER,\n"
            "    filler CHAR(84)\n"
            ");"
        )
        await self._create_index(
            client, "CREATE INDEX ASYNC pgbench_tellers_bid_idx ON pgbench_tellers (bid)"
        )
        for start, stop in _id_ranges(self.num_tellers()):
            await client.execute(
                "INSERT INTO pgbench_tellers (tid, bid, tbalance)\n"
                f"SELECT tid, (tid - 1) / {NUM_TELLERS} + 1, 0 "
                f"FROM generate_series({start}, {stop}) as tid\n"
            )

    async def _initialize_accounts(self, client: _Client) -> None:
        if await self._exists(client, "pgbench_accounts"):
            return
        await client.execute(
            "CREATE TABLE pgbench_accounts (\n"
            "    aid INTEGER PRIMARY KEY,\n"
            "    bid INTEGER,\n"
            "    abalance INTEGER,\n"
            "    filler CHAR(84)\n"
            ");"
        )
        await self._create_index(
            client, "CREATE INDEX ASYNC pgbench_accounts_bid_idx ON pgbench_accounts (bid)"
        )
        for start, stop in _id_ranges(self.num_accounts()):
            await client.execute(
                "INSERT INTO pgbench_accounts (aid, bid, abalance)\n"
                f"SELECT aid, (aid - 1) / {NUM_ACCOUNTS} + 1, 0 "
                f"FROM generate_series({start}, {stop}) as aid\n"
            )

    async def _initialize_history(self, client: _Client) -> None:
        if await self._exists(client, "pgbench_history"):
            return
        await client.execute(
            "CREATE TABLE pgbench_history (\n"
            "    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),\n"
            "    tid INTEGER,\n"
            "    bid INTEGER,\n"
            "    aid INTEGER,\n"
            "    delta INTEGER,\n"
            "    mtime TIMESTAMP,\n"
            "    filler CHAR(22)\n"
            ");"
        )

    async def transaction(self, client: _Client) -> Inserts:
        aid = random.randint(1, self.num_accounts())
        bid = random.randint(1, self.num_branches())
        tid = random.randint(1, self.num_tellers())
        delta = random.randint(-5000, 5000)

        rows = await client.execute(
            "UPDATE pgbench_accounts SET abalance = abalance + $1 WHERE aid = $2", [delta, aid]
        )
        if rows != 1:
            raise RuntimeError(f"account {aid} does not exist")

        # The balance is not used; this matches the query load pgbench generates.
        await client.query_one("SELECT abalance FROM pgbench_accounts WHERE aid = $1", [aid])

        rows += await client.execute(
            "UPDATE pgbench_tellers SET tbalance = tbalance + $1 WHERE tid = $2", [delta, tid]
        )
        if rows != 2:
            raise RuntimeError(f"teller {tid} does not exist")

        rows += await client.execute(
            "UPDATE pgbench_branches SET bbalance = bbalance + $1 WHERE bid = $2", [delta, bid]
        )
        if rows != 3:
            raise RuntimeError(f"branch {bid} does not exist")

        rows += await client.execute(
            "INSERT INTO pgbench_history (tid, bid, aid, delta, mtime)\n"
            "VALUES ($1, $2, $3, $4, CURRENT_TIMESTAMP)",
            [tid, bid, aid, delta],
        )
        if rows != 4:
            raise RuntimeError("history row was not inserted")

        return Inserts(rows_inserted=rows, logical_bytes_written=100)