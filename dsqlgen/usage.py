"""Usage metrics, cost estimation and console reporting.

Cost figures are rough estimates meant for this load generator only: total DPUs
consumed in a window plus the latest storage size, assumed to stay for the month.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

_DECIMAL_UNITS = (
    ("EB", 10**18),
    ("PB", 10**15),
    ("TB", 10**12),
    ("GB", 10**9),
    ("MB", 10**6),
    ("KB", 10**3),
)
_BINARY_UNITS = (
    ("EiB", 2**60),
    ("PiB", 2**50),
    ("TiB", 2**40),
    ("GiB", 2**30),
    ("MiB", 2**20),
    ("KiB", 2**10),
)
_U64_MAX = 2**64 - 1

_DPU_PRICE = 8.0
_READ_WRITE_DPU_PRICE = 8.9
_GB_MONTH_PRICE = 0.33


@dataclass(frozen=True)
class DpuMetrics:
    total: float = 0.0
    compute: float = 0.0
    read: float = 0.0
    write: float = 0.0

    def __sub__(self, other: DpuMetrics) -> DpuMetrics:
        return DpuMetrics(
            self.total - other.total,
            self.compute - other.compute,
            self.read - other.read,
            self.write - other.write,
        )


@dataclass(frozen=True)
class DpuCost:
    total: float = 0.0
    compute: float = 0.0
    read: float = 0.0
    write: float = 0.0

    def __sub__(self, other: DpuCost) -> DpuCost:
        return DpuCost(
            self.total - other.total,
            self.compute - other.compute,
            self.read - other.read,
            self.write - other.write,
        )


@dataclass(frozen=True)
class StorageMetrics:
    size_bytes: float = 0.0

    def __sub__(self, other: StorageMetrics) -> StorageMetrics:
        return StorageMetrics(self.size_bytes - other.size_bytes)


@dataclass(frozen=True)
class StorageCost:
    gb_month: float = 0.0

    def __sub__(self, other: StorageCost) -> StorageCost:
        return StorageCost(self.gb_month - other.gb_month)


@dataclass(frozen=True)
class CostEstimate:
    """Estimated cost in dollars."""

    total_dpus: DpuCost = field(default_factory=DpuCost)
    latest_storage: StorageCost = field(default_factory=StorageCost)

    def __sub__(self, other: CostEstimate) -> CostEstimate:
        return CostEstimate(
            self.total_dpus - other.total_dpus,
            self.latest_storage - other.latest_storage,
        )

    @property
    def total(self) -> float:
        return self.total_dpus.total + self.latest_storage.gb_month


@dataclass
class Usage:
    dpu_metrics: DpuMetrics = field(default_factory=DpuMetrics)
    storage_metrics: StorageMetrics = field(default_factory=StorageMetrics)
    cost_estimate: CostEstimate = field(default_factory=CostEstimate)

    def __sub__(self, other: Usage) -> Usage:
        return Usage(
            self.dpu_metrics - other.dpu_metrics,
            self.storage_metrics - other.storage_metrics,
            self.cost_estimate - other.cost_estimate,
        )

    def set_dpu_metrics(self, updated: DpuMetrics) -> bool:
        """Replace DPU metrics; return whether anything changed."""
        if self.dpu_metrics == updated:
            return False
        self.dpu_metrics = updated
        self._recalculate()
        return True

    def set_storage_metrics(self, updated: StorageMetrics) -> bool:
        """Replace storage metrics; return whether anything changed."""
        if self.storage_metrics == updated:
            return False
        self.storage_metrics = updated
        self._recalculate()
        return True

    def _recalculate(self) -> None:
        self.cost_estimate = calculate_costs(self.dpu_metrics, self.storage_metrics)


def _to_byte_count(size: float) -> int:
    """Convert a float to an unsigned 64-bit count, saturating at the bounds."""
    if math.isnan(size) or size <= 0:
        return 0
    if math.isinf(size):
        return _U64_MAX
    return min(int(size), _U64_MAX)


def calculate_costs(dpu_metrics: DpuMetrics, storage_metrics: StorageMetrics) -> CostEstimate:
    """Estimate DPU and storage cost in dollars."""
    total_dpus = DpuCost(
        total=dpu_metrics.total * _DPU_PRICE / 1_000_000.0,
        compute=dpu_metrics.compute * _DPU_PRICE / 1_000_000.0,
        read=dpu_metrics.read * _READ_WRITE_DPU_PRICE / 1_000_000.0,
        write=dpu_metrics.write * _READ_WRITE_DPU_PRICE / 1_000_000.0,
    )
    gb = _to_byte_count(storage_metrics.size_bytes) / 10**9
    return CostEstimate(total_dpus, StorageCost(gb * _GB_MONTH_PRICE))


def appropriate_unit(size: float, binary: bool = False) -> tuple[float, str]:
    """Return the size scaled to the largest unit it reaches, with that unit's name."""
    count = _to_byte_count(size)
    for name, factor in _BINARY_UNITS if binary else _DECIMAL_UNITS:
        if count >= factor:
            return count / factor, name
    return float(count), "B"


def _plain_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_bytes(size: float, binary: bool = False) -> str:
    """Render a byte count in its appropriate decimal (or binary) unit."""
    value, unit = appropriate_unit(size, binary)
    return f"{_plain_number(value)} {unit}"


def _dollars(amount: float) -> str:
    return f"${amount:.2f}"


def format_usage(usage: Usage) -> str:
    """Render a usage and cost table."""
    dpus = usage.dpu_metrics
    costs = usage.cost_estimate.total_dpus
    lines = [
        f"{' Usage & Cost ':=^70}",
        f"{'':<15} {'Usage':>15} {'Cost':>15}",
        f"{'':-<15} {'':-^15} {'':-^15}",
    ]
    for label, amount, cost in (
        ("Total DPUs:", dpus.total, costs.total),
        ("  Compute:", dpus.compute, costs.compute),
        ("  Read:", dpus.read, costs.read),
        ("  Write:", dpus.write, costs.write),
    ):
        lines.append(f"{label:<15} {amount:>15.2f} {_dollars(cost):>15}")
    storage = format_bytes(usage.storage_metrics.size_bytes)
    storage_cost = _dollars(usage.cost_estimate.latest_storage.gb_month)
    lines.append(f"{'Storage:':<15} {storage:>15} {storage_cost:>15}")
    lines.append(f"{'':═<15} {'':═^15} {'':═^15}")
    lines.append(f"{'TOTAL COST:':<15} {'':>15} {_dollars(usage.cost_estimate.total):>15}")
    lines.append(f"{'':=^70}")
    return "\n".join(lines)


def format_usage_with_diff(latest: Usage, diff: Usage) -> str:
    """Render a usage and cost table alongside the change since a baseline."""
    dpus, dpu_diff = latest.dpu_metrics, diff.dpu_metrics
    costs, cost_diff = latest.cost_estimate.total_dpus, diff.cost_estimate.total_dpus
    lines = [
        f"{' Usage & Cost ':=^90}",
        f"{'':<15} {'Usage':>15} {'Delta':>15} {'Cost':>15} {'Delta':>15}",
        f"{'':-<15} {'':-^15} {'':-^15} {'':-^15} {'':-^15}",
    ]
    for label, amount, amount_delta, cost, cost_delta in (
        ("Total DPUs:", dpus.total, dpu_diff.total, costs.total, cost_diff.total),
        ("  Compute:", dpus.compute, dpu_diff.compute, costs.compute, cost_diff.compute),
        ("  Read:", dpus.read, dpu_diff.read, costs.read, cost_diff.read),
        ("  Write:", dpus.write, dpu_diff.write, costs.write, cost_diff.write),
    ):
        lines.append(
            f"{label:<15} {amount:>15.2f} {f'(+{amount_delta:.2f})':>15} "
            f"{_dollars(cost):>15} {f'(+{_dollars(cost_delta)})':>15}"
        )
    storage = format_bytes(latest.storage_metrics.size_bytes)
    storage_delta = f"(+{format_bytes(diff.storage_metrics.size_bytes)})"
    storage_cost = _dollars(latest.cost_estimate.latest_storage.gb_month)
    storage_cost_delta = f"(+{_dollars(diff.cost_estimate.latest_storage.gb_month)})"
    lines.append(
        f"{'Storage:':<15} {storage:>15} {storage_delta:>15} "
        f"{storage_cost:>15} {storage_cost_delta:>15}"
    )
    lines.append(f"{'':═<15} {'':═^15} {'':═^15} {'':═^15} {'':═^15}")
    total = _dollars(latest.cost_estimate.total)
    total_delta = f"(+{_dollars(diff.cost_estimate.total)})"
    lines.append(f"{'TOTAL COST:':<15} {'':>15} {'':>15} {total:>15} {total_delta:>15}")
    lines.append(f"{'':=^90}")
    return "\n".join(lines)


def print_usage(usage: Usage) -> None:
    print()
    print(format_usage(usage))


def print_usage_with_diff(latest: Usage, diff: Usage) -> None:
    print()
    print(format_usage_with_diff(latest, diff))


def this_month_to_now(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the start of the current UTC month and the current time."""
    if now is None:
        now = datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, now