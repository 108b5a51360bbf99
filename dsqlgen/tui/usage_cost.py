"""State and table rows behind the usage and cost panel."""

from __future__ import annotations

from dataclasses import dataclass, field

from dsqlgen.usage import Usage, appropriate_unit, format_bytes

COLUMN_WIDTHS = (12, 20, 20, 20, 20)
_RULE = "═══════════"


@dataclass
class UsageCostState:
    """Usage at the start of the run and the latest measurement."""

    initial: Usage = field(default_factory=Usage)
    latest: Usage = field(default_factory=Usage)

    def rows(self) -> list[tuple[str, str, str, str, str]]:
        """Table rows: label, month usage, month cost, usage delta, cost delta."""
        latest = self.latest
        diff = self.latest - self.initial
        dpus, dpu_diff = latest.dpu_metrics, diff.dpu_metrics
        costs, cost_diff = latest.cost_estimate.total_dpus, diff.cost_estimate.total_dpus

        rows = [("", "Month", "Month", "Delta", "Delta")]
        for label, amount, cost, amount_delta, cost_delta in (
            ("Total DPUs:", dpus.total, costs.total, dpu_diff.total, cost_diff.total),
            ("  Compute:", dpus.compute, costs.compute, dpu_diff.compute, cost_diff.compute),
            ("  Read:", dpus.read, costs.read, dpu_diff.read, cost_diff.read),
            ("  Write:", dpus.write, costs.write, dpu_diff.write, cost_diff.write),
        ):
            rows.append(
                (label, f"{amount:.2f}", f"${cost:.2f}", f"+{amount_delta:.2f}", f"+${cost_delta:.2f}")
            )

        value, unit = appropriate_unit(latest.storage_metrics.size_bytes)
        rows.append(
            (
                "Storage:",
                f"{value:.2f} {unit}",
                f"${latest.cost_estimate.latest_storage.gb_month:.2f}",
                f"+{format_bytes(diff.storage_metrics.size_bytes)}",
                f"+${diff.cost_estimate.latest_storage.gb_month:.2f}",
            )
        )
        rows.append((_RULE,) * 5)
        rows.append(
            (
                "TOTAL COST:",
                "",
                f"${latest.cost_estimate.total:.2f}",
                "",
                f"(+${diff.cost_estimate.total:.2f})",
            )
        )
        return rows