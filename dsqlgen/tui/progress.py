"""State behind the progress bar."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ProgressState:
    """How many batches have completed out of the total."""

    completed: int = 0
    total: int = 0
    pct: float = 0.0

    @property
    def percent(self) -> int:
        """Whole percentage for the gauge, limited to 0..100."""
        return min(max(int(self.pct), 0), 100)

    def label(self) -> str:
        return f"{self.completed}/{self.total} ({self.pct:.1f}%)"