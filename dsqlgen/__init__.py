"""Workload runner, statistics and cost estimates for load-testing distributed SQL clusters."""

__version__ = "0.1.0"