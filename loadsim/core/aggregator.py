"""Thread-safe accumulation of journey outcomes."""

from __future__ import annotations

import threading

from tradekit.logger import Logger, session_logger

from loadsim.core.metrics import StageMetrics
from loadsim.core.models import AggregateSnapshot, FailureCategory, Outcome, RunSummary


class Aggregator:
    """Counts successes and failures per category for one run.

    ``record`` may be called concurrently from tasks or threads; every call
    is applied exactly once under the internal lock.
    """

    def __init__(
        self,
        total_scheduled: int,
        *,
        metrics: StageMetrics | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._total_scheduled = total_scheduled
        self._metrics = metrics
        self._logger = logger or session_logger
        self._lock = threading.Lock()

        self._recorded = 0
        self._success = 0
        self._counts: dict[FailureCategory, int] = {category: 0 for category in FailureCategory}
        self._details: list[str] = []

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            self._recorded += 1
            if outcome.succeeded:
                self._success += 1
                return
            category = outcome.category or FailureCategory.OTHER
            self._counts[category] += 1
            self._details.append(f"{outcome.instance_id} [{category.value}]: {outcome.message}")

    def snapshot(self) -> AggregateSnapshot:
        with self._lock:
            return AggregateSnapshot(
                recorded=self._recorded,
                success_count=self._success,
                counts_by_category=dict(self._counts),
            )

    def finalize(self, elapsed_seconds: float) -> RunSummary:
        with self._lock:
            if self._recorded != self._total_scheduled:
                self._logger.warning(
                    "sim.aggregate_incomplete",
                    recorded=self._recorded,
                    total_scheduled=self._total_scheduled,
                )
            summary = RunSummary(
                total_scheduled=self._total_scheduled,
                success_count=self._success,
                counts_by_category=dict(self._counts),
                elapsed_seconds=elapsed_seconds,
                failure_details=list(self._details),
            )

        if self._metrics is not None:
            summary.stage_metrics = self._metrics.build_report()
        return summary
