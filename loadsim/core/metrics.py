"""Per-stage timing and failure statistics for a run.

Every journey stage reports one observation: how long it took, whether it
failed, the error code when it did and the failure category it counts
towards. The report breaks these down overall, by stage and by category.
"""

from __future__ import annotations

import math
import random
import threading
from dataclasses import dataclass, field
from typing import Any

from tradekit.logger import Logger, session_logger

PERCENTILES = {"p50_ms": 0.50, "p95_ms": 0.95, "p99_ms": 0.99}


def _percentile(ordered: list[int], fraction: float) -> float | None:
    """Linearly interpolated percentile of an ascending list."""
    if not ordered:
        return None
    fraction = min(max(fraction, 0.0), 1.0)
    rank = (len(ordered) - 1) * fraction
    low, high = math.floor(rank), math.ceil(rank)
    if low == high:
        return float(ordered[low])
    weight = rank - low
    return float(ordered[low] * (1 - weight) + ordered[high] * weight)


class _ReservoirSampler:
    """Uniform sample of at most ``max_size`` durations (Algorithm R)."""

    def __init__(self, max_size: int, *, seed: int | None = None) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max_size = max_size
        self._rng = random.Random(seed)
        self._offered = 0
        self._kept: list[int] = []

    def add(self, value: int) -> None:
        self._offered += 1
        if len(self._kept) < self._max_size:
            self._kept.append(value)
            return
        slot = self._rng.randrange(self._offered)
        if slot < self._max_size:
            self._kept[slot] = value

    def values(self) -> list[int]:
        return list(self._kept)


@dataclass
class _StageStats:
    sample: _ReservoirSampler
    count: int = 0
    failures: int = 0
    total_ms: int = 0
    fastest_ms: int | None = None
    slowest_ms: int | None = None
    error_types: dict[str, int] = field(default_factory=dict)

    def observe(self, duration_ms: int, error_type: str | None) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.fastest_ms = duration_ms if self.fastest_ms is None else min(self.fastest_ms, duration_ms)
        self.slowest_ms = duration_ms if self.slowest_ms is None else max(self.slowest_ms, duration_ms)
        self.sample.add(duration_ms)
        if error_type is not None:
            self.failures += 1
            self.error_types[error_type] = self.error_types.get(error_type, 0) + 1

    def report(self) -> dict[str, Any]:
        ordered = sorted(self.sample.values())
        report: dict[str, Any] = {
            "count": self.count,
            "error_count": self.failures,
            "error_rate_pct": round(self.failures / self.count * 100, 2) if self.count else 0.0,
            "error_types": dict(self.error_types),
            "min_ms": self.fastest_ms,
            "max_ms": self.slowest_ms,
            "mean_ms": self.total_ms / self.count if self.count else None,
        }
        for key, fraction in PERCENTILES.items():
            report[key] = _percentile(ordered, fraction)
        report["sample_size"] = len(ordered)
        return report


class StageMetrics:
    """Collects per-stage duration metrics for a run.

    Safe to call from concurrent journeys and from worker threads.

    Report shape::

        {
            "overall": {...},
            "by_stage": {"register": {...}, ...},
            "failures_by_category": {"registration_failure": {"count": 2, "error_types": {...}}},
        }
    """

    def __init__(
        self,
        *,
        sample_size: int = 5000,
        logger: Logger | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self._lock = threading.Lock()
        self._sample_size = sample_size
        self._overall = self._new_stats()
        self._stages: dict[str, _StageStats] = {}
        self._categories: dict[str, dict[str, int]] = {}

    def record(
        self,
        *,
        stage: str,
        duration_ms: int,
        success: bool,
        error_type: str | None = None,
        category: str | None = None,
    ) -> None:
        """Record a single stage execution.

        ``category`` is the failure category a failed stage counts towards.
        """
        duration_ms = max(0, duration_ms)
        failure_code = None if success else (error_type or "unknown")

        with self._lock:
            self._overall.observe(duration_ms, failure_code)
            stats = self._stages.get(stage)
            if stats is None:
                stats = self._stages[stage] = self._new_stats()
            stats.observe(duration_ms, failure_code)

            if failure_code is not None and category is not None:
                codes = self._categories.setdefault(category, {})
                codes[failure_code] = codes.get(failure_code, 0) + 1

        if failure_code is not None:
            self._logger.debug(
                "sim.stage_error_recorded",
                stage=stage,
                error_type=failure_code,
                category=category,
            )

    def build_report(self) -> dict[str, Any]:
        with self._lock:
            return {
                "overall": self._overall.report(),
                "by_stage": {stage: stats.report() for stage, stats in self._stages.items()},
                "failures_by_category": {
                    category: {"count": sum(codes.values()), "error_types": dict(codes)}
                    for category, codes in self._categories.items()
                },
            }

    def _new_stats(self) -> _StageStats:
        return _StageStats(sample=_ReservoirSampler(self._sample_size))
