from __future__ import annotations

import asyncio
import signal
import time
from typing import Awaitable, Callable, Protocol

from tradekit.logger import Logger, session_logger

from loadsim.core.aggregator import Aggregator
from loadsim.core.models import BatchProgress, FailureCategory, Outcome, RunConfig, RunSummary, Stage, instance_label


class InstanceRunner(Protocol):
    async def run(self, instance_id: str) -> Outcome: ...


ProgressCallback = Callable[[BatchProgress], None]


def plan_batches(total_instances: int, batch_size: int) -> list[range]:
    """Split ``[0, total_instances)`` into consecutive ranges of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if total_instances < 0:
        raise ValueError("total_instances must be >= 0")
    return [
        range(start, min(start + batch_size, total_instances))
        for start in range(0, total_instances, batch_size)
    ]


class Dispatcher:
    """Runs journeys in barrier-synchronized batches.

    At most ``batch_size`` journeys execute at once, and no journey of batch
    k+1 starts before every journey of batch k has produced its Outcome.
    """

    def __init__(
        self,
        config: RunConfig,
        runner: InstanceRunner,
        *,
        aggregator: Aggregator | None = None,
        stop_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._runner = runner
        self._aggregator = aggregator or Aggregator(config.total_instances, logger=logger)
        self._stop_event = stop_event
        self._on_progress = on_progress
        self._logger = logger or session_logger
        self._pool: asyncio.Semaphore | None = None

    @property
    def aggregator(self) -> Aggregator:
        return self._aggregator

    async def run(self) -> RunSummary:
        config = self._config
        config.validate()

        batches = plan_batches(config.total_instances, config.batch_size)
        self._pool = asyncio.Semaphore(config.batch_size)
        started = time.monotonic()
        stop_logged = False

        self._logger.info(
            "sim.start",
            total_instances=config.total_instances,
            batch_size=config.batch_size,
            batch_count=len(batches),
            step_timeout_seconds=config.step_timeout_seconds,
            target_base_url=config.target_base_url,
        )

        for number, batch in enumerate(batches, start=1):
            if not stop_logged and self._stop_event is not None and self._stop_event.is_set():
                stop_logged = True
                self._logger.warning(
                    "sim.stopping",
                    remaining_batches=len(batches) - number + 1,
                    recovery="Remaining instances are recorded as cancelled",
                )

            self._logger.info(
                "sim.batch_start",
                batch=number,
                batch_count=len(batches),
                instances=len(batch),
            )

            labels = [instance_label(config.owner_prefix, batch.start, offset) for offset in range(len(batch))]
            outcomes = await asyncio.gather(*(self._run_instance(label) for label in labels))

            for outcome in outcomes:
                self._aggregator.record(outcome)

            self._emit_progress(number, len(batches), len(batch))

        elapsed = time.monotonic() - started
        summary = self._aggregator.finalize(elapsed)

        self._logger.info(
            "sim.end",
            total_scheduled=summary.total_scheduled,
            success_count=summary.success_count,
            failure_count=summary.failure_count,
            success_rate=round(summary.success_rate, 2),
            elapsed_seconds=round(summary.elapsed_seconds, 3),
        )
        return summary

    async def _run_instance(self, instance_id: str) -> Outcome:
        assert self._pool is not None
        async with self._pool:
            started = time.monotonic()
            try:
                return await self._runner.run(instance_id)
            except Exception as exc:
                # Runners report failures as Outcomes; this only catches runner bugs.
                self._logger.error(
                    "sim.runner_crashed",
                    instance_id=instance_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return Outcome(
                    instance_id=instance_id,
                    succeeded=False,
                    category=FailureCategory.OTHER,
                    message=f"{type(exc).__name__}: {exc}",
                    stage=Stage.START,
                    started_at_monotonic=started,
                    ended_at_monotonic=time.monotonic(),
                )

    def _emit_progress(self, number: int, batch_count: int, size: int) -> None:
        snapshot = self._aggregator.snapshot()
        progress = BatchProgress(
            batch_number=number,
            batch_count=batch_count,
            batch_size=size,
            snapshot=snapshot,
        )

        self._logger.info(
            "sim.batch_complete",
            batch=number,
            batch_count=batch_count,
            recorded=snapshot.recorded,
            success=snapshot.success_count,
            **{category.value: count for category, count in snapshot.counts_by_category.items()},
        )

        if self._on_progress is not None:
            self._on_progress(progress)


async def run_with_signals(
    stop_event: asyncio.Event,
    run: Callable[[], Awaitable[RunSummary]],
    *,
    logger: Logger | None = None,
) -> RunSummary:
    """Run ``run()`` with SIGINT/SIGTERM setting ``stop_event``.

    In-flight journeys end as cancelled at their next wait; later batches
    resolve immediately, so the summary still accounts for every instance.
    """
    log = logger or session_logger

    def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
        log.warning("sim.signal", signum=signum)
        stop_event.set()

    with _SignalHandlers(_handle_signal):
        return await run()


class _SignalHandlers:
    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (ValueError, OSError):
                # Not on the main thread, or the platform forbids it.
                pass
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)  # type: ignore[arg-type]
            except (ValueError, OSError):
                pass
        return False
