"""Trader journey state machine.

One journey logs in, registers a portfolio named after its instance label,
buys and sells shares in it, then deletes it. Stages run strictly in order;
the first failing stage ends the journey and decides its failure category.
"""

from __future__ import annotations

import asyncio
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import soupsieve

from tradekit.errors import describe_error
from tradekit.exceptions import WaitTimeoutError
from tradekit.logger import Logger, session_logger
from tradekit.session import Action, Condition, Locator, Session, SessionFactory, WaitResult

from loadsim.core.errors import RunCancelledError, StageFailure
from loadsim.core.login import LANDING_INDICATOR, presentation_for
from loadsim.core.metrics import StageMetrics
from loadsim.core.models import FailureCategory, Outcome, RunConfig, Stage

ACTION_CREATE = LANDING_INDICATOR
ACTION_UPDATE = Locator.css("input[name='action'][value='update']")
ACTION_DELETE = Locator.css("input[name='action'][value='delete']")
ACTION_SELL = Locator.css("input[name='action'][value='Sell']")
SUBMIT = Locator.by_name("submit")
SUBMIT_BUTTON = Locator.css("input[type='submit'][name='submit'][value='Submit']")
CONFIRM_BUTTON = Locator.css("input[type='submit'][name='submit'][value='OK']")
OWNER_FIELD = Locator.by_name("owner")
SYMBOL_FIELD = Locator.by_name("symbol")
SHARES_FIELD = Locator.by_name("shares")

BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


def owner_radio(owner: str) -> Locator:
    return Locator.css(f"input[type='radio'][name='owner'][value={soupsieve.escape(owner)}]")


@dataclass
class _Journey:
    instance_id: str
    started_at: float
    stage: Stage = Stage.START
    stage_started_at: float = 0.0

    def outcome(self, category: FailureCategory | None, message: str, stage: Stage | None = None) -> Outcome:
        return Outcome(
            instance_id=self.instance_id,
            succeeded=category is None,
            category=category,
            message=message,
            stage=stage or self.stage,
            started_at_monotonic=self.started_at,
            ended_at_monotonic=time.monotonic(),
        )


class Workflow:
    """Runs trader journeys against sessions produced by ``session_factory``.

    One Workflow serves every instance of a run; per-instance state lives in
    the ``run`` call. ``run`` never raises for journey failures: every call
    returns exactly one Outcome and closes its session.
    """

    def __init__(
        self,
        config: RunConfig,
        session_factory: SessionFactory,
        *,
        stop_event: asyncio.Event | None = None,
        metrics: StageMetrics | None = None,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._stop_event = stop_event
        self._metrics = metrics
        self._rng = rng or random.Random()
        self._logger = logger or session_logger

    async def run(self, instance_id: str) -> Outcome:
        journey = _Journey(instance_id=instance_id, started_at=time.monotonic())
        session: Session | None = None

        self._logger.info("sim.instance_start", instance_id=instance_id)
        try:
            self._check_cancelled()
            session = self._session_factory(instance_id)
            await session.open()
            await self._run_with_budget(session, journey)
            outcome = journey.outcome(None, f"Journey completed for owner: {instance_id}")
            self._logger.info(
                "sim.instance_ok",
                instance_id=instance_id,
                duration_seconds=round(outcome.duration_seconds, 3),
            )
        except StageFailure as exc:
            outcome = journey.outcome(exc.category, str(exc), stage=exc.stage)
            self._log_failure(outcome, exc.cause)
        except RunCancelledError as exc:
            outcome = journey.outcome(FailureCategory.CANCELLED, str(exc))
            self._log_failure(outcome, exc)
        except Exception as exc:
            outcome = journey.outcome(FailureCategory.OTHER, f"{type(exc).__name__}: {exc}")
            self._log_failure(outcome, exc)
        finally:
            if session is not None:
                await self._release(session, instance_id)

        return outcome

    async def _run_with_budget(self, session: Session, journey: _Journey) -> None:
        budget = self._config.instance_budget_seconds
        if budget is None:
            await self._run_stages(session, journey)
            return

        try:
            await asyncio.wait_for(self._run_stages(session, journey), timeout=budget)
        except asyncio.TimeoutError as exc:
            expired = WaitTimeoutError(
                f"instance budget of {budget}s exceeded",
                {"instance_budget_seconds": budget},
            )
            # The interrupted stage never reached its own metrics record.
            self._record_stage(journey.stage, journey.stage_started_at, expired, error_type=BUDGET_EXCEEDED)
            raise StageFailure(journey.stage, expired) from exc

    async def _run_stages(self, session: Session, journey: _Journey) -> None:
        config = self._config
        owner = journey.instance_id
        radio = owner_radio(owner)

        async with self._stage(journey, Stage.START):
            await session.navigate(config.target_base_url)
            await self._pause(config.settle_seconds)

        async with self._stage(journey, Stage.AUTHENTICATE):
            url, content = session.location_and_content()
            presentation = presentation_for(url, content)
            self._logger.debug(
                "sim.login_presentation",
                instance_id=owner,
                presentation=presentation.kind.value,
                url=url,
            )
            self._check_cancelled()
            await presentation.submit(session, config.credentials, config.step_timeout_seconds)
            await self._wait(session, Condition.visible(LANDING_INDICATOR))

        async with self._stage(journey, Stage.REGISTER):
            await session.interact(ACTION_CREATE, Action.CLICK)
            await session.interact(SUBMIT, Action.CLICK)
            await self._wait(session, Condition.visible(OWNER_FIELD))
            await session.interact(OWNER_FIELD, Action.SET_TEXT, owner)
            await session.interact(SUBMIT, Action.CLICK)
            await self._wait(session, Condition.clickable(radio))
            await session.interact(radio, Action.CLICK)
            await session.interact(SUBMIT, Action.CLICK)
            await session.navigate(config.summary_url)
            await self._wait(session, Condition.clickable(ACTION_UPDATE))

        shares = self._rng.randint(1, config.max_shares)

        async with self._stage(journey, Stage.BUY):
            await self._open_trade_form(session, radio)
            await self._fill_trade_form(session, shares)
            await session.interact(SUBMIT_BUTTON, Action.CLICK)
            self._logger.debug("sim.bought", instance_id=owner, symbol=config.symbol, shares=shares)

        async with self._stage(journey, Stage.SELL):
            await self._open_trade_form(session, radio)
            await self._fill_trade_form(session, shares)
            await session.interact(ACTION_SELL, Action.CLICK)
            await session.interact(SUBMIT_BUTTON, Action.CLICK)
            self._logger.debug("sim.sold", instance_id=owner, symbol=config.symbol, shares=shares)

            confirmation = await self._wait(
                session,
                Condition.clickable(CONFIRM_BUTTON),
                timeout=config.confirm_timeout_seconds,
                required=False,
            )
            if confirmation is WaitResult.PRESENT:
                await session.interact(CONFIRM_BUTTON, Action.CLICK)
            else:
                self._logger.debug("sim.sell_confirmation_absent", instance_id=owner)

        async with self._stage(journey, Stage.DEREGISTER):
            await self._wait(session, Condition.clickable(ACTION_DELETE))
            await session.interact(ACTION_DELETE, Action.CLICK)
            await session.interact(radio, Action.CLICK)
            await session.interact(SUBMIT, Action.CLICK)

        journey.stage = Stage.DONE

    async def _open_trade_form(self, session: Session, radio: Locator) -> None:
        await self._wait(session, Condition.clickable(ACTION_UPDATE))
        await session.interact(ACTION_UPDATE, Action.CLICK)
        await session.interact(radio, Action.CLICK)
        await session.interact(SUBMIT, Action.CLICK)
        await self._wait(session, Condition.visible(SYMBOL_FIELD))

    async def _fill_trade_form(self, session: Session, shares: int) -> None:
        config = self._config
        await self._pause(self._rng.uniform(config.think_time_min_seconds, config.think_time_max_seconds))
        await session.interact(SYMBOL_FIELD, Action.SET_TEXT, config.symbol)
        await session.interact(SHARES_FIELD, Action.SET_TEXT, str(shares))

    @asynccontextmanager
    async def _stage(self, journey: _Journey, stage: Stage) -> AsyncIterator[None]:
        journey.stage = stage
        started = journey.stage_started_at = time.monotonic()
        try:
            yield
        except RunCancelledError:
            raise
        except Exception as exc:
            self._record_stage(stage, started, exc)
            raise StageFailure(stage, exc) from exc
        self._record_stage(stage, started, None)

    async def _wait(
        self,
        session: Session,
        condition: Condition,
        *,
        timeout: float | None = None,
        required: bool = True,
    ) -> WaitResult:
        self._check_cancelled()
        if timeout is None:
            timeout = self._config.step_timeout_seconds
        return await session.wait_for(condition, timeout, required=required)

    async def _pause(self, seconds: float) -> None:
        self._check_cancelled()
        if seconds > 0:
            await asyncio.sleep(seconds)
            self._check_cancelled()

    def _check_cancelled(self) -> None:
        if self._stop_event is not None and self._stop_event.is_set():
            raise RunCancelledError("Run stopped before the journey finished")

    def _record_stage(
        self,
        stage: Stage,
        started: float,
        error: BaseException | None,
        *,
        error_type: str | None = None,
    ) -> None:
        if self._metrics is None:
            return
        if error is not None and error_type is None:
            error_type = describe_error(error)["error_code"]
        self._metrics.record(
            stage=stage.value,
            duration_ms=int((time.monotonic() - started) * 1000),
            success=error is None,
            error_type=error_type,
            category=stage.category.value if error is not None else None,
        )

    def _log_failure(self, outcome: Outcome, cause: BaseException) -> None:
        description = describe_error(cause)
        self._logger.warning(
            "sim.instance_failed",
            instance_id=outcome.instance_id,
            category=outcome.category.value if outcome.category else None,
            stage=outcome.stage.value,
            error_code=description["error_code"],
            error=outcome.message,
            recovery=description["recovery"],
        )

    async def _release(self, session: Session, instance_id: str) -> None:
        try:
            await session.close()
        except Exception as exc:
            self._logger.warning(
                "sim.session_close_failed",
                instance_id=instance_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
