"""Trade journey scenario: login, create portfolio, buy, sell, delete.

This module wires the Workflow, Dispatcher, Aggregator and StageMetrics
together and provides the programmatic entry points used by the CLI,
integration tests and CI.

Usage from CLI::

    python -m loadsim.run --target-url https://trader.example:9443/trader \\
        --instances 250 --batch-size 5

Usage as library::

    from loadsim.scenarios.trade_journey import build_journey_config, run_journey_scenario

    config = build_journey_config(target_base_url=url, total_instances=20)
    summary = await run_journey_scenario(config)
"""

from __future__ import annotations

import asyncio
import random

from tradekit.logger import Logger
from tradekit.session import HttpFormSession, Session, SessionFactory

from loadsim.core.aggregator import Aggregator
from loadsim.core.dispatcher import Dispatcher, ProgressCallback
from loadsim.core.metrics import StageMetrics
from loadsim.core.models import Credentials, RunConfig, RunSummary
from loadsim.core.workflow import Workflow
from loadsim.fixtures.trader_fixture_server import TraderFixtureServer


def build_journey_config(
    *,
    target_base_url: str,
    total_instances: int = 250,
    batch_size: int = 5,
    step_timeout_seconds: float = 30.0,
    username: str = "stock",
    password: str = "trader",
    owner_prefix: str = "Sel-KC-baW-brX-tY",
    think_time: tuple[float, float] = (3.0, 12.0),
    settle_seconds: float = 2.0,
    confirm_timeout_seconds: float = 5.0,
    instance_budget_seconds: float | None = None,
    verify_tls: bool = True,
) -> RunConfig:
    """Build a ``RunConfig`` for the trade journey.

    Defaults are the standard batch run: 250 instances in batches of 5,
    a 30 second wait per step and 3 to 12 seconds of think time per trade.
    """
    return RunConfig(
        total_instances=total_instances,
        batch_size=batch_size,
        step_timeout_seconds=step_timeout_seconds,
        target_base_url=target_base_url,
        credentials=Credentials(username=username, password=password),
        owner_prefix=owner_prefix,
        think_time_min_seconds=think_time[0],
        think_time_max_seconds=think_time[1],
        settle_seconds=settle_seconds,
        confirm_timeout_seconds=confirm_timeout_seconds,
        instance_budget_seconds=instance_budget_seconds,
        verify_tls=verify_tls,
    )


def http_session_factory(
    config: RunConfig,
    *,
    poll_interval: float = 0.25,
    logger: Logger | None = None,
) -> SessionFactory:
    """Session factory producing one ``HttpFormSession`` per instance."""

    def _factory(label: str) -> Session:
        return HttpFormSession(
            timeout_seconds=config.step_timeout_seconds,
            poll_interval=poll_interval,
            verify_tls=config.verify_tls,
            label=label,
            logger=logger,
        )

    return _factory


async def run_journey_scenario(
    config: RunConfig,
    *,
    session_factory: SessionFactory | None = None,
    stop_event: asyncio.Event | None = None,
    on_progress: ProgressCallback | None = None,
    seed: int | None = None,
    logger: Logger | None = None,
) -> RunSummary:
    """Run the trade journey for every instance in ``config``."""
    metrics = StageMetrics(logger=logger)
    aggregator = Aggregator(config.total_instances, metrics=metrics, logger=logger)
    workflow = Workflow(
        config,
        session_factory or http_session_factory(config, logger=logger),
        stop_event=stop_event,
        metrics=metrics,
        rng=random.Random(seed),
        logger=logger,
    )
    dispatcher = Dispatcher(
        config,
        workflow,
        aggregator=aggregator,
        stop_event=stop_event,
        on_progress=on_progress,
        logger=logger,
    )
    return await dispatcher.run()


async def run_fixture_scenario(
    *,
    total_instances: int = 6,
    batch_size: int = 3,
    login_style: str = "form",
    confirm_on_sell: bool = True,
    unavailable_paths: tuple[str, ...] = (),
    step_timeout_seconds: float = 5.0,
    confirm_timeout_seconds: float = 0.5,
    owner_prefix: str = "Sel-KC-baW-brX-tY",
    seed: int | None = None,
    logger: Logger | None = None,
) -> RunSummary:
    """Run the trade journey against a local ``TraderFixtureServer``.

    Think time and the settle pause are disabled so runs finish quickly.
    """
    with TraderFixtureServer(
        login_style=login_style,
        confirm_on_sell=confirm_on_sell,
        unavailable_paths=unavailable_paths,
        logger=logger,
    ) as server:
        config = build_journey_config(
            target_base_url=server.base_url,
            total_instances=total_instances,
            batch_size=batch_size,
            step_timeout_seconds=step_timeout_seconds,
            think_time=(0.0, 0.0),
            settle_seconds=0.0,
            confirm_timeout_seconds=confirm_timeout_seconds,
            owner_prefix=owner_prefix,
        )
        return await run_journey_scenario(
            config,
            session_factory=http_session_factory(config, poll_interval=0.05, logger=logger),
            seed=seed,
            logger=logger,
        )
