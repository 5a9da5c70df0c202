from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path

from tradekit.exceptions import ConfigurationError
from tradekit.logger import session_logger as logger

from loadsim.api.report import build_run_report, render_summary
from loadsim.core.dispatcher import run_with_signals
from loadsim.core.models import RunConfig, RunSummary
from loadsim.core.timeparse import parse_duration_to_seconds
from loadsim.fixtures.trader_fixture_server import TraderFixtureServer
from loadsim.scenarios.trade_journey import build_journey_config, run_journey_scenario


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="StockTrader journey load simulator")
    parser.add_argument(
        "--mode",
        type=str,
        choices=["live", "fixture"],
        default="live",
        help="live drives --target-url; fixture starts a local trader app",
    )
    parser.add_argument(
        "--target-url",
        type=str,
        default=os.environ.get("LOADSIM_TARGET_URL"),
        help="Trader app entry point (e.g. https://host:9443/trader). Required for live mode.",
    )
    parser.add_argument(
        "--username",
        type=str,
        default=os.environ.get("LOADSIM_USERNAME", "stock"),
        help="Login id shared by every simulated user",
    )
    parser.add_argument(
        "--password",
        type=str,
        default=os.environ.get("LOADSIM_PASSWORD", "trader"),
        help="Login password (prefer the LOADSIM_PASSWORD env var)",
    )
    parser.add_argument("--instances", type=int, default=250, help="Total journeys to run")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=5,
        help="Journeys per batch; also the maximum concurrency",
    )
    parser.add_argument(
        "--step-timeout",
        type=str,
        default="30s",
        help="Maximum wait for each page condition (e.g. 30s, 500ms)",
    )
    parser.add_argument(
        "--think-time",
        type=str,
        default="3s:12s",
        help="Think time range before each trade, as MIN:MAX",
    )
    parser.add_argument(
        "--settle",
        type=str,
        default="2s",
        help="Pause after loading the entry page before detecting the login page",
    )
    parser.add_argument(
        "--confirm-timeout",
        type=str,
        default="5s",
        help="How long to look for the optional confirmation after a sale",
    )
    parser.add_argument(
        "--instance-budget",
        type=str,
        default=None,
        help="Optional deadline for a whole journey (e.g. 5m). Unbounded by default.",
    )
    parser.add_argument(
        "--owner-prefix",
        type=str,
        default="Sel-KC-baW-brX-tY",
        help="Prefix of the portfolio owner names created by the run",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification (self-signed targets)",
    )
    parser.add_argument(
        "--fixture-login",
        type=str,
        choices=["form", "keycloak"],
        default="form",
        help="Login page style served in fixture mode",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for share quantities and think times",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write summary report JSON to this path",
    )
    return parser


def _build_config(args, target_url: str) -> RunConfig:
    try:
        think_min, think_max = (parse_duration_to_seconds(part) for part in args.think_time.split(":", 1))
    except ValueError as exc:
        raise ConfigurationError(f"invalid --think-time: {exc}", {"provided": args.think_time}) from exc

    try:
        config = build_journey_config(
            target_base_url=target_url,
            total_instances=args.instances,
            batch_size=args.batch_size,
            step_timeout_seconds=parse_duration_to_seconds(args.step_timeout),
            username=args.username,
            password=args.password,
            owner_prefix=args.owner_prefix,
            think_time=(think_min, think_max),
            settle_seconds=parse_duration_to_seconds(args.settle),
            confirm_timeout_seconds=parse_duration_to_seconds(args.confirm_timeout),
            instance_budget_seconds=(
                parse_duration_to_seconds(args.instance_budget) if args.instance_budget else None
            ),
            verify_tls=not args.insecure,
        )
    except ValueError as exc:
        raise ConfigurationError(f"invalid duration: {exc}") from exc

    config.validate()
    return config


async def _run(config: RunConfig, seed: int | None) -> RunSummary:
    stop_event = asyncio.Event()
    return await run_with_signals(
        stop_event,
        lambda: run_journey_scenario(config, stop_event=stop_event, seed=seed, logger=logger),
        logger=logger,
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    fixture_server: TraderFixtureServer | None = None
    if args.mode == "fixture":
        fixture_server = TraderFixtureServer(
            login_style=args.fixture_login,
            username=args.username,
            password=args.password,
            logger=logger,
        )
        fixture_server.start()
        target_url = fixture_server.base_url
    elif args.target_url:
        target_url = args.target_url.strip()
    else:
        logger.error(
            "sim.missing_target_url",
            recovery="Provide --target-url or set LOADSIM_TARGET_URL, or use --mode fixture",
        )
        return 2

    try:
        try:
            config = _build_config(args, target_url)
        except ConfigurationError as exc:
            logger.error(
                "sim.invalid_config",
                error=str(exc),
                details=exc.details,
                recovery="Review the run options; see --help",
            )
            return 2

        summary = asyncio.run(_run(config, args.seed))
    finally:
        if fixture_server is not None:
            fixture_server.stop()

    print(render_summary(summary))

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(config, summary)
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info("sim.report_written", path=str(output_path))

    return 0 if summary.failure_count == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
