"""Pre-built simulation scenarios."""

from __future__ import annotations

__all__ = ["build_journey_config", "run_journey_scenario", "run_fixture_scenario"]

from loadsim.scenarios.trade_journey import build_journey_config, run_fixture_scenario, run_journey_scenario
