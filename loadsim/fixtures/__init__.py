"""Local trader application used for CI-safe simulation runs."""

from __future__ import annotations

__all__ = ["TraderFixtureServer"]

from loadsim.fixtures.trader_fixture_server import TraderFixtureServer
