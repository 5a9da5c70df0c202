"""Pytest configuration and fixtures

Provides shared fixtures for all tests: a scripted fake Session factory for
driving the journey state machine without a network, and a local trader
fixture server for end-to-end runs over HTTP.
"""

import asyncio
import sys
import time
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tradekit.exceptions import InteractionError, SessionError, WaitTimeoutError  # noqa: E402
from tradekit.session import Action, Condition, Locator, WaitResult  # noqa: E402

from loadsim.core.models import Credentials, RunConfig  # noqa: E402
from loadsim.fixtures.trader_fixture_server import TraderFixtureServer  # noqa: E402


# ============================================================================
# FAKE SESSION
# ============================================================================


class FakeSession:
    """Session double that answers waits from a script and records every call.

    Conditions whose selector is in ``factory.missing`` never become true;
    every other condition is met immediately (after ``wait_delay``).
    """

    def __init__(self, label, factory):
        self.label = label
        self._factory = factory
        self.open_calls = 0
        self.close_calls = 0
        self.navigations = []
        self.waits = []
        self.interactions = []

    async def open(self):
        self.open_calls += 1
        self._factory.events.append(("open", self.label, time.monotonic()))
        if self._factory.open_error is not None:
            raise self._factory.open_error

    async def navigate(self, url):
        self.navigations.append(url)

    async def wait_for(self, condition: Condition, timeout, *, required=True):
        self.waits.append((condition, timeout, required))
        if self._factory.wait_delay:
            await asyncio.sleep(self._factory.wait_delay)
        if condition.locator.selector in self._factory.missing:
            if required:
                raise WaitTimeoutError(f"Timed out after {timeout}s waiting for {condition}")
            return WaitResult.ABSENT
        return WaitResult.PRESENT

    async def interact(self, locator: Locator, action: Action, text=None):
        self.interactions.append((locator.selector, action, text))
        if locator.selector in self._factory.broken:
            raise InteractionError(f"No element matches {locator}")
        if action is Action.READ:
            return ""
        return None

    def location_and_content(self):
        return self._factory.login_url, self._factory.login_content

    async def close(self):
        self.close_calls += 1
        self._factory.events.append(("close", self.label, time.monotonic()))
        if self._factory.close_error is not None:
            raise self._factory.close_error

    def interacted(self, selector):
        return any(entry[0] == selector for entry in self.interactions)

    def waited_for(self, selector):
        return any(condition.locator.selector == selector for condition, _, _ in self.waits)


class FakeSessionFactory:
    """Callable session factory keeping every session it produced."""

    def __init__(
        self,
        *,
        missing=(),
        broken=(),
        login_url="https://trader.example/trader/login",
        login_content="<form><input name='id'></form>",
        wait_delay=0.0,
        open_error=None,
        close_error=None,
    ):
        self.missing = set(missing)
        self.broken = set(broken)
        self.login_url = login_url
        self.login_content = login_content
        self.wait_delay = wait_delay
        self.open_error = open_error
        self.close_error = close_error
        self.sessions = {}
        self.events = []

    def __call__(self, label):
        session = FakeSession(label, self)
        self.sessions[label] = session
        return session


@pytest.fixture
def fake_sessions():
    """Build a FakeSessionFactory.

    Example:
        def test_something(fake_sessions):
            factory = fake_sessions(missing={"[name='owner']"})
    """
    return FakeSessionFactory


@pytest.fixture
def make_config():
    """Build a RunConfig with no think time or settle pause."""

    def _make(**overrides):
        values = dict(
            total_instances=3,
            batch_size=3,
            step_timeout_seconds=1.0,
            target_base_url="https://trader.example/trader",
            credentials=Credentials(username="stock", password="trader"),
            owner_prefix="owner-",
            think_time_min_seconds=0.0,
            think_time_max_seconds=0.0,
            settle_seconds=0.0,
            confirm_timeout_seconds=0.1,
        )
        values.update(overrides)
        return RunConfig(**values)

    return _make


@pytest.fixture
def session_error():
    return SessionError("connection refused")


# ============================================================================
# TRADER FIXTURE SERVER
# ============================================================================


@pytest.fixture(scope="function")
def trader_server():
    """
    Provide a local trader application on a free port.

    Usage:
        def test_login(trader_server):
            url = trader_server.base_url
    """
    server = TraderFixtureServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture(scope="function")
def keycloak_trader_server():
    """Trader application fronted by a KeyCloak-style login page."""
    server = TraderFixtureServer(login_style="keycloak")
    server.start()
    yield server
    server.stop()
