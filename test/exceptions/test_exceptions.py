"""Tests for the harness exception hierarchy.

These tests verify:
1. Every exception carries a message and a details dict
2. The inheritance chain lets callers catch by family
3. Journey errors record the stage and category they belong to
"""

import pytest

from tradekit.exceptions import (
    ConfigurationError,
    HarnessError,
    InteractionError,
    SessionError,
    ValidationError,
    WaitTimeoutError,
)

from loadsim.core.errors import RunCancelledError, StageFailure
from loadsim.core.models import FailureCategory, Stage


class TestHarnessError:
    """Tests for the base exception."""

    def test_message_and_details(self):
        """Test message and details are stored."""
        error = HarnessError("boom", {"url": "https://trader.example"})
        assert error.message == "boom"
        assert error.details == {"url": "https://trader.example"}
        assert str(error) == "boom"

    def test_details_default_to_empty_dict(self):
        """Test details default to an empty dict, never None."""
        assert HarnessError("boom").details == {}

    def test_details_are_copied(self):
        """Test later changes to the caller's dict do not leak in."""
        details = {"selector": "#kc-login"}
        error = HarnessError("boom", details)
        details["selector"] = "changed"
        assert error.details["selector"] == "#kc-login"


class TestHierarchy:
    """Tests for the inheritance chain."""

    @pytest.mark.parametrize(
        "exc_class,parent",
        [
            (ValidationError, HarnessError),
            (ConfigurationError, ValidationError),
            (SessionError, HarnessError),
            (WaitTimeoutError, SessionError),
            (InteractionError, SessionError),
            (StageFailure, HarnessError),
            (RunCancelledError, HarnessError),
        ],
    )
    def test_subclass(self, exc_class, parent):
        """Test each exception derives from its family."""
        assert issubclass(exc_class, parent)

    def test_wait_timeout_caught_as_session_error(self):
        """Test a wait timeout can be handled as a session failure."""
        with pytest.raises(SessionError):
            raise WaitTimeoutError("Timed out after 1s waiting for visible(#x)")


class TestStageFailure:
    """Tests for the stage-tagged journey error."""

    def test_category_follows_stage(self):
        """Test the category is fixed by the stage that failed."""
        failure = StageFailure(Stage.REGISTER, WaitTimeoutError("no owner field"))
        assert failure.stage is Stage.REGISTER
        assert failure.category is FailureCategory.REGISTRATION

    def test_message_names_stage_and_cause(self):
        """Test the message carries the stage and the cause type."""
        failure = StageFailure(Stage.SELL, InteractionError("No element matches [name='x']"))
        assert str(failure) == "sell failed: InteractionError: No element matches [name='x']"
        assert failure.details == {"stage": "sell"}

    def test_cause_is_kept(self):
        """Test the wrapped exception is available for reporting."""
        cause = SessionError("connection refused")
        assert StageFailure(Stage.BUY, cause).cause is cause

    def test_start_stage_is_other(self):
        """Test failures before login count as other failures."""
        assert StageFailure(Stage.START, SessionError("dns")).category is FailureCategory.OTHER
