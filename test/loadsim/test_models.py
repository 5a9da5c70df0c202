"""Tests for run configuration and result models."""

from __future__ import annotations

import pytest

from tradekit.exceptions import ConfigurationError

from loadsim.core.models import (
    AggregateSnapshot,
    Credentials,
    FailureCategory,
    Outcome,
    RunSummary,
    Stage,
    instance_label,
)


class TestRunConfigValidation:
    """RunConfig.validate rejects inconsistent runs."""

    def test_valid_config(self, make_config):
        make_config().validate()

    def test_zero_instances_is_valid(self, make_config):
        make_config(total_instances=0).validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"batch_size": 0},
            {"total_instances": -1},
            {"step_timeout_seconds": 0},
            {"target_base_url": ""},
            {"credentials": Credentials(username="", password="x")},
            {"max_shares": 0},
            {"think_time_min_seconds": 5.0, "think_time_max_seconds": 1.0},
            {"settle_seconds": -1.0},
            {"instance_budget_seconds": 0},
        ],
    )
    def test_invalid_values(self, make_config, overrides):
        with pytest.raises(ConfigurationError):
            make_config(**overrides).validate()

    def test_batch_size_error_details(self, make_config):
        with pytest.raises(ConfigurationError) as excinfo:
            make_config(batch_size=0).validate()
        assert excinfo.value.details == {"batch_size": 0}

    def test_defaults_match_batch_test(self):
        from loadsim.core.models import RunConfig

        config = RunConfig(
            total_instances=250,
            batch_size=5,
            step_timeout_seconds=30.0,
            target_base_url="https://trader.example/trader",
            credentials=Credentials("stock", "trader"),
        )
        assert config.owner_prefix == "Sel-KC-baW-brX-tY"
        assert config.symbol == "TEST"
        assert config.max_shares == 50
        assert (config.think_time_min_seconds, config.think_time_max_seconds) == (3.0, 12.0)
        assert config.instance_budget_seconds is None

    def test_summary_url(self, make_config):
        assert make_config(target_base_url="https://h/trader/").summary_url == "https://h/trader/summary"

    def test_password_hidden_from_repr(self, make_config):
        assert "trader'" not in repr(make_config().credentials)


class TestStage:
    def test_stage_categories(self):
        assert Stage.AUTHENTICATE.category is FailureCategory.LOGIN
        assert Stage.REGISTER.category is FailureCategory.REGISTRATION
        assert Stage.BUY.category is FailureCategory.BUY
        assert Stage.SELL.category is FailureCategory.SELL
        assert Stage.DEREGISTER.category is FailureCategory.DEREGISTRATION
        assert Stage.START.category is FailureCategory.OTHER

    def test_category_values(self):
        assert [c.value for c in FailureCategory] == [
            "login_failure",
            "registration_failure",
            "buy_failure",
            "sell_failure",
            "deregistration_failure",
            "other_failure",
            "cancelled",
        ]


def test_instance_label():
    assert instance_label("Sel-KC-baW-brX-tY", 10, 3) == "Sel-KC-baW-brX-tY13"


def test_outcome_duration_never_negative():
    outcome = Outcome(
        instance_id="a",
        succeeded=True,
        category=None,
        message="ok",
        stage=Stage.DONE,
        started_at_monotonic=5.0,
        ended_at_monotonic=4.0,
    )
    assert outcome.duration_seconds == 0.0


class TestRunSummary:
    def test_success_rate(self):
        summary = RunSummary(
            total_scheduled=8,
            success_count=6,
            counts_by_category={FailureCategory.LOGIN: 1, FailureCategory.SELL: 1},
            elapsed_seconds=1.0,
        )
        assert summary.failure_count == 2
        assert summary.success_rate == pytest.approx(75.0)

    def test_success_rate_with_nothing_scheduled(self):
        summary = RunSummary(total_scheduled=0, success_count=0, counts_by_category={}, elapsed_seconds=0.0)
        assert summary.success_rate == 0.0

    def test_snapshot_failure_count(self):
        snapshot = AggregateSnapshot(
            recorded=3,
            success_count=1,
            counts_by_category={FailureCategory.BUY: 2, FailureCategory.OTHER: 0},
        )
        assert snapshot.failure_count == 2
