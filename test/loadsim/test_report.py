"""Tests for the end-of-run summary and JSON report."""

from __future__ import annotations

import json

from loadsim.api.report import build_run_report, render_summary
from loadsim.core.models import FailureCategory, RunSummary


def _summary(**overrides):
    values = dict(
        total_scheduled=7,
        success_count=5,
        counts_by_category={category: 0 for category in FailureCategory},
        elapsed_seconds=42.9,
        failure_details=["owner-3 [buy_failure]: buy failed"],
    )
    values.update(overrides)
    values["counts_by_category"] = dict(values["counts_by_category"])
    return RunSummary(**values)


class TestRenderSummary:
    def test_all_succeeded(self):
        counts = {category: 0 for category in FailureCategory}
        text = render_summary(_summary(success_count=7, counts_by_category=counts))

        assert text.splitlines()[0] == "========== Test Execution Summary =========="
        assert "Total Instances Run: 7" in text
        assert "Successful Completions: 7" in text
        assert "Total Failures: 0" in text
        assert "Success Rate: 100.00%" in text
        assert "Total Execution Time: 42 seconds" in text

    def test_failure_breakdown_labels(self):
        counts = {category: 0 for category in FailureCategory}
        counts[FailureCategory.REGISTRATION] = 1
        counts[FailureCategory.BUY] = 1
        text = render_summary(_summary(counts_by_category=counts))

        assert "- Login Failures: 0" in text
        assert "- Create User Failures: 1" in text
        assert "- Buy Stock Failures: 1" in text
        assert "- Sell Stock Failures: 0" in text
        assert "- Delete User Failures: 0" in text
        assert "- Other Failures: 0" in text
        assert "Success Rate: 71.43%" in text

    def test_cancelled_line_only_when_nonzero(self):
        counts = {category: 0 for category in FailureCategory}
        assert "Cancelled" not in render_summary(_summary(counts_by_category=counts))

        counts[FailureCategory.CANCELLED] = 2
        assert "- Cancelled: 2" in render_summary(_summary(counts_by_category=counts))

    def test_zero_scheduled(self):
        text = render_summary(_summary(total_scheduled=0, success_count=0))
        assert "Success Rate: 0.00%" in text


class TestBuildRunReport:
    def test_report_is_json_and_hides_password(self, make_config):
        config = make_config(total_instances=7)
        counts = {category: 0 for category in FailureCategory}
        counts[FailureCategory.BUY] = 2
        report = build_run_report(config, _summary(counts_by_category=counts))

        json.dumps(report)
        assert "password" not in report["config"]
        assert "trader" not in report["config"].values()
        assert report["config"]["username"] == "stock"
        assert report["result"]["counts_by_category"]["buy_failure"] == 2
        assert report["result"]["success_rate_pct"] == 71.43
        assert report["failures"] == ["owner-3 [buy_failure]: buy failed"]
        assert report["stage_metrics"] is None
