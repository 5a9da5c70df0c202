from __future__ import annotations

from typing import Any

from loadsim.core.models import FailureCategory, RunConfig, RunSummary

_CATEGORY_LABELS: dict[FailureCategory, str] = {
    FailureCategory.LOGIN: "Login Failures",
    FailureCategory.REGISTRATION: "Create User Failures",
    FailureCategory.BUY: "Buy Stock Failures",
    FailureCategory.SELL: "Sell Stock Failures",
    FailureCategory.DEREGISTRATION: "Delete User Failures",
    FailureCategory.OTHER: "Other Failures",
    FailureCategory.CANCELLED: "Cancelled",
}


def build_run_report(config: RunConfig, summary: RunSummary) -> dict[str, Any]:
    config_payload = {
        "total_instances": config.total_instances,
        "batch_size": config.batch_size,
        "step_timeout_seconds": config.step_timeout_seconds,
        "target_base_url": config.target_base_url,
        "username": config.credentials.username,
        "owner_prefix": config.owner_prefix,
        "symbol": config.symbol,
        "think_time_seconds": [config.think_time_min_seconds, config.think_time_max_seconds],
        "confirm_timeout_seconds": config.confirm_timeout_seconds,
        "instance_budget_seconds": config.instance_budget_seconds,
    }
    return {
        "config": config_payload,
        "result": {
            "total_scheduled": summary.total_scheduled,
            "success_count": summary.success_count,
            "failure_count": summary.failure_count,
            "success_rate_pct": round(summary.success_rate, 2),
            "elapsed_seconds": summary.elapsed_seconds,
            "counts_by_category": {
                category.value: summary.counts_by_category.get(category, 0) for category in FailureCategory
            },
        },
        "failures": list(summary.failure_details),
        "stage_metrics": summary.stage_metrics,
    }


def render_summary(summary: RunSummary) -> str:
    """Render the end-of-run console summary."""
    lines = [
        "========== Test Execution Summary ==========",
        f"Total Instances Run: {summary.total_scheduled}",
        f"Successful Completions: {summary.success_count}",
        "",
        "Failure Breakdown:",
    ]
    for category, label in _CATEGORY_LABELS.items():
        count = summary.counts_by_category.get(category, 0)
        if category is FailureCategory.CANCELLED and count == 0:
            continue
        lines.append(f"- {label}: {count}")
    lines.extend(
        [
            "",
            f"Total Failures: {summary.failure_count}",
            f"Success Rate: {summary.success_rate:.2f}%",
            f"Total Execution Time: {int(summary.elapsed_seconds)} seconds",
        ]
    )
    return "\n".join(lines)
