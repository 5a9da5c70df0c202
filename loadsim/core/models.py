from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tradekit.exceptions import ConfigurationError


class FailureCategory(str, Enum):
    """Failure tag assigned to an unsuccessful instance.

    cancelled: the run's stop signal ended the instance before it finished
    """

    LOGIN = "login_failure"
    REGISTRATION = "registration_failure"
    BUY = "buy_failure"
    SELL = "sell_failure"
    DEREGISTRATION = "deregistration_failure"
    OTHER = "other_failure"
    CANCELLED = "cancelled"


class Stage(str, Enum):
    """Journey states, in execution order."""

    START = "start"
    AUTHENTICATE = "authenticate"
    REGISTER = "register"
    BUY = "buy"
    SELL = "sell"
    DEREGISTER = "deregister"
    DONE = "done"

    @property
    def category(self) -> FailureCategory:
        return STAGE_CATEGORIES.get(self, FailureCategory.OTHER)


STAGE_CATEGORIES: dict[Stage, FailureCategory] = {
    Stage.AUTHENTICATE: FailureCategory.LOGIN,
    Stage.REGISTER: FailureCategory.REGISTRATION,
    Stage.BUY: FailureCategory.BUY,
    Stage.SELL: FailureCategory.SELL,
    Stage.DEREGISTER: FailureCategory.DEREGISTRATION,
}


def instance_label(prefix: str, batch_start: int, offset: int) -> str:
    """Label for the instance at ``offset`` within the batch starting at ``batch_start``."""
    return f"{prefix}{batch_start + offset}"


@dataclass(frozen=True)
class Outcome:
    """Terminal record of one journey execution."""

    instance_id: str
    succeeded: bool
    category: FailureCategory | None
    message: str
    stage: Stage
    started_at_monotonic: float = 0.0
    ended_at_monotonic: float = 0.0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, self.ended_at_monotonic - self.started_at_monotonic)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class RunConfig:
    total_instances: int
    batch_size: int
    step_timeout_seconds: float
    target_base_url: str
    credentials: Credentials
    owner_prefix: str = "Sel-KC-baW-brX-tY"
    symbol: str = "TEST"
    max_shares: int = 50
    think_time_min_seconds: float = 3.0
    think_time_max_seconds: float = 12.0
    settle_seconds: float = 2.0
    confirm_timeout_seconds: float = 5.0
    instance_budget_seconds: float | None = None
    summary_path: str = "/summary"
    verify_tls: bool = True

    def validate(self) -> None:
        """Raise ConfigurationError describing the first invalid field."""
        if self.total_instances < 0:
            raise ConfigurationError("total_instances must be >= 0", {"total_instances": self.total_instances})
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be >= 1", {"batch_size": self.batch_size})
        if self.step_timeout_seconds <= 0:
            raise ConfigurationError(
                "step_timeout_seconds must be > 0",
                {"step_timeout_seconds": self.step_timeout_seconds},
            )
        if not self.target_base_url:
            raise ConfigurationError("target_base_url must be provided")
        if not self.credentials.username:
            raise ConfigurationError("credentials.username must be provided")
        if self.max_shares < 1:
            raise ConfigurationError("max_shares must be >= 1", {"max_shares": self.max_shares})
        if not 0 <= self.think_time_min_seconds <= self.think_time_max_seconds:
            raise ConfigurationError(
                "think time bounds must satisfy 0 <= min <= max",
                {"min": self.think_time_min_seconds, "max": self.think_time_max_seconds},
            )
        if self.settle_seconds < 0 or self.confirm_timeout_seconds < 0:
            raise ConfigurationError("settle and confirm timeouts must be >= 0")
        if self.instance_budget_seconds is not None and self.instance_budget_seconds <= 0:
            raise ConfigurationError(
                "instance_budget_seconds must be > 0 when set",
                {"instance_budget_seconds": self.instance_budget_seconds},
            )

    @property
    def summary_url(self) -> str:
        return self.target_base_url.rstrip("/") + "/" + self.summary_path.lstrip("/")


@dataclass(frozen=True)
class AggregateSnapshot:
    recorded: int
    success_count: int
    counts_by_category: dict[FailureCategory, int]

    @property
    def failure_count(self) -> int:
        return sum(self.counts_by_category.values())


@dataclass(frozen=True)
class BatchProgress:
    batch_number: int
    batch_count: int
    batch_size: int
    snapshot: AggregateSnapshot


@dataclass
class RunSummary:
    total_scheduled: int
    success_count: int
    counts_by_category: dict[FailureCategory, int]
    elapsed_seconds: float
    failure_details: list[str] = field(default_factory=list)
    stage_metrics: dict[str, Any] | None = None

    @property
    def failure_count(self) -> int:
        return sum(self.counts_by_category.values())

    @property
    def success_rate(self) -> float:
        if self.total_scheduled <= 0:
            return 0.0
        return self.success_count / self.total_scheduled * 100
