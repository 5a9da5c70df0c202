"""Errors raised inside a journey and classified at its outer boundary."""

from __future__ import annotations

from tradekit.exceptions import HarnessError

from loadsim.core.models import FailureCategory, Stage


class StageFailure(HarnessError):
    """A named journey stage failed.

    The failure category is fixed when the stage wraps the error, so the
    outer boundary never has to interpret message text.
    """

    def __init__(self, stage: Stage, cause: BaseException) -> None:
        super().__init__(
            f"{stage.value} failed: {type(cause).__name__}: {cause}",
            {"stage": stage.value},
        )
        self.stage = stage
        self.category = stage.category
        self.cause = cause


class RunCancelledError(HarnessError):
    """The run's stop signal was set while the instance was executing."""

    pass
