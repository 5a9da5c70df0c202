"""Session capability and its HTTP form-driving implementation."""

from tradekit.session.base import (
    Action,
    Condition,
    ConditionKind,
    Locator,
    Session,
    SessionFactory,
    WaitResult,
)
from tradekit.session.http_form import HttpFormSession

__all__ = [
    "Action",
    "Condition",
    "ConditionKind",
    "Locator",
    "Session",
    "SessionFactory",
    "WaitResult",
    "HttpFormSession",
]
