"""Exception hierarchy for stocktrader-loadsim.

All exceptions carry a ``message`` and optional ``details`` dict so failures
can be logged as structured events.
"""

from tradekit.exceptions.base import ConfigurationError, HarnessError, ValidationError
from tradekit.exceptions.session import InteractionError, SessionError, WaitTimeoutError

__all__ = [
    "HarnessError",
    "ValidationError",
    "ConfigurationError",
    "SessionError",
    "WaitTimeoutError",
    "InteractionError",
]
