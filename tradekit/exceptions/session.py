"""Session-specific exceptions.

These exceptions provide typed, structured errors for Session operations so
the workflow can classify failures without inspecting message text.
"""

from __future__ import annotations

from tradekit.exceptions.base import HarnessError


class SessionError(HarnessError):
    """Raised on transport, launch or teardown failure of a Session."""

    pass


class WaitTimeoutError(SessionError):
    """Raised when a wait condition is not met within its timeout."""

    pass


class InteractionError(SessionError):
    """Raised when an element is missing or cannot be interacted with."""

    pass
