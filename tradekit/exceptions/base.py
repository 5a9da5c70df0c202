"""Base exception classes for stocktrader-loadsim.

Every error raised by the harness derives from ``HarnessError`` so callers can
separate harness failures from programming errors.
"""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base exception for all harness errors.

    Attributes:
        message: Human-readable description of the failure
        details: Optional structured context (URLs, selectors, timeouts)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}

    def __str__(self) -> str:
        return self.message


class ValidationError(HarnessError):
    """Raised when an argument or value fails validation."""

    pass


class ConfigurationError(ValidationError):
    """Raised when a run configuration is inconsistent or incomplete."""

    pass


__all__ = [
    "HarnessError",
    "ValidationError",
    "ConfigurationError",
]
