"""Structured, event-named logging built on structlog.

Log calls name an event and attach context as keyword arguments::

    logger.info("sim.batch_start", batch=1, size=5)

Values under secret-bearing keys are redacted and oversized strings are
truncated before rendering.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, TextIO

import structlog

REDACTED = "[REDACTED]"
TRUNCATED_SUFFIX = "...[truncated]"
MAX_VALUE_CHARS = 2000

_SECRET_KEY_MARKERS = ("password", "secret", "token", "api_key", "authorization")


class Logger(ABC):
    """Logging interface accepted by every harness component."""

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None: ...


def redact_secrets(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor replacing values of secret-bearing keys."""
    for key in list(event_dict):
        lowered = key.lower()
        if any(marker in lowered for marker in _SECRET_KEY_MARKERS):
            event_dict[key] = REDACTED
    return event_dict


def truncate_values(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor capping the length of string values."""
    for key, value in event_dict.items():
        if isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
            event_dict[key] = value[:MAX_VALUE_CHARS] + TRUNCATED_SUFFIX
    return event_dict


class StructuredLogger(Logger):
    """Logger rendering one line per event, as console text or JSON.

    Args:
        name: Logger name, emitted as the ``logger`` field
        level: Minimum stdlib logging level to emit
        json_format: Render JSON lines instead of key=value console lines
        stream: Output stream; defaults to stdout at construction time
    """

    def __init__(
        self,
        name: str = "loadsim",
        *,
        level: int = logging.INFO,
        json_format: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        renderer: Any
        if json_format:
            renderer = structlog.processors.JSONRenderer(sort_keys=True)
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=False)

        self.name = name
        self._log = structlog.wrap_logger(
            structlog.PrintLogger(file=stream),
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                redact_secrets,
                truncate_values,
                renderer,
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            cache_logger_on_first_use=False,
        ).bind(logger=name)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log.error(message, **kwargs)
