"""Logger module for stocktrader-loadsim

Usage:
    from tradekit.logger import StructuredLogger, session_logger

    # Use the shared logger
    session_logger.info("sim.start", instances=250)

    # Or build a JSON logger for machine consumption
    logger = StructuredLogger(name="loadsim", json_format=True)
"""

import logging
import os

from .structured import Logger, StructuredLogger, redact_secrets, truncate_values

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = StructuredLogger(
    level=getattr(logging, os.environ.get("LOADSIM_LOG_LEVEL", "INFO").upper(), logging.INFO),
    json_format=os.environ.get("LOADSIM_LOG_JSON", "").lower() in ("1", "true", "yes"),
)

__all__ = [
    "Logger",
    "StructuredLogger",
    "redact_secrets",
    "truncate_values",
    "session_logger",
]
