"""Shared building blocks for the StockTrader load simulator.

Provides the structured logger, the exception hierarchy, error-code mapping
and the Session capability used to drive the remote trader application.
"""

from __future__ import annotations

__all__ = []
