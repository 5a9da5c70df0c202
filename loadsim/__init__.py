"""Load simulation harness for StockTrader-style web applications.

Runs many independent end-to-end user journeys in barrier-synchronized
batches and reports outcomes grouped by the journey stage that failed.
"""

from __future__ import annotations

__all__ = []
