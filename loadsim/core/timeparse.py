from __future__ import annotations

import re


_DURATION_RE = re.compile(r"^(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?$")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration_to_seconds(raw: str) -> float:
    """Parse duration strings like '500ms', '10s', '5m', '1h' into seconds.

    A bare number is taken as seconds, so ``--step-timeout 30`` works too.
    """
    match = _DURATION_RE.match(raw.strip().lower())
    if not match:
        raise ValueError("duration must match <number>[unit] where unit is ms|s|m|h")

    unit = match.group("unit") or "s"
    return float(match.group("value")) * _UNIT_SECONDS[unit]
