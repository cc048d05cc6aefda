"""Normalize step-source payloads into {date: steps}.

Sources report cumulative totals per day. Anything unreadable is treated as
"no data available" and skipped — never raises.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Any, Mapping

from loguru import logger

STEP_KEYS = ("steps", "steps_total", "value", "count")


def _first_numeric(data: Any) -> float | None:
    """Walk a dict/list and return the first numeric value found."""
    if isinstance(data, (int, float)) and not isinstance(data, bool):
        return float(data)
    if isinstance(data, dict):
        for v in data.values():
            result = _first_numeric(v)
            if result is not None:
                return result
    if isinstance(data, (list, tuple)):
        for item in data:
            result = _first_numeric(item)
            if result is not None:
                return result
    return None


def extract_steps(value: Any) -> int | None:
    """Step count from a number, numeric string or dict payload.

    Known keys (`steps`, `steps_total`, `value`, `count`) win over the
    first-numeric fallback. Negative totals clamp to 0.
    """
    try:
        raw: Any = value
        if isinstance(value, dict):
            raw = next((value[k] for k in STEP_KEYS if value.get(k) is not None), None)
            if raw is None:
                raw = _first_numeric(value)
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, str):
            raw = float(raw.strip())
        if not isinstance(raw, (int, float)):
            return None
        if raw != raw:  # NaN
            return None
        return max(0, int(raw))
    except (TypeError, ValueError, OverflowError):
        return None


def _extract_day(key: Any, tz: tzinfo | None) -> date | None:
    if isinstance(key, str):
        text = key.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            key = datetime.fromisoformat(text)
        except ValueError:
            return None
    if isinstance(key, datetime):
        if key.tzinfo is None:
            return key.date()
        # tz None converts to the device zone
        return key.astimezone(tz).date()
    if isinstance(key, date):
        return key
    return None


def extract_daily_steps(raw: Mapping[Any, Any] | None, tz: tzinfo | None = None) -> dict[date, int]:
    """Map of day → steps from a source payload keyed by date, datetime or ISO string.

    Aware datetimes and ISO strings carrying an offset are converted to `tz`
    (the device zone when None) before taking the calendar day. When two keys
    land on the same day, the larger total wins.
    """
    if not raw:
        return {}
    result: dict[date, int] = {}
    skipped = 0
    for key, value in raw.items():
        day = _extract_day(key, tz)
        steps = extract_steps(value)
        if day is None or steps is None:
            skipped += 1
            continue
        result[day] = max(steps, result.get(day, 0))
    if skipped:
        logger.debug("Skipped unreadable step entries", skipped=skipped, kept=len(result))
    return dict(sorted(result.items()))
