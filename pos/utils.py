from __future__ import annotations

from datetime import datetime, date, time, timezone


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def day_bounds(day: date) -> tuple[str, str]:
    """ISO [start, end] timestamps covering a calendar day (UTC)."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time.max, tzinfo=timezone.utc).replace(microsecond=0)
    return start.isoformat(), end.isoformat()


def money(v: float) -> float:
    # Currency amounts are kept at cent precision everywhere.
    return round(float(v), 2)


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0
