# src/streaklane/core/dates.py

"""
Calendar helpers.

Every day-boundary comparison in the app goes through these functions so the
streak engine and the weekly stats agree on what "a day" is: local midnight.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta


def local_now() -> datetime:
    return datetime.now().astimezone()


def truncate_to_day(moment: datetime | date) -> date:
    """Local calendar date of `moment` (aware datetimes are converted to local time first)."""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.date()
    return moment


def whole_days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def start_of_week(moment: datetime | date, week_start_day: int = 6) -> datetime:
    """
    Local midnight of the most recent `week_start_day` (0=Monday ... 6=Sunday) on or before `moment`.
    """
    day = truncate_to_day(moment)
    back = (day.weekday() - int(week_start_day)) % 7
    return datetime.combine(day - timedelta(days=back), time.min).astimezone()


def parse_timestamp(raw: object) -> float | None:
    """
    Parse an ISO-8601 string (or a POSIX number) into POSIX seconds.

    Naive ISO strings are interpreted in local time. Returns None for None/"".
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("timestamp must be an ISO-8601 string")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, datetime):
        return raw.timestamp()
    if isinstance(raw, date):
        return datetime.combine(raw, time.min).timestamp()
    s = str(raw).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s).timestamp()


def to_iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts)).astimezone().isoformat()
