from __future__ import annotations

import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytz


# -----------------------
# Clock primitives
# -----------------------
class Clock:
    def now_utc(self) -> datetime:
        raise NotImplementedError


class RealClock(Clock):
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    def __init__(self, dt_utc: datetime):
        if dt_utc.tzinfo is None:
            dt_utc = dt_utc.replace(tzinfo=timezone.utc)
        self._dt = dt_utc.astimezone(timezone.utc)

    @staticmethod
    def from_env(var: str = "NOW_UTC") -> Optional["FixedClock"]:
        val = os.getenv(var)
        if not val:
            return None
        return FixedClock(parse_datetime(val))

    def now_utc(self) -> datetime:
        return self._dt


def parse_datetime(s: str) -> datetime:
    s = s.strip()
    if re.fullmatch(r"\d{10}", s):
        return datetime.fromtimestamp(int(s), tz=timezone.utc)
    s = s.replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as e:
        raise ValueError(f"Invalid datetime: {s!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def require_tz(name: str) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(name)
    except Exception as e:
        raise ValueError(f"Invalid IANA timezone: {name!r}") from e


_clock: Clock = FixedClock.from_env() or RealClock()


def set_clock(clock: Optional[Clock]) -> None:
    global _clock
    _clock = clock or RealClock()


def now_utc() -> datetime:
    return _clock.now_utc()


def iso_now() -> str:
    return now_utc().isoformat()


def to_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def next_daily_run(time_str: str, tz_name: str, now: Optional[datetime] = None) -> datetime:
    """
    Next occurrence of ``HH:MM`` wall-clock time in ``tz_name``, returned in UTC.
    A time that has already passed today rolls over to tomorrow.
    """
    tz = require_tz(tz_name)
    current = (now or now_utc()).astimezone(tz)
    hours, minutes = (int(part) for part in time_str.split(":"))
    candidate_date = current.date()
    candidate = tz.localize(datetime(candidate_date.year, candidate_date.month, candidate_date.day, hours, minutes))
    if candidate <= current:
        next_date = candidate_date + timedelta(days=1)
        candidate = tz.localize(datetime(next_date.year, next_date.month, next_date.day, hours, minutes))
    return candidate.astimezone(timezone.utc)
