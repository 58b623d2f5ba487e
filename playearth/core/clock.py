from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time as a UTC-aware datetime."""


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to one instant; ``advance`` moves it forward."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs: float) -> None:
        self._at = self._at + timedelta(**kwargs)


def utc_today(clock: Clock) -> date:
    return clock.now().astimezone(timezone.utc).date()


_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def naive_utc(moment: datetime) -> datetime:
    """Column value for a moment: naive UTC, the way rows are stored."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def utcnow() -> datetime:
    return naive_utc(datetime.now(timezone.utc))
