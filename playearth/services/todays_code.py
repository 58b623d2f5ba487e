"""
Today's Code: the anti-cheat watermark users show in proof photos and videos.

The value is a pure function of the UTC calendar date so any reviewer can
re-derive the code for the day a proof was submitted. The formula is an
external contract; stored proofs are re-verified against it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from playearth.core.clock import Clock, get_clock, utc_today


CODE_WORDS: tuple[str, ...] = (
    "MOSS", "LEAF", "TREE", "WAVE", "GAIA", "BLOOM", "SEED", "RAIN",
    "WIND", "FERN", "PINE", "OCEAN", "CORAL", "EARTH", "GREEN", "SOLAR",
    "LUNA", "STAR", "CLOUD", "RIVER", "FOREST", "MEADOW", "VALLEY", "PEAK",
    "GLACIER", "REEF", "OASIS", "PRAIRIE", "DELTA", "ARCTIC", "TROPIC",
)


@dataclass(frozen=True)
class DailyCode:
    word: str
    number: int
    valid_until: datetime

    @property
    def value(self) -> str:
        return f"{self.word}-{self.number}"


def next_utc_midnight(day: date) -> datetime:
    return datetime.combine(day + timedelta(days=1), time(0, 0, 0), tzinfo=timezone.utc)


def code_for_date(day: date) -> DailyCode:
    # 1 for Jan 1st
    day_of_year = day.timetuple().tm_yday
    word = CODE_WORDS[(day_of_year + day.year) % len(CODE_WORDS)]
    number = (day_of_year * 7 + day.year * 3) % 90 + 10
    return DailyCode(word=word, number=number, valid_until=next_utc_midnight(day))


def get_todays_code(clock: Optional[Clock] = None) -> str:
    return code_for_date(utc_today(clock or get_clock())).value


def get_code_valid_until(clock: Optional[Clock] = None) -> datetime:
    return next_utc_midnight(utc_today(clock or get_clock()))


def format_time_remaining(expires_at: datetime, clock: Optional[Clock] = None) -> str:
    now = (clock or get_clock()).now()
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    remaining_ms = int((expires_at - now).total_seconds() * 1000)
    if remaining_ms <= 0:
        return "Expired"
    hours = remaining_ms // (60 * 60 * 1000)
    minutes = (remaining_ms % (60 * 60 * 1000)) // (60 * 1000)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def verify_code(value: str | None, day: date) -> bool:
    """True when ``value`` is the code for ``day``; case and surrounding spaces ignored."""
    if not value:
        return False
    return value.strip().upper() == code_for_date(day).value
