"""Clock-time resolution

Turns short, possibly ambiguous clock-time tokens (``9pm``, ``9:00 am``,
``21:15``, ``11``) into absolute UTC instants. All functions are pure: the
reference instant and the zone are passed in.

Accepted tokens: ``hour[:minute][am|pm]`` with hour 0-23 (1-12 when a
meridiem is given) and minute 0-59, optional space before the meridiem.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from sleep_bot.config.constants import MAX_PROACTIVE_BEDTIME

_TOKEN_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$", re.IGNORECASE)


@dataclass(frozen=True)
class TimeToken:
    """A parsed clock-time token"""

    raw_hour: int
    minute: int
    suffix: str | None  # "am", "pm" or None

    @property
    def is_ambiguous(self) -> bool:
        """No meridiem and an hour that reads as both AM and PM"""
        return self.suffix is None and self.raw_hour <= 12

    @property
    def pm_hour(self) -> int:
        """The hour read as PM"""
        return 12 if self.raw_hour == 12 else self.raw_hour + 12


def parse_time_token(token: str | None) -> TimeToken | None:
    """
    Parse a clock-time token

    Returns:
        The token, or None when it is malformed or out of range
    """
    if not token:
        return None
    match = _TOKEN_RE.match(token.strip())
    if not match:
        return None

    raw_hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    suffix = match.group(3).lower() if match.group(3) else None

    if minute > 59 or raw_hour > 23:
        return None
    if suffix and not 1 <= raw_hour <= 12:
        return None

    return TimeToken(raw_hour=raw_hour, minute=minute, suffix=suffix)


def expand_interpretations(token: TimeToken | None) -> list[tuple[int, int]]:
    """
    Candidate (hour, minute) readings of a token on a 24-hour clock

    A meridiem or an hour above 12 gives one reading; a bare hour up to 12
    gives the AM reading followed by the PM reading.
    """
    if token is None:
        return []

    am_hour = 0 if token.raw_hour == 12 else token.raw_hour
    if token.suffix == "am":
        return [(am_hour, token.minute)]
    if token.suffix == "pm":
        return [(token.pm_hour, token.minute)]
    if token.raw_hour > 12:
        return [(token.raw_hour, token.minute)]
    return [(am_hour, token.minute), (token.pm_hour, token.minute)]


def at_local_clock(reference: datetime, hour: int, minute: int, zone: ZoneInfo) -> datetime:
    """Same local calendar day as ``reference`` at hour:minute, as UTC"""
    local = reference.astimezone(zone)
    return local.replace(hour=hour, minute=minute, second=0, microsecond=0).astimezone(timezone.utc)


def shift_local_days(instant: datetime, days: int, zone: ZoneInfo) -> datetime:
    """Move an instant by whole local calendar days, keeping its wall-clock time"""
    local = instant.astimezone(zone)
    return (local + timedelta(days=days)).astimezone(timezone.utc)


def resolve_bedtime(token: str, now: datetime, zone: ZoneInfo) -> datetime | None:
    """
    Resolve a gn time override

    Every reading is tried today and yesterday (local calendar); the
    candidate closest to ``now`` wins. A winner more than 12 hours in the
    future moves back one day, so ``(11pm)`` sent at 9pm means tonight while
    an ambiguous token still lands on its most recent plausible occurrence.

    Returns:
        The bedtime (UTC), or None when the token is malformed
    """
    readings = expand_interpretations(parse_time_token(token))
    if not readings:
        return None

    now = now.astimezone(timezone.utc)
    candidates = []
    for hour, minute in readings:
        today = at_local_clock(now, hour, minute, zone)
        candidates.append(today)
        candidates.append(shift_local_days(today, -1, zone))

    best = min(candidates, key=lambda c: abs(c - now))

    if best > now and best - now > MAX_PROACTIVE_BEDTIME:
        best = shift_local_days(best, -1, zone)
    return best


def resolve_wake(token: str, bed_time: datetime, zone: ZoneInfo) -> datetime | None:
    """
    Resolve a gm time override against the session's bedtime

    Each reading is placed on the bedtime's local day, or the next day when
    that is not strictly after bed; the reading closest after bed wins.

    Returns:
        The wake time (UTC), or None when the token is malformed
    """
    readings = expand_interpretations(parse_time_token(token))
    if not readings:
        return None

    bed_time = bed_time.astimezone(timezone.utc)
    best = None
    for hour, minute in readings:
        wake = at_local_clock(bed_time, hour, minute, zone)
        if wake <= bed_time:
            wake = shift_local_days(wake, 1, zone)
        if best is None or wake - bed_time < best - bed_time:
            best = wake
    return best


def previous_evening(token: TimeToken, wake_time: datetime, zone: ZoneInfo) -> datetime:
    """The PM reading of ``token`` on the local day before ``wake_time``, as UTC"""
    wake_local = wake_time.astimezone(zone)
    bed_local = (wake_local - timedelta(days=1)).replace(
        hour=token.pm_hour, minute=token.minute, second=0, microsecond=0
    )
    return bed_local.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """
    Whole minutes from ``start`` to ``end``

    Rounded half away from zero, so swapping the arguments only flips the
    sign: ``minutes_between(a, b) == -minutes_between(b, a)``.
    """
    microseconds = (end - start) // timedelta(microseconds=1)
    minutes = Decimal(microseconds) / Decimal(60_000_000)
    return int(minutes.quantize(Decimal(1), rounding=ROUND_HALF_UP))
