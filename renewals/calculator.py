"""Reminder time calculations.

Every function here is pure: the current time is always passed in, and all
date math happens on calendar dates in the user's time zone before the
wall-clock time is applied.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union

import pytz

from .models import ReminderPeriod, Urgency

DEFAULT_REMINDER_TIME = time(9, 0)

# Fixed-day approximation of each lead time; calendar months are never used.
LEAD_DAYS = {
    ReminderPeriod.ONE_WEEK: 7,
    ReminderPeriod.TWO_WEEKS: 14,
    ReminderPeriod.ONE_MONTH: 30,
    ReminderPeriod.TWO_MONTHS: 60,
    ReminderPeriod.THREE_MONTHS: 90,
    ReminderPeriod.SIX_MONTHS: 180,
    ReminderPeriod.NINE_MONTHS: 270,
    ReminderPeriod.TWELVE_MONTHS: 365,
    ReminderPeriod.CUSTOM: 7,
}

DANGER_DAYS = 7
WARNING_DAYS = 30

TimeZone = Union[str, tzinfo]


def resolve_timezone(tz: Optional[TimeZone]) -> tzinfo:
    """Return a pytz zone for ``tz``, falling back to UTC for unknown names."""
    if tz is None:
        return pytz.UTC
    if isinstance(tz, str):
        try:
            return pytz.timezone(tz)
        except pytz.UnknownTimeZoneError:
            return pytz.UTC
    return tz


def parse_time_of_day(value: Optional[str]) -> time:
    """Parse ``HH:MM`` (24h). Empty values give the default reminder time."""
    if not value:
        return DEFAULT_REMINDER_TIME
    hour, minute = map(int, value.split(":"))
    return time(hour, minute)


def lead_days(period: ReminderPeriod) -> int:
    return LEAD_DAYS[ReminderPeriod(period)]


def _localize(tz: tzinfo, naive: datetime) -> datetime:
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def as_local(value: datetime, tz: Optional[TimeZone] = None) -> datetime:
    """Express ``value`` in ``tz``; naive values are taken to already be local."""
    tz = resolve_timezone(tz)
    if value.tzinfo is None:
        return _localize(tz, value)
    return value.astimezone(tz)


def _at_time(day: date, time_of_day: Optional[time], tz: tzinfo) -> datetime:
    time_of_day = time_of_day or DEFAULT_REMINDER_TIME
    naive = datetime.combine(day, time(time_of_day.hour, time_of_day.minute))
    return _localize(tz, naive)


def reminder_instant(
    expiry_date: datetime,
    period: ReminderPeriod,
    time_of_day: Optional[time] = None,
    tz: Optional[TimeZone] = None,
) -> datetime:
    """Instant of the primary reminder for a document.

    The lead is subtracted from the expiry's calendar date in ``tz`` and the
    reminder time is then applied with seconds zeroed, e.g. expiry 2025-06-01
    with ``1_week`` at 09:00 gives 2025-05-25 09:00.
    """
    zone = resolve_timezone(tz)
    expiry_day = as_local(expiry_date, zone).date()
    return _at_time(expiry_day - timedelta(days=lead_days(period)), time_of_day, zone)


def follow_up_instant(primary: datetime, tz: Optional[TimeZone] = None) -> datetime:
    """Primary + one day at the same wall-clock time."""
    zone = resolve_timezone(tz)
    local = as_local(primary, zone)
    return _at_time(local.date() + timedelta(days=1), local.time(), zone)


def days_until_expiry(
    expiry_date: datetime,
    now: datetime,
    tz: Optional[TimeZone] = None,
) -> int:
    zone = resolve_timezone(tz)
    expiry = as_local(expiry_date, zone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.ceil((expiry - now).total_seconds() / 86400)


def final_warning_instant(
    expiry_date: datetime,
    time_of_day: Optional[time],
    now: datetime,
    tz: Optional[TimeZone] = None,
) -> Optional[datetime]:
    """The day-before-expiry warning, or None when expiry is not within a week."""
    days_left = days_until_expiry(expiry_date, now, tz)
    if days_left <= 0 or days_left > DANGER_DAYS:
        return None
    zone = resolve_timezone(tz)
    expiry_day = as_local(expiry_date, zone).date()
    return _at_time(expiry_day - timedelta(days=1), time_of_day, zone)


def urgency(
    expiry_date: datetime,
    now: datetime,
    tz: Optional[TimeZone] = None,
) -> Urgency:
    days_left = days_until_expiry(expiry_date, now, tz)
    if days_left < 0:
        return Urgency.EXPIRED
    if days_left <= DANGER_DAYS:
        return Urgency.DANGER
    if days_left <= WARNING_DAYS:
        return Urgency.WARNING
    return Urgency.SAFE
