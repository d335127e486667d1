"""Tests for reminder time calculations."""

from datetime import datetime, time, timedelta, timezone

import pytest
import pytz

from renewals.calculator import (
    days_until_expiry,
    final_warning_instant,
    follow_up_instant,
    lead_days,
    parse_time_of_day,
    reminder_instant,
    resolve_timezone,
    urgency,
)
from renewals.models import ReminderPeriod, Urgency


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestReminderInstant:
    @pytest.mark.parametrize(
        "period, expected",
        [
            (ReminderPeriod.ONE_WEEK, utc(2025, 5, 25, 9, 0)),
            (ReminderPeriod.TWO_WEEKS, utc(2025, 5, 18, 9, 0)),
            (ReminderPeriod.ONE_MONTH, utc(2025, 5, 2, 9, 0)),
            (ReminderPeriod.THREE_MONTHS, utc(2025, 3, 3, 9, 0)),
            (ReminderPeriod.TWELVE_MONTHS, utc(2024, 6, 1, 9, 0)),
            (ReminderPeriod.CUSTOM, utc(2025, 5, 25, 9, 0)),
        ],
    )
    def test_fixed_day_leads(self, period, expected):
        assert reminder_instant(utc(2025, 6, 1), period, time(9, 0), "UTC") == expected

    def test_month_is_thirty_days_not_calendar_month(self):
        result = reminder_instant(utc(2025, 3, 31), ReminderPeriod.ONE_MONTH, time(9, 0), "UTC")
        assert result == utc(2025, 3, 1, 9, 0)

    def test_time_of_day_replaces_expiry_time_and_zeroes_seconds(self):
        result = reminder_instant(utc(2025, 6, 1, 17, 45, 33), ReminderPeriod.ONE_WEEK, time(18, 30, 59), "UTC")
        assert result == utc(2025, 5, 25, 18, 30)

    def test_default_time_is_nine(self):
        result = reminder_instant(utc(2025, 6, 1), ReminderPeriod.ONE_WEEK)
        assert result == utc(2025, 5, 25, 9, 0)

    def test_wall_clock_in_user_timezone(self):
        result = reminder_instant(datetime(2025, 6, 1), ReminderPeriod.ONE_WEEK, time(9, 0), "America/New_York")
        local = result.astimezone(pytz.timezone("America/New_York"))
        assert (local.date().isoformat(), local.hour, local.minute) == ("2025-05-25", 9, 0)
        assert result == utc(2025, 5, 25, 13, 0)

    def test_lead_days_accepts_values(self):
        assert lead_days("6_months") == 180
        assert lead_days(ReminderPeriod.NINE_MONTHS) == 270


class TestFollowUp:
    def test_next_day_same_time(self):
        assert follow_up_instant(utc(2025, 5, 25, 9, 0), "UTC") == utc(2025, 5, 26, 9, 0)

    def test_keeps_wall_clock_across_dst(self):
        ny = pytz.timezone("America/New_York")
        primary = ny.localize(datetime(2025, 3, 8, 9, 0))
        result = follow_up_instant(primary, ny)
        local = result.astimezone(ny)
        assert (local.day, local.hour) == (9, 9)
        assert result - primary == timedelta(hours=23)


class TestUrgency:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (7, Urgency.DANGER),
            (8, Urgency.WARNING),
            (30, Urgency.WARNING),
            (31, Urgency.SAFE),
            (-1, Urgency.EXPIRED),
            (0, Urgency.DANGER),
        ],
    )
    def test_thresholds(self, days, expected):
        now = utc(2025, 6, 1, 12, 0)
        assert urgency(now + timedelta(days=days), now, "UTC") is expected

    def test_partial_days_round_up(self):
        now = utc(2025, 6, 1, 12, 0)
        assert days_until_expiry(now + timedelta(hours=6), now) == 1
        assert days_until_expiry(now - timedelta(hours=6), now) == 0

    def test_naive_now_is_utc(self):
        assert days_until_expiry(utc(2025, 6, 8), datetime(2025, 6, 1)) == 7


class TestFinalWarning:
    def test_day_before_expiry_when_within_a_week(self):
        result = final_warning_instant(utc(2025, 6, 1), time(9, 0), utc(2025, 5, 30, 10, 0), "UTC")
        assert result == utc(2025, 5, 31, 9, 0)

    def test_none_when_expiry_is_far(self):
        assert final_warning_instant(utc(2025, 6, 1), time(9, 0), utc(2025, 5, 1), "UTC") is None

    def test_none_once_expired(self):
        assert final_warning_instant(utc(2025, 6, 1), time(9, 0), utc(2025, 6, 2), "UTC") is None


class TestParsing:
    def test_parse_time_of_day(self):
        assert parse_time_of_day("18:30") == time(18, 30)
        assert parse_time_of_day(None) == time(9, 0)
        assert parse_time_of_day("") == time(9, 0)

    def test_unknown_timezone_falls_back_to_utc(self):
        assert resolve_timezone("Nowhere/Special") is pytz.UTC
        assert resolve_timezone(None) is pytz.UTC
        assert resolve_timezone("Europe/London").zone == "Europe/London"
