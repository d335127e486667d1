"""Tests for input validation utilities."""

from datetime import datetime, timezone

import pytest
import pytz

from renewals.validators import Validator


class TestDocumentNameValidator:
    def test_valid_document_name(self):
        result = Validator.document_name("Passport")
        assert result.ok is True
        assert result.message is None

    def test_empty_document_name(self):
        result = Validator.document_name("   ")
        assert result.ok is False
        assert "empty" in result.message.lower()

    def test_too_long_document_name(self):
        long_name = "A" * (Validator.DOCUMENT_NAME_LIMIT + 1)
        result = Validator.document_name(long_name)
        assert result.ok is False
        assert str(Validator.DOCUMENT_NAME_LIMIT) in result.message


class TestDocumentTypeValidator:
    def test_valid_document_type(self):
        assert Validator.document_type("insurance").ok is True

    def test_too_long_document_type(self):
        assert Validator.document_type("x" * (Validator.DOCUMENT_TYPE_LIMIT + 1)).ok is False


class TestNotesValidator:
    def test_missing_notes_are_fine(self):
        assert Validator.notes(None).ok is True

    def test_too_long_notes(self):
        assert Validator.notes("n" * (Validator.NOTES_LIMIT + 1)).ok is False


class TestReminderTimeValidator:
    def test_valid_reminder_time(self):
        result = Validator.reminder_time("09:00")
        assert result.ok is True

    def test_invalid_reminder_time_format(self):
        result = Validator.reminder_time("9:00")
        assert result.ok is False

    def test_invalid_reminder_time_hours(self):
        result = Validator.reminder_time("25:00")
        assert result.ok is False


class TestReminderPeriodValidator:
    def test_known_period(self):
        assert Validator.reminder_period("3_months").ok is True

    def test_unknown_period_lists_options(self):
        result = Validator.reminder_period("4_months")
        assert result.ok is False
        assert "1_week" in result.message


class TestTimezoneValidator:
    def test_valid_timezone(self):
        assert Validator.timezone("Europe/London").ok is True

    def test_unknown_timezone(self):
        result = Validator.timezone("Mars/Olympus")
        assert result.ok is False
        assert "Mars/Olympus" in result.message


class TestExpiryDateParser:
    def test_parse_iso_date(self):
        result = Validator.parse_expiry_date("2026-03-31")
        assert result == datetime(2026, 3, 31, tzinfo=timezone.utc)

    def test_parse_written_date_in_timezone(self):
        tz = pytz.timezone("Asia/Tokyo")
        result = Validator.parse_expiry_date("31 March 2026", tz)
        assert result.tzinfo is not None
        assert result.astimezone(tz).date().isoformat() == "2026-03-31"

    def test_empty_is_none(self):
        assert Validator.parse_expiry_date("") is None
        assert Validator.parse_expiry_date(None) is None

    def test_parse_invalid_date(self):
        with pytest.raises(ValueError):
            Validator.parse_expiry_date("invalid-date")


def test_sanitize():
    assert Validator.sanitize("  Passport ") == "Passport"
    assert Validator.sanitize(None) is None
