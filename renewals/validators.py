from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import pytz
from dateutil import parser

from .calculator import as_local
from .models import ReminderPeriod


@dataclass
class ValidationResult:
    ok: bool
    message: Optional[str] = None


class Validator:
    DOCUMENT_NAME_LIMIT = 80
    DOCUMENT_TYPE_LIMIT = 40
    NOTES_LIMIT = 500

    @staticmethod
    def document_name(name: str) -> ValidationResult:
        if not name or not name.strip():
            return ValidationResult(False, "Document name cannot be empty.")
        if len(name.strip()) > Validator.DOCUMENT_NAME_LIMIT:
            return ValidationResult(False, f"Document name must be under {Validator.DOCUMENT_NAME_LIMIT} characters.")
        return ValidationResult(True)

    @staticmethod
    def document_type(value: str) -> ValidationResult:
        if not value or not value.strip():
            return ValidationResult(False, "Document type cannot be empty.")
        if len(value.strip()) > Validator.DOCUMENT_TYPE_LIMIT:
            return ValidationResult(False, f"Document type must be under {Validator.DOCUMENT_TYPE_LIMIT} characters.")
        return ValidationResult(True)

    @staticmethod
    def notes(value: Optional[str]) -> ValidationResult:
        if value and len(value) > Validator.NOTES_LIMIT:
            return ValidationResult(False, f"Notes must be under {Validator.NOTES_LIMIT} characters.")
        return ValidationResult(True)

    @staticmethod
    def reminder_time(value: str) -> ValidationResult:
        if not re.match(r"^(?:[01]\d|2[0-3]):[0-5]\d$", value):
            return ValidationResult(False, "Reminder time must be HH:MM in 24h format.")
        return ValidationResult(True)

    @staticmethod
    def reminder_period(value: str) -> ValidationResult:
        try:
            ReminderPeriod(value)
        except ValueError:
            options = ", ".join(p.value for p in ReminderPeriod)
            return ValidationResult(False, f"Reminder period must be one of: {options}.")
        return ValidationResult(True)

    @staticmethod
    def timezone(value: str) -> ValidationResult:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            return ValidationResult(False, f"Unknown timezone: `{value}`")
        return ValidationResult(True)

    @staticmethod
    def parse_expiry_date(value: Optional[str], tz: Any = None) -> Optional[datetime]:
        """
        Parse an expiry date string into an aware datetime.

        Args:
            value: Date string such as "2026-03-31" or "31 March 2026"
            tz: Time zone a date without offset is read in (default UTC)

        Returns:
            Aware datetime at the start of that moment, or None if value is empty

        Raises:
            ValueError: If the date format is invalid
        """
        if not value or not value.strip():
            return None
        try:
            dt = parser.parse(value.strip())
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Could not read expiry date `{value}`.") from e
        return as_local(dt, tz)

    @staticmethod
    def sanitize(text: Optional[str]) -> Optional[str]:
        return text.strip() if text else text
