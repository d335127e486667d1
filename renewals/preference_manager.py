"""Preference manager for the owner's reminder settings.

This module provides utilities for:
- Merging stored settings over system defaults
- Resolving the time zone and default reminder policy
"""

from __future__ import annotations

from datetime import time
from typing import Any, Dict

import pytz

from .calculator import parse_time_of_day
from .db import Database
from .models import ReminderPeriod


class PreferenceManager:
    """Resolves effective settings: stored settings > system defaults."""

    DEFAULT_PREFS = {
        "notifications_enabled": True,
        "timezone": "UTC",
        "default_reminder_period": ReminderPeriod.ONE_MONTH.value,
        "default_reminder_time": "09:00",
    }

    def __init__(self, db: Database, owner_id: int) -> None:
        self.db = db
        self.owner_id = owner_id

    async def get_effective_preferences(self) -> Dict[str, Any]:
        prefs = dict(self.DEFAULT_PREFS)
        settings = await self.db.get_settings(self.owner_id)
        for key, value in settings.items():
            if key != "owner_id" and value is not None:
                prefs[key] = value
        return prefs

    async def get_timezone(self) -> pytz.BaseTzInfo:
        prefs = await self.get_effective_preferences()
        try:
            return pytz.timezone(prefs.get("timezone", "UTC"))
        except pytz.UnknownTimeZoneError:
            return pytz.UTC

    async def get_default_reminder_time(self) -> time:
        prefs = await self.get_effective_preferences()
        try:
            return parse_time_of_day(prefs.get("default_reminder_time"))
        except (ValueError, TypeError):
            return parse_time_of_day(None)

    async def get_default_period(self) -> ReminderPeriod:
        prefs = await self.get_effective_preferences()
        try:
            return ReminderPeriod(prefs.get("default_reminder_period"))
        except ValueError:
            return ReminderPeriod.ONE_MONTH
