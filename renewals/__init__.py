from .db import Database
from .embeds import EmbedFactory
from .hooks import LifecycleHooks
from .notifier import DiscordNotifier
from .schedule_store import ScheduleStore
from .scheduler import Clock, ReminderScheduler, RescheduleReport
from .validators import Validator

__all__ = [
    "Database",
    "EmbedFactory",
    "LifecycleHooks",
    "DiscordNotifier",
    "ScheduleStore",
    "Clock",
    "ReminderScheduler",
    "RescheduleReport",
    "Validator",
]
