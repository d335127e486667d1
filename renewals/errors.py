from __future__ import annotations


class SchedulingError(Exception):
    """Base exception for reminder scheduling errors"""
    pass


class PlatformScheduleError(SchedulingError):
    """The notification backend rejected or timed out on a call."""
    pass


class StoreIOError(SchedulingError):
    """The schedule store could not be read or written."""
    pass
