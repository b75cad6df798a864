"""
Date and time utility functions for OrderDesk.
Timestamps are stored as naive UTC; tenant-local wall-clock values are
derived through the tenant's configured timezone.
"""

from datetime import datetime, timezone
from typing import Optional

import pytz

from ..config.settings import get_settings

UTC_TZ = pytz.UTC


class DateUtils:
    """Tenant timezone helpers used by order numbering and plan limits."""

    @staticmethod
    def get_utc_now() -> datetime:
        """Get current UTC time as a naive datetime."""
        return datetime.now(timezone.utc).replace(tzinfo=None)

    @staticmethod
    def get_timezone(name: Optional[str] = None):
        """Resolve a timezone name, falling back to the configured default."""
        try:
            return pytz.timezone(name or get_settings().DEFAULT_TIMEZONE)
        except pytz.UnknownTimeZoneError:
            return pytz.timezone(get_settings().DEFAULT_TIMEZONE)

    @staticmethod
    def to_local(dt: datetime, tz) -> datetime:
        """Convert a naive UTC (or aware) datetime to the given timezone."""
        if dt.tzinfo is None:
            dt = UTC_TZ.localize(dt)
        return dt.astimezone(tz)

    @staticmethod
    def to_naive_utc(dt: datetime) -> datetime:
        """Convert an aware datetime to naive UTC."""
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(UTC_TZ).replace(tzinfo=None)

    @staticmethod
    def start_of_local_day(now: datetime, tz) -> datetime:
        """
        Local midnight of the day containing ``now``, as naive UTC.
        """
        local = DateUtils.to_local(now, tz)
        midnight = tz.localize(datetime(local.year, local.month, local.day))
        return DateUtils.to_naive_utc(midnight)

    @staticmethod
    def start_of_local_month(now: datetime, tz) -> datetime:
        """First instant of the local month containing ``now``, as naive UTC."""
        local = DateUtils.to_local(now, tz)
        first = tz.localize(datetime(local.year, local.month, 1))
        return DateUtils.to_naive_utc(first)

    @staticmethod
    def format_hhmm(now: datetime, tz) -> str:
        """Local wall-clock time as HHMM."""
        return DateUtils.to_local(now, tz).strftime("%H%M")


# Convenience functions
def utc_now() -> datetime:
    """Current naive UTC time; column default for every timestamp."""
    return DateUtils.get_utc_now()


def get_tenant_timezone(name: Optional[str] = None):
    return DateUtils.get_timezone(name)


def start_of_local_day(now: datetime, tz) -> datetime:
    return DateUtils.start_of_local_day(now, tz)


def start_of_local_month(now: datetime, tz) -> datetime:
    return DateUtils.start_of_local_month(now, tz)


def format_hhmm(now: datetime, tz) -> str:
    return DateUtils.format_hhmm(now, tz)
