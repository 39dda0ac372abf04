"""Timezone lookup and clock utilities for earlycal."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import ClassVar

from dateutil import parser as date_parser

from .exceptions import TimezoneError

logger = logging.getLogger(__name__)

# Default timezone when the settings store supplies none (or an invalid one)
DEFAULT_TIMEZONE = "America/Chicago"

# Environment variable that freezes "now" for tests and diagnostics
TEST_TIME_ENV = "EARLYCAL_TEST_TIME"


class TimezoneRegistry:
    """Resolves TZID strings found in ICS feeds to zoneinfo zones."""

    # Windows timezone names used in ICS files from Outlook/Exchange
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "US Mountain Standard Time": "America/Phoenix",
        "GMT Standard Time": "Europe/London",
        "Central European Standard Time": "Europe/Warsaw",
        "Romance Standard Time": "Europe/Paris",
        "W. Europe Standard Time": "Europe/Berlin",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "India Standard Time": "Asia/Kolkata",
        "AUS Eastern Standard Time": "Australia/Sydney",
    }

    UTC_ALIASES: ClassVar[frozenset[str]] = frozenset(
        {"UTC", "Z", "GMT", "Etc/UTC", "Etc/GMT", "Coordinated Universal Time"}
    )

    def __init__(self) -> None:
        self._cache: dict[str, zoneinfo.ZoneInfo] = {}

    def normalize_tzid(self, tzid: str) -> str:
        """Strip quotes and map Windows zone names onto IANA identifiers."""
        cleaned = tzid.strip().strip('"').strip()
        if cleaned in self.UTC_ALIASES:
            return "UTC"
        return self.WINDOWS_TZ_MAP.get(cleaned, cleaned)

    def is_utc(self, tzid: str) -> bool:
        return self.normalize_tzid(tzid) == "UTC"

    def get_zone(self, tzid: str) -> zoneinfo.ZoneInfo:
        """Return the ZoneInfo for a TZID or raise TimezoneError.

        Args:
            tzid: IANA identifier, Windows zone name, or UTC alias

        Returns:
            Resolved zone

        Raises:
            TimezoneError: If the identifier is unknown to the tz database
        """
        iana = self.normalize_tzid(tzid)
        cached = self._cache.get(iana)
        if cached is not None:
            return cached
        if not iana:
            raise TimezoneError("Empty timezone identifier")
        try:
            zone = zoneinfo.ZoneInfo(iana)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise TimezoneError(f"Unknown timezone: {tzid!r}") from e
        self._cache[iana] = zone
        return zone


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden via the EARLYCAL_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2026-02-24T20:00:00-06:00").
        Naive override values are taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(datetime.timezone.utc)


# Singleton instances for global use
_registry = TimezoneRegistry()
_time_provider = TimeProvider()


def get_zone(tzid: str) -> zoneinfo.ZoneInfo:
    """Resolve a TZID to a zone (convenience function)."""
    return _registry.get_zone(tzid)


def normalize_tzid(tzid: str) -> str:
    return _registry.normalize_tzid(tzid)


def is_utc_tzid(tzid: str) -> bool:
    return _registry.is_utc(tzid)


def windows_tz_to_iana(windows_tz: str) -> str | None:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Central Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Chicago") or None if not found
    """
    return TimezoneRegistry.WINDOWS_TZ_MAP.get(windows_tz)


def validate_timezone(name: str | None, default: str = DEFAULT_TIMEZONE) -> str:
    """Return ``name`` if it resolves to a zone, otherwise ``default``.

    Logs a warning on fallback so a misconfigured settings store is visible.
    """
    if not name:
        return default
    try:
        get_zone(name)
    except TimezoneError as e:
        logger.warning("%s, falling back to %s", e, default)
        return default
    return normalize_tzid(name)


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def tomorrow_date_string(timezone_name: str, now: datetime.datetime | None = None) -> str:
    """Return tomorrow's calendar day in ``timezone_name`` as YYYYMMDD.

    Args:
        timezone_name: IANA timezone identifier
        now: Reference instant (defaults to now_utc())

    Returns:
        8-digit date string
    """
    reference = now if now is not None else now_utc()
    local_today = reference.astimezone(get_zone(timezone_name)).date()
    return (local_today + datetime.timedelta(days=1)).strftime("%Y%m%d")
