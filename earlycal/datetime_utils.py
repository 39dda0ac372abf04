"""DTSTART resolution for ICS events - earlycal.

Turns a raw ``DTSTART`` property line into a calendar day, hour and minute in
the target timezone. Three encodings are supported:

- all-day dates (``VALUE=DATE`` or an 8-character value)
- UTC instants (value ending in ``Z``, or ``TZID=UTC``)
- local times qualified with ``TZID=<zone>``, plus floating local times

All timezone math goes through ``to_local_wall_clock`` so the UTC and TZID
branches convert the same way.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo

from .exceptions import TimezoneError
from .models import ResolvedStart
from .timezone_utils import get_zone, is_utc_tzid, normalize_tzid

logger = logging.getLogger(__name__)

_DATETIME_VALUE_RE = re.compile(r"^(\d{8})(?:T(\d{2})(\d{2})(\d{2})?)?(Z)?$", re.IGNORECASE)


class DTStartParts(NamedTuple):
    """Pieces of a raw DTSTART line."""

    params: dict[str, str]
    value: str


def split_property(raw: str) -> DTStartParts:
    """Split ``NAME;P1=V1;P2=V2:VALUE`` into a parameter mapping and the value.

    Parameter names are upper-cased; the value is whatever follows the last
    colon, since ICS date values never contain one.
    """
    if ":" in raw:
        head, value = raw.rsplit(":", 1)
    else:
        head, value = raw, ""

    params: dict[str, str] = {}
    for chunk in head.split(";")[1:]:
        if "=" not in chunk:
            continue
        key, val = chunk.split("=", 1)
        params[key.strip().upper()] = val.strip()
    return DTStartParts(params, value.strip())


def to_local_wall_clock(instant: datetime, zone: ZoneInfo) -> datetime:
    """Convert an aware instant to wall-clock time in ``zone``.

    Raises:
        ValueError: If ``instant`` is naive
    """
    if instant.tzinfo is None:
        raise ValueError("to_local_wall_clock requires a timezone-aware datetime")
    return instant.astimezone(zone)


def format_time_12h(hour: int, minute: int) -> str:
    """Format a 24-hour time as ``"H:MM AM/PM"``.

    Examples:
        >>> format_time_12h(0, 30)
        '12:30 AM'
        >>> format_time_12h(7, 5)
        '7:05 AM'
        >>> format_time_12h(13, 0)
        '1:00 PM'
    """
    suffix = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {suffix}"


def _best_effort_fields(value: str) -> tuple[str, int, int]:
    """Pull date/hour/minute out of a value that failed strict parsing."""
    date = value[:8]
    hour = minute = 0
    time_part = value[9:13] if len(value) > 8 and value[8:9].upper() == "T" else ""
    if len(time_part) >= 2 and time_part[:2].isdigit():
        hour = int(time_part[:2])
    if len(time_part) >= 4 and time_part[2:4].isdigit():
        minute = int(time_part[2:4])
    if not 0 <= hour <= 23:
        hour = 0
    if not 0 <= minute <= 59:
        minute = 0
    return date, hour, minute


def _from_local(naive: datetime, source_tz: Optional[str]) -> ResolvedStart:
    return ResolvedStart(
        date=naive.strftime("%Y%m%d"),
        hour=naive.hour,
        minute=naive.minute,
        all_day=False,
        source_tz=source_tz,
    )


def resolve_start(dtstart_raw: str, target_tz: str) -> ResolvedStart:
    """Resolve a raw DTSTART line into the target timezone.

    Args:
        dtstart_raw: Entire DTSTART line, e.g. ``DTSTART;TZID=Europe/London:20260101T080000``
        target_tz: IANA identifier of the zone the caller lives in

    Returns:
        ResolvedStart; unparseable values come back as a best-effort,
        non-all-day result instead of raising

    Raises:
        TimezoneError: If ``target_tz`` itself is not a known zone
    """
    target_zone = get_zone(target_tz)
    params, value = split_property(dtstart_raw)

    if params.get("VALUE", "").upper() == "DATE" or len(value) == 8:
        return ResolvedStart(date=value[:8], all_day=True)

    match = _DATETIME_VALUE_RE.match(value)
    if match is None or match.group(2) is None:
        date, hour, minute = _best_effort_fields(value)
        logger.debug("Unparseable DTSTART %r; using best-effort %s %02d:%02d", dtstart_raw, date, hour, minute)
        return ResolvedStart(date=date, hour=hour, minute=minute, all_day=False)

    date_str, hh, mm, ss, zulu = match.groups()
    try:
        naive = datetime.strptime(f"{date_str}{hh}{mm}{ss or '00'}", "%Y%m%d%H%M%S")
    except ValueError:
        date, hour, minute = _best_effort_fields(value)
        logger.debug("Invalid DTSTART date/time %r; using best-effort values", dtstart_raw)
        return ResolvedStart(date=date, hour=hour, minute=minute, all_day=False)

    tzid = params.get("TZID")

    if zulu or (tzid is not None and is_utc_tzid(tzid)):
        local = to_local_wall_clock(naive.replace(tzinfo=timezone.utc), target_zone)
        return _from_local(local, "UTC")

    if tzid is not None:
        source_name = normalize_tzid(tzid)
        if source_name == normalize_tzid(target_tz):
            return _from_local(naive, source_name)
        try:
            source_zone = get_zone(tzid)
        except TimezoneError as e:
            logger.warning("%s in %r; treating value as %s wall-clock time", e, dtstart_raw, target_tz)
            return _from_local(naive, tzid)
        local = to_local_wall_clock(naive.replace(tzinfo=source_zone), target_zone)
        return _from_local(local, source_name)

    # Floating time: wall-clock time wherever the reader is
    return _from_local(naive, None)


def resolve_exdates(exdates: Iterable[str], target_tz: str) -> frozenset[str]:
    """Return the calendar days in ``target_tz`` that EXDATE entries exclude.

    Entries are single-value property lines such as
    ``EXDATE;TZID=America/Chicago:20260105T080000`` and are converted with
    ``resolve_start``, so an excluded instance lands on the same local day as
    the occurrence it cancels. Date-only values and bare ``YYYYMMDD`` strings
    are kept as they are.
    """
    days = set()
    for raw in exdates:
        if ":" not in raw:
            days.add(raw.strip()[:8])
            continue
        days.add(resolve_start(raw, target_tz).date)
    return frozenset(days)
