"""RRULE matching for a single target day - earlycal.

Rather than expanding a rule into a list of instances, the matcher answers a
narrower question: does this event occur on one given calendar day, and at
what time? Supported frequencies are DAILY, WEEKLY (with or without BYDAY),
MONTHLY and YEARLY, with INTERVAL, UNTIL, COUNT, WKST and EXDATE.

COUNT handling is approximate on purpose. The ordinal of the target
occurrence is estimated with the same interval arithmetic as the frequency
(``days_diff // INTERVAL + 1`` for DAILY, and so on) and compared against
COUNT. For WEEKLY rules with BYDAY the estimate ignores BYDAY days that fall
before DTSTART in the first week, so it can differ from a strict RFC 5545
expansion near the COUNT boundary. That divergence is accepted behaviour.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from .datetime_utils import resolve_exdates
from .exceptions import RRuleParseError
from .models import WEEKDAY_CODES, Occurrence, RecurrenceRule, ResolvedStart, VEvent

logger = logging.getLogger(__name__)

SUPPORTED_FREQUENCIES = frozenset({"DAILY", "WEEKLY", "MONTHLY", "YEARLY"})


def parse_ics_date(value: str) -> Optional[date]:
    """Parse the YYYYMMDD prefix of ``value``; None when it is not a real date."""
    prefix = value[:8]
    if len(prefix) != 8 or not prefix.isdigit():
        return None
    try:
        return datetime.strptime(prefix, "%Y%m%d").date()
    except ValueError:
        return None


def parse_rrule_string(rrule_string: str) -> RecurrenceRule:
    """Parse RRULE string into components.

    Values are kept as strings and converted with explicit validation;
    invalid INTERVAL falls back to 1, invalid UNTIL/COUNT are dropped.

    Args:
        rrule_string: RRULE value (e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO")

    Returns:
        Parsed RecurrenceRule

    Raises:
        RRuleParseError: If the string is empty or has no FREQ part
    """
    if not rrule_string or not rrule_string.strip():
        raise RRuleParseError("Empty RRULE string")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    parts: dict[str, str] = {}
    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        parts[key.strip().upper()] = value.strip()

    freq = parts.get("FREQ", "").upper()
    if not freq:
        raise RRuleParseError(f"RRULE missing required FREQ parameter: {rrule_string}")

    interval = 1
    raw_interval = parts.get("INTERVAL")
    if raw_interval is not None:
        if raw_interval.isdigit() and int(raw_interval) > 0:
            interval = int(raw_interval)
        else:
            logger.debug("Non-numeric INTERVAL %r, defaulting to 1", raw_interval)

    until: Optional[str] = None
    raw_until = parts.get("UNTIL")
    if raw_until is not None:
        if parse_ics_date(raw_until) is not None:
            until = raw_until[:8]
        else:
            logger.debug("Ignoring invalid UNTIL %r", raw_until)

    count: Optional[int] = None
    raw_count = parts.get("COUNT")
    if raw_count is not None:
        if raw_count.isdigit():
            count = int(raw_count)
        else:
            logger.debug("Ignoring invalid COUNT %r", raw_count)

    byday: list[str] = []
    if "BYDAY" in parts:
        byday = [day.strip().upper() for day in parts["BYDAY"].split(",") if day.strip()]

    wkst = parts.get("WKST", "MO").upper()
    if wkst not in WEEKDAY_CODES:
        wkst = "MO"

    return RecurrenceRule(
        freq=freq,
        interval=interval,
        until=until,
        count=count,
        byday=byday,
        wkst=wkst,
        raw_parts=parts,
    )


class RecurrenceMatcher:
    """Decides whether an event lands on a target day."""

    def __init__(self, rule: RecurrenceRule, start_date: date):
        self.rule = rule
        self.start_date = start_date

    def matches(self, target: date) -> bool:
        """Check frequency, UNTIL and COUNT constraints for ``target``."""
        days_diff = (target - self.start_date).days
        if days_diff < 0:
            return False

        if self.rule.until is not None and target.strftime("%Y%m%d") > self.rule.until:
            return False

        ordinal = self._ordinal(target, days_diff)
        if ordinal is None:
            return False

        if self.rule.count is not None and ordinal > self.rule.count:
            return False

        return True

    def _ordinal(self, target: date, days_diff: int) -> Optional[int]:
        """Return the approximate 1-based occurrence index, or None for no match."""
        freq = self.rule.freq
        interval = self.rule.interval

        if freq == "DAILY":
            if days_diff % interval != 0:
                return None
            return days_diff // interval + 1

        if freq == "WEEKLY":
            if self.rule.byday:
                return self._weekly_byday_ordinal(target)
            if target.weekday() != self.start_date.weekday():
                return None
            if days_diff % (interval * 7) != 0:
                return None
            return days_diff // (interval * 7) + 1

        if freq == "MONTHLY":
            months = (target.year - self.start_date.year) * 12 + (target.month - self.start_date.month)
            if months % interval != 0 or target.day != self.start_date.day:
                return None
            return months // interval + 1

        if freq == "YEARLY":
            years = target.year - self.start_date.year
            if years % interval != 0:
                return None
            if (target.month, target.day) != (self.start_date.month, self.start_date.day):
                return None
            return years // interval + 1

        logger.debug("Unsupported FREQ=%s; no match", freq)
        return None

    def _week_start(self, day: date) -> date:
        wkst_index = WEEKDAY_CODES.index(self.rule.wkst)
        offset = (day.weekday() - wkst_index) % 7
        return day - timedelta(days=offset)

    def _weekly_byday_ordinal(self, target: date) -> Optional[int]:
        # Ordinal-prefixed entries like "1MO" are not supported and are skipped
        selected = [code for code in self.rule.byday if code in WEEKDAY_CODES]
        if not selected:
            return None

        target_code = WEEKDAY_CODES[target.weekday()]
        if target_code not in selected:
            return None

        weeks = (self._week_start(target) - self._week_start(self.start_date)).days // 7
        if weeks % self.rule.interval != 0:
            return None

        wkst_index = WEEKDAY_CODES.index(self.rule.wkst)
        week_order = sorted(
            set(selected), key=lambda code: (WEEKDAY_CODES.index(code) - wkst_index) % 7
        )
        return (weeks // self.rule.interval) * len(week_order) + week_order.index(target_code) + 1


def match_occurrences(
    event: VEvent, start: ResolvedStart, target_date: str, timezone_name: str
) -> list[Occurrence]:
    """Return the zero-or-one occurrence of ``event`` on ``target_date``.

    Args:
        event: Parsed VEVENT
        start: Its start resolved into the target timezone
        target_date: Day to check, as YYYYMMDD in the target timezone
        timezone_name: Target timezone, used to place EXDATE values on local days

    Returns:
        ``[Occurrence]`` when the event lands on the day, else ``[]``
    """
    if event.exdates and target_date in resolve_exdates(event.exdates, timezone_name):
        return []

    occurrence = Occurrence(hour=start.hour, minute=start.minute)

    if not event.rrule_raw:
        return [occurrence] if start.date == target_date else []

    target = parse_ics_date(target_date)
    start_date = parse_ics_date(start.date)
    if target is None or start_date is None:
        logger.debug("Cannot compare dates %r / %r; no match", start.date, target_date)
        return []

    try:
        rule = parse_rrule_string(event.rrule_raw)
    except RRuleParseError as e:
        logger.debug("Skipping event %r: %s", event.summary, e)
        return []

    if rule.freq not in SUPPORTED_FREQUENCIES:
        logger.debug("Unsupported FREQ=%s for %r; no match", rule.freq, event.summary)
        return []

    if RecurrenceMatcher(rule, start_date).matches(target):
        return [occurrence]
    return []
