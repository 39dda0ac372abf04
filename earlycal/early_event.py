"""Early-event selection for earlycal.

Answers "is there an event before the cutoff hour on the target day, and when
does the earliest one start?" for a single ICS feed. Every failure along the
way (missing URL, fetch error, parse error) is turned into an empty result
with a reason code; nothing raises to the caller.
"""

import logging
import time
from collections.abc import Iterable
from typing import NamedTuple, Optional

import httpx

from .config import CUTOFF_HOUR, CalendarConfig
from .datetime_utils import format_time_12h, resolve_start
from .exceptions import ICSFetchError
from .fetcher import ICSFetcher
from .ics_parser import parse_vevents
from .models import EarlyEvent, EarlyEventResult, ICSSource, NoEventReason, Occurrence, VEvent
from .rrule_matcher import match_occurrences
from .timezone_utils import get_zone, tomorrow_date_string

logger = logging.getLogger(__name__)


class Candidate(NamedTuple):
    """An occurrence before the cutoff, tagged with its event title."""

    title: str
    occurrence: Occurrence


def collect_candidates(
    events: Iterable[VEvent],
    target_date: str,
    timezone_name: str,
    cutoff_hour: int = CUTOFF_HOUR,
) -> list[Candidate]:
    """Run the matcher over every event and keep occurrences before ``cutoff_hour``."""
    candidates: list[Candidate] = []
    for event in events:
        if event.is_cancelled:
            logger.debug("Skipping cancelled event %r", event.summary)
            continue
        start = resolve_start(event.dtstart_raw, timezone_name)
        for occurrence in match_occurrences(event, start, target_date, timezone_name):
            if occurrence.hour < cutoff_hour:
                candidates.append(Candidate(event.summary, occurrence))
    return candidates


def select_early_event(
    events: Iterable[VEvent],
    target_date: str,
    timezone_name: str,
    cutoff_hour: int = CUTOFF_HOUR,
) -> Optional[EarlyEvent]:
    """Return the earliest occurrence on ``target_date`` starting before ``cutoff_hour``.

    Ties keep feed order (the sort is stable).

    Args:
        events: Parsed VEVENTs
        target_date: Day to evaluate, YYYYMMDD in ``timezone_name``
        timezone_name: IANA identifier of the caller's zone
        cutoff_hour: Exclusive upper bound on the local start hour

    Returns:
        EarlyEvent, or None if nothing qualifies
    """
    candidates = collect_candidates(events, target_date, timezone_name, cutoff_hour)
    if not candidates:
        return None

    candidates.sort(key=lambda c: c.occurrence.minutes_since_midnight)
    first = candidates[0]
    return EarlyEvent(
        title=first.title,
        time=format_time_12h(first.occurrence.hour, first.occurrence.minute),
        hour=first.occurrence.hour,
        minute=first.occurrence.minute,
    )


def evaluate_feed(
    text: str,
    target_date: str,
    timezone_name: str,
    cutoff_hour: int = CUTOFF_HOUR,
) -> EarlyEventResult:
    """Parse ``text`` and select the early event for ``target_date``.

    Any exception during unfolding, parsing or matching becomes a
    ``parse_error`` result carrying the error message.
    """
    try:
        events = parse_vevents(text)
        event = select_early_event(events, target_date, timezone_name, cutoff_hour)
    except Exception as e:
        logger.exception("Failed to evaluate calendar feed for %s", target_date)
        return EarlyEventResult.empty(NoEventReason.PARSE_ERROR, error=str(e))

    if event is None:
        logger.debug("No events before %d:00 on %s (%d parsed)", cutoff_hour, target_date, len(events))
        return EarlyEventResult.empty(NoEventReason.NO_EARLY_EVENTS)

    logger.info("Early event on %s: %r at %s", target_date, event.title, event.time)
    return EarlyEventResult.found(event)


class EarlyEventService:
    """Fetches the configured feed and evaluates it for one target day."""

    def __init__(self, config: CalendarConfig, client: Optional[httpx.AsyncClient] = None):
        """Initialize the service.

        Args:
            config: Feed URL, timezone and HTTP settings
            client: Optional shared httpx client (tests inject a mock transport here)
        """
        self.config = config
        self._client = client

    def _resolve_target_date(self, target_date: Optional[str]) -> str:
        if target_date:
            return target_date
        return tomorrow_date_string(self.config.timezone)

    async def _fetch_feed(self, url: str) -> tuple[Optional[str], Optional[EarlyEventResult]]:
        """Return ``(content, None)`` on success or ``(None, failure_result)``."""
        source = ICSSource(url=url, timeout=self.config.request_timeout)
        try:
            async with ICSFetcher(self.config, client=self._client) as fetcher:
                response = await fetcher.fetch_ics(source)
        except ICSFetchError as e:
            logger.warning("Calendar fetch failed: %s", e)
            status = getattr(e, "status_code", None)
            return None, EarlyEventResult.empty(NoEventReason.FETCH_FAILED, status=status, error=str(e))

        if not response.success or response.content is None:
            logger.warning(
                "Calendar fetch unsuccessful (status=%s): %s",
                response.status_code,
                response.error_message,
            )
            return None, EarlyEventResult.empty(
                NoEventReason.FETCH_FAILED,
                status=response.status_code,
                error=response.error_message,
            )
        return response.content, None

    async def find_early_event(self, target_date: Optional[str] = None) -> EarlyEventResult:
        """Evaluate the configured feed; never raises.

        Args:
            target_date: YYYYMMDD day to check (defaults to tomorrow in the
                configured timezone)

        Returns:
            EarlyEventResult with either ``event`` or ``reason`` set
        """
        start_time = time.perf_counter()

        url = self.config.calendar_ical_url
        if not url:
            logger.debug("No calendar URL configured")
            return EarlyEventResult.empty(NoEventReason.NO_ICAL_URL)

        try:
            get_zone(self.config.timezone)
            day = self._resolve_target_date(target_date)
        except Exception as e:
            logger.exception("Could not determine target date")
            return EarlyEventResult.empty(NoEventReason.PARSE_ERROR, error=str(e))

        try:
            content, failure = await self._fetch_feed(url)
        except Exception as e:
            logger.exception("Unexpected error fetching calendar feed")
            return EarlyEventResult.empty(NoEventReason.FETCH_FAILED, error=str(e))
        if failure is not None:
            return failure

        result = evaluate_feed(content or "", day, self.config.timezone)
        logger.debug("Early event evaluation for %s took %.3fs", day, time.perf_counter() - start_time)
        return result


async def find_early_event(
    config: CalendarConfig,
    target_date: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> EarlyEventResult:
    """Convenience wrapper around EarlyEventService."""
    return await EarlyEventService(config, client=client).find_early_event(target_date)
