"""Line unfolding and VEVENT block extraction for ICS feeds.

The parser is forgiving: malformed or unrecognized lines are
skipped, and a feed without a usable VEVENT block yields an empty list. It
never raises for bad input text.
"""

import logging
import re
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Optional

from .exceptions import ICSParseError
from .models import VEvent

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

BEGIN_VEVENT = "BEGIN:VEVENT"
END_VEVENT = "END:VEVENT"


def unfold_lines(text: str) -> list[str]:
    """Normalize line endings and merge RFC 5545 continuation lines.

    A line whose first character is a space or tab is appended, minus that
    character, to the previous logical line. A continuation with no previous
    line starts a logical line of its own.

    Args:
        text: Raw feed text with any mix of CRLF, CR and LF endings

    Returns:
        Ordered logical lines (empty for an empty feed)
    """
    if not text:
        return []

    logical: list[str] = []
    for line in _LINE_BREAK_RE.split(text):
        if line.startswith((" ", "\t")) and logical:
            logical[-1] += line[1:]
        else:
            logical.append(line)

    # A trailing line break produces one empty tail entry
    if logical and logical[-1] == "":
        logical.pop()
    return logical


class _ParserState(Enum):
    OUTSIDE_BLOCK = "outside"
    INSIDE_BLOCK = "inside"


class _EventAccumulator:
    """Mutable field collector for the block currently being read."""

    __slots__ = ("summary", "dtstart", "dtend", "rrule", "exdates", "uid", "status")

    def __init__(self) -> None:
        self.summary = ""
        self.dtstart = ""
        self.dtend = ""
        self.rrule = ""
        self.exdates: set[str] = set()
        self.uid = ""
        self.status = ""

    def to_event(self) -> VEvent:
        return VEvent(
            summary=self.summary,
            dtstart_raw=self.dtstart,
            dtend_raw=self.dtend,
            rrule_raw=self.rrule,
            exdates=frozenset(self.exdates),
            uid=self.uid,
            status=self.status,
        )


def _property_name(line: str) -> str:
    """Return the upper-cased property name (text before the first ';' or ':')."""
    end = len(line)
    for sep in (";", ":"):
        idx = line.find(sep)
        if idx != -1:
            end = min(end, idx)
    return line[:end].strip().upper()


def _value_after_first_colon(line: str) -> str:
    _, _, value = line.partition(":")
    return value


def parse_exdate_tokens(line: str) -> list[str]:
    """Split an EXDATE line into one single-value property line per date.

    Parameters are kept on every entry, so
    ``EXDATE;TZID=America/Chicago:20260105T080000,20260107T080000`` becomes
    ``EXDATE;TZID=America/Chicago:20260105T080000`` and
    ``EXDATE;TZID=America/Chicago:20260107T080000``. Each entry can then be
    resolved into the target timezone exactly like a DTSTART line.
    """
    if ":" not in line:
        return []
    head, values = line.rsplit(":", 1)
    tokens = []
    for raw in values.split(","):
        token = raw.strip()
        if len(token) >= 8 and token[:8].isdigit():
            tokens.append(f"{head.strip()}:{token}")
        elif token:
            logger.debug("Ignoring malformed EXDATE value %r", token)
    return tokens


class ICSEventParser:
    """Two-state machine (outside-block / inside-block) over unfolded lines."""

    def __init__(self) -> None:
        self._state = _ParserState.OUTSIDE_BLOCK
        self._current: Optional[_EventAccumulator] = None
        self.discarded_count = 0

    def parse(self, lines: Iterable[str]) -> list[VEvent]:
        """Parse logical lines into VEvent records.

        Args:
            lines: Unfolded lines in feed order

        Returns:
            One VEvent per closed block that carried a DTSTART
        """
        return list(self.iter_events(lines))

    def iter_events(self, lines: Iterable[str]) -> Iterator[VEvent]:
        self._state = _ParserState.OUTSIDE_BLOCK
        self._current = None
        for line in lines:
            event = self._feed_line(line)
            if event is not None:
                yield event

        if self._state is _ParserState.INSIDE_BLOCK:
            logger.debug("Feed ended inside an unterminated VEVENT block; discarding it")
            self.discarded_count += 1
            self._state = _ParserState.OUTSIDE_BLOCK
            self._current = None

    def _feed_line(self, line: str) -> Optional[VEvent]:
        content = line.strip()

        if self._state is _ParserState.OUTSIDE_BLOCK:
            if content == BEGIN_VEVENT:
                self._state = _ParserState.INSIDE_BLOCK
                self._current = _EventAccumulator()
            return None

        # Inside a block; nested BEGIN:VEVENT is ignored
        if content == BEGIN_VEVENT:
            logger.debug("Ignoring nested BEGIN:VEVENT")
            return None

        current = self._current
        if current is None:
            raise ICSParseError("Parser inside VEVENT block without an accumulator")

        if content == END_VEVENT:
            self._state = _ParserState.OUTSIDE_BLOCK
            self._current = None
            if not current.dtstart:
                self.discarded_count += 1
                logger.debug("Discarding VEVENT without DTSTART (summary=%r)", current.summary)
                return None
            return current.to_event()

        self._collect_property(current, content)
        return None

    def _collect_property(self, current: _EventAccumulator, line: str) -> None:
        name = _property_name(line)

        if name == "SUMMARY" and line.upper().startswith("SUMMARY:"):
            current.summary = line[len("SUMMARY:"):]
        elif name == "DTSTART":
            current.dtstart = line
        elif name == "DTEND":
            current.dtend = line
        elif name == "RRULE" and line.upper().startswith("RRULE:"):
            current.rrule = line[len("RRULE:"):].strip()
        elif name == "EXDATE":
            current.exdates.update(parse_exdate_tokens(line))
        elif name == "UID":
            current.uid = _value_after_first_colon(line).strip()
        elif name == "STATUS":
            current.status = _value_after_first_colon(line).strip().upper()


def parse_vevents(text: str) -> list[VEvent]:
    """Unfold ``text`` and return its VEVENT records.

    Raises:
        ICSParseError: If ``text`` is not a string
    """
    if not isinstance(text, str):
        raise ICSParseError(f"Feed content must be text, got {type(text).__name__}")

    lines = unfold_lines(text)
    parser = ICSEventParser()
    events = parser.parse(lines)
    logger.debug(
        "Parsed %d VEVENT(s) from %d line(s), discarded %d",
        len(events),
        len(lines),
        parser.discarded_count,
    )
    return events
