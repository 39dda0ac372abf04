"""Data models for ICS feed evaluation - earlycal."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .timezone_utils import now_utc as _now_utc

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


class ICSSource(BaseModel):
    """Configuration for an ICS calendar source."""

    url: str = Field(..., description="ICS calendar URL")
    timeout: float = Field(default=10.0, description="HTTP timeout in seconds")
    custom_headers: dict[str, str] = Field(default_factory=dict, description="Custom HTTP headers")
    validate_ssl: bool = Field(default=True, description="Validate SSL certificates")


class ICSResponse(BaseModel):
    """Response from ICS fetch operation."""

    success: bool
    content: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)
    error_message: Optional[str] = None
    fetch_time: datetime = Field(default_factory=_now_utc)

    @property
    def content_length(self) -> Optional[int]:
        """Get content length of a buffered response."""
        if self.content is None:
            return None
        return len(self.content.encode("utf-8"))


class VEvent(BaseModel):
    """Raw fields of one BEGIN:VEVENT...END:VEVENT block.

    ``dtstart_raw`` and ``dtend_raw`` hold the entire property line including
    parameters (e.g. ``DTSTART;TZID=America/Chicago:20260101T080000``).
    ``exdates`` holds one single-value line per excluded date with the same
    parameters kept (e.g. ``EXDATE;TZID=America/Chicago:20260105T080000``).
    """

    summary: str = ""
    dtstart_raw: str
    dtend_raw: str = ""
    rrule_raw: str = ""
    exdates: frozenset[str] = Field(default_factory=frozenset)
    uid: str = ""
    status: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        return bool(self.rrule_raw)

    @property
    def is_cancelled(self) -> bool:
        return self.status.upper() == "CANCELLED"


class ResolvedStart(BaseModel):
    """Event start normalized into the target timezone."""

    date: str = Field(..., description="Calendar day in target timezone (YYYYMMDD)")
    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    all_day: bool = False
    source_tz: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RecurrenceRule(BaseModel):
    """Parsed RRULE parts.

    Every part is kept as a string in ``raw_parts``; the typed fields are the
    validated conversions of the recognized keys.
    """

    freq: str
    interval: int = 1
    until: Optional[str] = Field(default=None, description="UNTIL date portion (YYYYMMDD)")
    count: Optional[int] = None
    byday: list[str] = Field(default_factory=list)
    wkst: str = "MO"
    raw_parts: dict[str, str] = Field(default_factory=dict)

    @field_validator("interval")
    @classmethod
    def clamp_interval(cls, v: int) -> int:
        """Intervals below 1 are meaningless; treat them as 1."""
        return max(v, 1)


class Occurrence(BaseModel):
    """One occurrence of an event on an already-known target day."""

    hour: int
    minute: int

    @property
    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute


class NoEventReason(str, Enum):
    """Reason codes for the empty outcome."""

    NO_ICAL_URL = "no_ical_url"
    FETCH_FAILED = "fetch_failed"
    NO_EARLY_EVENTS = "no_early_events"
    PARSE_ERROR = "parse_error"


class EarlyEvent(BaseModel):
    """Earliest qualifying occurrence for the target day."""

    title: str
    time: str = Field(..., description='Local start time as "H:MM AM/PM"')
    hour: int
    minute: int


class EarlyEventResult(BaseModel):
    """Uniform outcome of one evaluation request.

    Exactly one of ``event`` / ``reason`` is set. ``status`` and ``error``
    carry diagnostics for failed fetches and parse errors.
    """

    event: Optional[EarlyEvent] = None
    reason: Optional[NoEventReason] = None
    status: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)

    @classmethod
    def found(cls, event: EarlyEvent) -> "EarlyEventResult":
        return cls(event=event)

    @classmethod
    def empty(
        cls,
        reason: NoEventReason,
        status: Optional[int] = None,
        error: Optional[str] = None,
    ) -> "EarlyEventResult":
        return cls(reason=reason, status=status, error=error)

    @property
    def has_event(self) -> bool:
        return self.event is not None

    def to_response(self) -> dict[str, Any]:
        """Render the public JSON shape."""
        if self.event is not None:
            return {"event": self.event.model_dump()}
        response: dict[str, Any] = {"event": None, "reason": self.reason}
        if self.status is not None:
            response["status"] = self.status
        if self.error is not None:
            response["error"] = self.error
        return response
