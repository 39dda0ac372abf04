"""Shared fixtures for earlycal tests."""

from collections.abc import Callable, Generator
from typing import Any

import pytest

_EARLYCAL_ENV_VARS = (
    "EARLYCAL_TEST_TIME",
    "EARLYCAL_ICAL_URL",
    "EARLYCAL_TIMEZONE",
    "EARLYCAL_LOG_LEVEL",
    "EARLYCAL_CONFIG",
    "EARLYCAL_DEBUG",
)


def pytest_configure(config: Any) -> None:
    """Register earlycal markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests spanning fetch, parse and selection")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Clear EARLYCAL_* variables so host settings never leak into tests."""
    for name in _EARLYCAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def test_timezone() -> str:
    """Deterministic target timezone (UTC-6 in February)."""
    return "America/Chicago"


def build_feed(*event_bodies: str) -> str:
    """Wrap VEVENT bodies (property lines without BEGIN/END) in a VCALENDAR with CRLF endings."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//earlycal//tests//EN"]
    for body in event_bodies:
        lines.append("BEGIN:VEVENT")
        lines.extend(line.strip() for line in body.strip().splitlines() if line.strip())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def make_feed() -> Callable[..., str]:
    return build_feed


@pytest.fixture
def flight_and_standup_feed() -> str:
    """Non-recurring UTC flight plus a weekly Tuesday standup in Chicago time."""
    return build_feed(
        """
        UID:flight-1
        SUMMARY:Flight
        DTSTART:20260225T063000Z
        DTEND:20260225T090000Z
        """,
        """
        UID:standup-1
        SUMMARY:Standup
        DTSTART;TZID=America/Chicago:20260101T080000
        DTEND;TZID=America/Chicago:20260101T081500
        RRULE:FREQ=WEEKLY;BYDAY=TU
        """,
    )
