"""Unit tests for earlycal.timezone_utils."""

from datetime import datetime, timezone

import pytest

from earlycal.exceptions import TimezoneError
from earlycal.timezone_utils import (
    get_zone,
    is_utc_tzid,
    normalize_tzid,
    now_utc,
    tomorrow_date_string,
    validate_timezone,
    windows_tz_to_iana,
)

pytestmark = pytest.mark.unit


def test_get_zone_when_known_then_zoneinfo() -> None:
    assert str(get_zone("America/Chicago")) == "America/Chicago"


def test_get_zone_when_unknown_then_timezone_error() -> None:
    with pytest.raises(TimezoneError):
        get_zone("Atlantis/Capital")


def test_get_zone_when_empty_then_timezone_error() -> None:
    with pytest.raises(TimezoneError):
        get_zone("")


@pytest.mark.parametrize(
    "tzid,expected",
    [
        ('"America/Chicago"', "America/Chicago"),
        ("Central Standard Time", "America/Chicago"),
        ("Etc/UTC", "UTC"),
        ("Europe/Rome", "Europe/Rome"),
    ],
)
def test_normalize_tzid(tzid: str, expected: str) -> None:
    assert normalize_tzid(tzid) == expected


def test_is_utc_tzid() -> None:
    assert is_utc_tzid("GMT") is True
    assert is_utc_tzid("Europe/London") is False


def test_windows_tz_to_iana() -> None:
    assert windows_tz_to_iana("Mountain Standard Time") == "America/Denver"
    assert windows_tz_to_iana("Nowhere Standard Time") is None


def test_validate_timezone_when_none_then_default() -> None:
    assert validate_timezone(None) == "America/Chicago"
    assert validate_timezone("bogus/zone", default="UTC") == "UTC"


def test_now_utc_when_test_time_set_then_override_used(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EARLYCAL_TEST_TIME", "2026-02-24T20:00:00-06:00")
    assert now_utc() == datetime(2026, 2, 25, 2, 0, tzinfo=timezone.utc)


def test_now_utc_when_test_time_naive_then_taken_as_utc(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EARLYCAL_TEST_TIME", "2026-02-24T20:00:00")
    assert now_utc() == datetime(2026, 2, 24, 20, 0, tzinfo=timezone.utc)


def test_now_utc_when_test_time_invalid_then_real_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EARLYCAL_TEST_TIME", "not a time")
    assert now_utc().tzinfo is not None


class TestTomorrowDateString:
    def test_tomorrow_uses_local_calendar_day(self) -> None:
        """02:00Z on the 25th is still the evening of the 24th in Chicago."""
        now = datetime(2026, 2, 25, 2, 0, tzinfo=timezone.utc)
        assert tomorrow_date_string("America/Chicago", now) == "20260225"
        assert tomorrow_date_string("Europe/London", now) == "20260226"

    def test_tomorrow_crosses_month_end(self) -> None:
        now = datetime(2026, 2, 28, 18, 0, tzinfo=timezone.utc)
        assert tomorrow_date_string("America/Chicago", now) == "20260301"

    def test_tomorrow_defaults_to_now_utc(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EARLYCAL_TEST_TIME", "2026-12-31T12:00:00Z")
        assert tomorrow_date_string("America/Chicago") == "20270101"
