"""Unit tests for the earlycal command line."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

import pytest

import earlycal.__main__ as cli
from earlycal.config import CalendarConfig
from earlycal.models import EarlyEvent, EarlyEventResult, NoEventReason

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a stray ./earlycal.yaml out of the CLI's config lookup."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def restore_logging_levels() -> Iterator[None]:
    """The CLI configures process-wide logging; put the levels back afterwards."""
    root = logging.getLogger()
    package = logging.getLogger("earlycal")
    saved = (root.level, package.level)
    yield
    root.setLevel(saved[0])
    package.setLevel(saved[1])


@pytest.fixture
def recorded_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def fake_find_early_event(config: CalendarConfig, target_date: Optional[str] = None) -> EarlyEventResult:
        calls.append({"config": config, "target_date": target_date})
        if not config.calendar_ical_url:
            return EarlyEventResult.empty(NoEventReason.NO_ICAL_URL)
        return EarlyEventResult.found(EarlyEvent(title="Flight", time="12:30 AM", hour=0, minute=30))

    monkeypatch.setattr(cli, "find_early_event", fake_find_early_event)
    return calls


def test_main_when_url_and_date_then_prints_event_json(
    recorded_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli.main(["--url", "https://calendar.example.com/feed.ics", "--date", "20260225"])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {
        "event": {"title": "Flight", "time": "12:30 AM", "hour": 0, "minute": 30}
    }
    assert recorded_calls[0]["target_date"] == "20260225"
    assert recorded_calls[0]["config"].calendar_ical_url == "https://calendar.example.com/feed.ics"


def test_main_when_no_url_then_reason_printed(
    recorded_calls: list[dict[str, Any]], capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main([]) == 0
    assert json.loads(capsys.readouterr().out) == {"event": None, "reason": "no_ical_url"}
    assert recorded_calls[0]["target_date"] is None


def test_main_when_timezone_flag_then_config_overridden(recorded_calls: list[dict[str, Any]]) -> None:
    cli.main(["--timezone", "Europe/London", "--debug"])

    config = recorded_calls[0]["config"]
    assert config.timezone == "Europe/London"
    assert config.log_level == "DEBUG"


def test_main_when_config_file_then_loaded(tmp_path: Path, recorded_calls: list[dict[str, Any]]) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("calendarIcalUrl: https://calendar.example.com/yaml.ics\n", encoding="utf-8")

    cli.main(["--config", str(path)])

    assert recorded_calls[0]["config"].calendar_ical_url == "https://calendar.example.com/yaml.ics"


def test_main_when_config_log_level_then_root_level_applied(
    tmp_path: Path, recorded_calls: list[dict[str, Any]]
) -> None:
    path = tmp_path / "quiet.yaml"
    path.write_text("log_level: WARNING\n", encoding="utf-8")

    cli.main(["--config", str(path)])

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("earlycal").getEffectiveLevel() == logging.WARNING


def test_main_when_debug_flag_then_root_level_debug(recorded_calls: list[dict[str, Any]]) -> None:
    cli.main(["--debug"])
    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.parametrize("bad_date", ["2026-02-25", "tomorrow", "202602250"])
def test_main_when_date_malformed_then_exits_with_usage_error(
    bad_date: str, recorded_calls: list[dict[str, Any]]
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--date", bad_date])

    assert exc_info.value.code == 2
    assert recorded_calls == []


def test_main_when_serve_then_server_started(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[tuple[CalendarConfig, Optional[int]]] = []
    monkeypatch.setattr(cli, "run_server", lambda config, port=None: started.append((config, port)))

    assert cli.main(["--serve", "--port", "3000"]) == 0
    assert started[0][1] == 3000
