"""Integration tests for the aiohttp API."""

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from earlycal import __version__
from earlycal.config import CalendarConfig
from earlycal.early_event import EarlyEventService
from earlycal.server import create_app

pytestmark = pytest.mark.integration

FEED_URL = "https://calendar.example.com/feed.ics"


@pytest.fixture
def config() -> CalendarConfig:
    return CalendarConfig(calendar_ical_url=FEED_URL, timezone="America/Chicago", max_retries=0)


class TestEarlyEventRoute:
    async def test_get_early_event_when_date_given_then_event_json(
        self, config: CalendarConfig, flight_and_standup_feed: str
    ) -> None:
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=flight_and_standup_feed))
        ) as http_client:
            app = create_app(config, service=EarlyEventService(config, client=http_client))
            async with TestClient(TestServer(app)) as client:
                resp = await client.get("/api/early-event", params={"date": "20260225"})
                body = await resp.json()

        assert resp.status == 200
        assert body == {"event": {"title": "Flight", "time": "12:30 AM", "hour": 0, "minute": 30}}

    async def test_get_early_event_when_fetch_fails_then_200_with_reason(self, config: CalendarConfig) -> None:
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(502))
        ) as http_client:
            app = create_app(config, service=EarlyEventService(config, client=http_client))
            async with TestClient(TestServer(app)) as client:
                resp = await client.get("/api/early-event", params={"date": "20260225"})
                body = await resp.json()

        assert resp.status == 200
        assert body["event"] is None
        assert body["reason"] == "fetch_failed"
        assert body["status"] == 502

    async def test_get_early_event_when_unconfigured_then_no_ical_url(self) -> None:
        app = create_app(CalendarConfig())
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/early-event")
            body = await resp.json()

        assert resp.status == 200
        assert body == {"event": None, "reason": "no_ical_url"}

    @pytest.mark.parametrize("date_param", ["2026-02-25", "tomorrow", "2026022"])
    async def test_get_early_event_when_date_malformed_then_400(
        self, config: CalendarConfig, date_param: str
    ) -> None:
        app = create_app(config)
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/early-event", params={"date": date_param})
            body = await resp.json()

        assert resp.status == 400
        assert body["error"] is True


class TestHealthRoute:
    async def test_health_reports_configuration(self, config: CalendarConfig) -> None:
        app = create_app(config)
        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/api/health")
            body = await resp.json()

        assert resp.status == 200
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["calendar_configured"] is True
        assert body["timezone"] == "America/Chicago"
        assert body["cutoff_hour"] == 9
