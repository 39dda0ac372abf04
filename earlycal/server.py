"""aiohttp server exposing the early-event check for earlycal."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from aiohttp import web

from . import __version__
from .config import CUTOFF_HOUR, CalendarConfig
from .early_event import EarlyEventService
from .logging_config import configure_logging
from .timezone_utils import now_utc

logger = logging.getLogger(__name__)

_DATE_PARAM_RE = re.compile(r"^\d{8}$")

CONFIG_KEY = web.AppKey("config", CalendarConfig)
SERVICE_KEY = web.AppKey("early_event_service", EarlyEventService)


async def early_event(request: web.Request) -> web.Response:
    """Return the early event for ``?date=YYYYMMDD`` (default: tomorrow)."""
    date_param: Optional[str] = request.query.get("date")
    if date_param is not None and not _DATE_PARAM_RE.match(date_param):
        return web.json_response(
            {"error": True, "message": "date must be YYYYMMDD"}, status=400
        )

    service = request.app[SERVICE_KEY]
    result = await service.find_early_event(date_param)
    logger.debug("/api/early-event date=%s -> %s", date_param, result.reason or "event")
    return web.json_response(result.to_response(), status=200)


async def health_check(request: web.Request) -> web.Response:
    """Liveness endpoint; reports configuration state without fetching."""
    config = request.app[CONFIG_KEY]
    return web.json_response(
        {
            "status": "ok",
            "version": __version__,
            "server_time_iso": now_utc().isoformat(),
            "calendar_configured": bool(config.calendar_ical_url),
            "timezone": config.timezone,
            "cutoff_hour": CUTOFF_HOUR,
        }
    )


def create_app(config: CalendarConfig, service: Optional[EarlyEventService] = None) -> web.Application:
    """Build the aiohttp application.

    Args:
        config: Application configuration
        service: Optional pre-built service (tests inject one with a mock client)
    """
    app = web.Application()
    app[CONFIG_KEY] = config
    app[SERVICE_KEY] = service if service is not None else EarlyEventService(config)
    app.router.add_get("/api/early-event", early_event)
    app.router.add_get("/api/health", health_check)
    return app


def start_server(config: CalendarConfig, port: Optional[int] = None, **run_kwargs: Any) -> None:
    """Run the server until interrupted."""
    configure_logging(level_name=config.log_level)
    effective_port = port or config.server_port
    logger.info("Starting earlycal server on %s:%d", config.server_bind, effective_port)
    web.run_app(
        create_app(config),
        host=config.server_bind,
        port=effective_port,
        print=None,
        **run_kwargs,
    )
