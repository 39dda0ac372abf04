"""earlycal.config

Configuration for earlycal.

- `CalendarConfig` is a typed dataclass passed explicitly into the service.
- `from_dict()` accepts the settings-store spelling (`calendarIcalUrl`) as well
  as snake_case keys, coercing and validating values with warnings.
- `load_config()` reads YAML and applies EARLYCAL_* environment overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yaml

from .timezone_utils import DEFAULT_TIMEZONE, validate_timezone

logger = logging.getLogger(__name__)

# Local hour before which an occurrence counts as early (exclusive)
CUTOFF_HOUR = 9

CONFIG_PATH_ENV = "EARLYCAL_CONFIG"
DEFAULT_CONFIG_FILENAME = "earlycal.yaml"

_ENV_OVERRIDES = {
    "EARLYCAL_ICAL_URL": "calendar_ical_url",
    "EARLYCAL_TIMEZONE": "timezone",
    "EARLYCAL_LOG_LEVEL": "log_level",
}


class SettingsStore(Protocol):
    """Key/value settings store owned by the surrounding application."""

    def get(self, key: str) -> Any: ...


@dataclass(frozen=True)
class CalendarConfig:
    """Typed configuration for earlycal.

    Fields:
        calendar_ical_url: feed URL; None means "not configured"
        timezone: IANA identifier the target day is expressed in
        request_timeout: HTTP timeout for the feed fetch, seconds
        max_retries: retries for timeouts/network errors
        retry_backoff_factor: base of the exponential retry backoff
        server_bind: host for the HTTP server
        server_port: port for the HTTP server
        log_level: logging level name
    """

    calendar_ical_url: str | None = None
    timezone: str = DEFAULT_TIMEZONE
    request_timeout: float = 10.0
    max_retries: int = 2
    retry_backoff_factor: float = 1.5
    server_bind: str = "127.0.0.1"
    server_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CalendarConfig:
        """Create CalendarConfig from a plain mapping, applying defaults and validation."""
        if data is None:
            data = {}

        url_raw = data.get("calendarIcalUrl", data.get("calendar_ical_url"))
        url = str(url_raw).strip() if url_raw is not None else None

        def _coerce(key: str, default: Any, kind: type) -> Any:
            raw = data.get(key, default)
            try:
                return kind(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a valid %s; using default %r", key, raw, kind.__name__, default)
                return default

        request_timeout = _coerce("request_timeout", 10.0, float)
        if request_timeout <= 0:
            logger.warning("request_timeout %r must be positive; using 10.0", request_timeout)
            request_timeout = 10.0

        max_retries = max(_coerce("max_retries", 2, int), 0)

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            calendar_ical_url=url or None,
            timezone=validate_timezone(data.get("timezone")),
            request_timeout=request_timeout,
            max_retries=max_retries,
            retry_backoff_factor=_coerce("retry_backoff_factor", 1.5, float),
            server_bind=str(data.get("server_bind") or "127.0.0.1"),
            server_port=_coerce("server_port", 8080, int),
            log_level=log_level,
        )

    @classmethod
    def from_settings_store(cls, store: SettingsStore, **overrides: Any) -> CalendarConfig:
        """Build a config from the application's settings store.

        Only ``calendarIcalUrl`` and ``timezone`` are read; the store is never written.
        """
        data: dict[str, Any] = {
            "calendarIcalUrl": store.get("calendarIcalUrl"),
            "timezone": store.get("timezone"),
        }
        data.update(overrides)
        return cls.from_dict(data)


def _load_yaml(path: Path) -> dict[str, Any]:
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(loaded).__name__}")
    return loaded


def load_config(path: str | None = None) -> CalendarConfig:
    """Load configuration from YAML and environment variables.

    Args:
        path: Optional config file path. Defaults to $EARLYCAL_CONFIG, then
            ./earlycal.yaml. A missing file is not an error.

    Returns:
        CalendarConfig
    """
    candidate = path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_FILENAME
    config_path = Path(candidate)

    data: dict[str, Any] = {}
    if config_path.is_file():
        data = _load_yaml(config_path)
        logger.debug("Loaded config from %s", config_path)
    elif path is not None:
        logger.warning("Config file %s not found; using defaults", config_path)

    for env_key, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if not value:
            continue
        if field_name == "calendar_ical_url":
            # from_dict prefers the settings-store spelling
            data.pop("calendarIcalUrl", None)
        data[field_name] = value

    return CalendarConfig.from_dict(data)
