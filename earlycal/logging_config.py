"""
Central logging configuration for earlycal.

Installs the colorized console handler, applies the configured verbosity and
quiets chatty third-party libraries.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

# Third-party loggers that generate excessive debug output
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
}

# HH:MM:SS  LEVEL   logger.name: message  (only the level is colorized)
CONSOLE_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def _env_debug() -> bool:
    return os.getenv("EARLYCAL_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def _level_from_name(level_name: Optional[str], default: int = logging.INFO) -> int:
    if isinstance(level_name, str):
        candidate = logging.getLevelName(level_name.strip().upper())
        if isinstance(candidate, int):
            return candidate
    return default


def create_console_handler() -> logging.Handler:
    """Build the stderr handler with the colorlog formatter."""
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
    return handler


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level_name: Optional[str] = None,
) -> None:
    """
    Configure logging levels for earlycal.

    Args:
        debug_mode: Whether to enable debug logging for earlycal modules
        force_debug: Override debug mode setting (None to use env var detection)
        level_name: Configured root level name (e.g. ``CalendarConfig.log_level``);
            INFO when omitted or unknown

    Environment Variables:
        EARLYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EARLYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = debug_mode or _env_debug()

    root_level = logging.DEBUG if final_debug else _level_from_name(level_name)
    env_log_level = os.getenv("EARLYCAL_LOG_LEVEL", "").upper()
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none are present to avoid duplicate output
    if not root_logger.handlers:
        root_logger.addHandler(create_console_handler())

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    # earlycal loggers follow the root level unless debugging
    logging.getLogger("earlycal").setLevel(logging.DEBUG if final_debug else logging.NOTSET)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s, earlycal debug=%s",
        logging.getLevelName(root_level),
        final_debug,
    )
