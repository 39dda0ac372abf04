"""earlycal - finds the earliest calendar event before the morning cutoff.

Given an ICS feed URL and a timezone, earlycal reports whether tomorrow holds
an event starting before 9 AM local time, and when the earliest one starts.
"""

__version__ = "0.1.0"

from typing import Optional

from .config import CUTOFF_HOUR, CalendarConfig, load_config
from .early_event import EarlyEventService, evaluate_feed, find_early_event
from .models import EarlyEvent, EarlyEventResult, NoEventReason

__all__ = [
    "CUTOFF_HOUR",
    "CalendarConfig",
    "EarlyEvent",
    "EarlyEventResult",
    "EarlyEventService",
    "NoEventReason",
    "evaluate_feed",
    "find_early_event",
    "load_config",
    "run_server",
]


def run_server(config: Optional[CalendarConfig] = None, port: Optional[int] = None) -> None:
    """Start the earlycal HTTP server (blocking).

    Logging is configured from ``config.log_level`` before the server starts.

    Args:
        config: Configuration; loaded from file/environment when omitted
        port: Optional port override
    """
    from .server import start_server

    cfg = config if config is not None else load_config()
    start_server(cfg, port=port)
