"""Custom exception hierarchy for earlycal.

Fetch, parse and timezone failures each get a specific type so the service
layer can map them onto the uniform "no event" outcome with the right reason
code instead of handling a generic Exception everywhere.
"""

from typing import Optional


class EarlyCalError(Exception):
    """Base exception for all earlycal errors."""


class ICSFetchError(EarlyCalError):
    """Base exception for ICS fetch errors."""


class ICSAuthError(ICSFetchError):
    """Authentication error during ICS fetch (HTTP 401/403)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ICSNetworkError(ICSFetchError):
    """Network error during ICS fetch."""


class ICSTimeoutError(ICSFetchError):
    """Timeout error during ICS fetch."""


class ICSParseError(EarlyCalError):
    """Feed text could not be turned into events.

    Raised when:
    - Feed content is not text
    - Unfolding or block parsing hits unexpected data
    """


class RRuleParseError(EarlyCalError):
    """RRULE string is empty or missing its FREQ part."""


class TimezoneError(EarlyCalError):
    """Timezone identifier could not be resolved to a zoneinfo zone."""
