"""HTTP client for downloading ICS calendar feeds - earlycal."""

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .exceptions import ICSAuthError, ICSFetchError, ICSNetworkError, ICSTimeoutError
from .models import ICSResponse, ICSSource

logger = logging.getLogger(__name__)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 10.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

DEFAULT_BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; earlycal/0.1; +calendar-feed-reader)",
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class ICSFetcher:
    """Async HTTP client for downloading ICS feeds."""

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize ICS fetcher.

        Args:
            settings: Object exposing request_timeout, max_retries and
                retry_backoff_factor (missing attributes fall back to defaults)
            client: Optional externally owned client; never closed here
        """
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None
        self._client_verify = True

        logger.debug("ICS fetcher initialized (external_client: %s)", not self._owns_client)

    async def __aenter__(self) -> "ICSFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed HTTP client")
            self.client = None

    async def _ensure_client(self, verify: bool = True) -> httpx.AsyncClient:
        """Return the HTTP client, creating an owned one when needed.

        An injected client is returned as-is, with its own TLS settings. An
        owned client built with a different ``verify`` setting is replaced.
        """
        if self.client is not None and not self.client.is_closed:
            if not self._owns_client or self._client_verify == verify:
                return self.client
            await self.client.aclose()
            self.client = None

        request_timeout = float(getattr(self.settings, "request_timeout", 10.0))
        timeout = httpx.Timeout(connect=min(request_timeout, 10.0), read=request_timeout, write=10.0, pool=10.0)
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=DEFAULT_BROWSER_HEADERS,
            verify=verify,
        )
        self._owns_client = True
        self._client_verify = verify
        return self.client

    def _validate_url(self, url: str) -> bool:
        """Allow only HTTP(S) URLs with a hostname."""
        try:
            parsed = urlparse(url)
        except ValueError as e:
            logger.debug("URL validation error for %s: %s", url, e)
            return False

        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False
        return True

    async def fetch_ics(self, source: ICSSource) -> ICSResponse:
        """Download ICS content from ``source``.

        HTTP status errors come back as an unsuccessful ICSResponse carrying
        the status code. Transport failures raise.

        Args:
            source: ICS source configuration

        Returns:
            ICSResponse with ``content`` set on success

        Raises:
            ICSAuthError: HTTP 401/403
            ICSTimeoutError: Request timed out after all retries, or the whole
                fetch exceeded ``source.timeout``
            ICSNetworkError: Connection-level failure after all retries
            ICSFetchError: Any other unexpected failure
        """
        if not self._validate_url(source.url):
            logger.error("Refusing to fetch invalid calendar URL: %s", source.url)
            return ICSResponse(success=False, error_message="Invalid calendar URL", status_code=400)

        client = await self._ensure_client(verify=source.validate_ssl)
        headers = {**DEFAULT_BROWSER_HEADERS, **source.custom_headers}

        try:
            logger.debug("Fetching ICS from %s", source.url)
            # source.timeout bounds the whole fetch, retries and backoff included
            response = await asyncio.wait_for(
                self._make_request_with_retry(client, source.url, headers, source.timeout),
                timeout=source.timeout,
            )
            return self._create_response(response)

        except TimeoutError as e:
            logger.warning("Fetching ICS from %s exceeded %.1fs", source.url, source.timeout)
            raise ICSTimeoutError(f"Request timeout after {source.timeout}s") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("HTTP error fetching ICS from %s: %s", source.url, status)
            if status in (401, 403):
                raise ICSAuthError(f"Access denied by calendar host (HTTP {status})", status) from e
            return ICSResponse(
                success=False,
                status_code=status,
                error_message=f"HTTP {status}: {e.response.reason_phrase}",
                headers=dict(e.response.headers),
            )

        except httpx.TimeoutException as e:
            logger.exception("Timeout fetching ICS from %s", source.url)
            raise ICSTimeoutError(f"Request timeout after {source.timeout}s") from e

        except httpx.NetworkError as e:
            logger.exception("Network error fetching ICS from %s", source.url)
            raise ICSNetworkError(f"Network error: {e}") from e

        except httpx.HTTPError as e:
            logger.exception("Unexpected HTTP failure fetching ICS from %s", source.url)
            raise ICSFetchError(f"Unexpected error: {e}") from e

    def _calculate_backoff(self, attempt: int, backoff_factor: float) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
        return base_backoff + jitter

    async def _make_request_with_retry(
        self, client: httpx.AsyncClient, url: str, headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        """GET ``url``, retrying timeouts and network errors only."""
        max_retries = int(getattr(self.settings, "max_retries", 2))
        backoff_factor = float(getattr(self.settings, "retry_backoff_factor", 1.5))

        attempt = 0
        while True:
            try:
                response = await client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
                response.raise_for_status()
                logger.debug(
                    "Fetched ICS from %s (attempt %d) - %d bytes",
                    url,
                    attempt + 1,
                    len(response.content),
                )
                return response

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= max_retries:
                    logger.warning("All %d attempt(s) failed for %s", attempt + 1, url)
                    raise
                backoff_time = self._calculate_backoff(attempt, backoff_factor)
                logger.warning(
                    "Request failed (attempt %s/%s), retrying in %.1fs: %s",
                    attempt + 1,
                    max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

    def _create_response(self, http_response: httpx.Response) -> ICSResponse:
        headers = dict(http_response.headers)
        content = http_response.text
        content_type = headers.get("content-type", "").lower()

        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type: %s", content_type)

        if not content or not content.strip():
            logger.error("Empty ICS content received")
            return ICSResponse(
                success=False,
                status_code=http_response.status_code,
                error_message="Empty content received",
                headers=headers,
            )

        if "BEGIN:VCALENDAR" not in content:
            logger.warning("Content does not appear to be valid ICS format")

        return ICSResponse(
            success=True,
            content=content,
            status_code=http_response.status_code,
            headers=headers,
        )
