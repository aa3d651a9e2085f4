"""
Fetch Client Module

Fetches one page through a relay with timeout and exponential-backoff retry.
Failures come back as values, never as exceptions.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from harvester.config import config
from harvester.errors import FetchError, FetchErrorKind
from harvester.fetchers.relay import HttpxRelay, Relay, RelayResponse
from harvester.safety.rate_limiter import sleep_unless_set


logger = logging.getLogger(__name__)

_GATEWAY_REASONS = {
    502: "Bad Gateway",
    504: "Gateway Timeout",
}


@dataclass
class FetchResult:
    """Result of a fetch operation."""

    url: str
    status_code: int = 0
    content: str = ""
    content_type: str = ""
    response_time: float = 0.0
    attempts: int = 0
    error: Optional[FetchError] = None

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return self.error is None and 200 <= self.status_code < 300


class FetchClient:
    """
    Page fetcher with retry policy.

    Features:
    - Caller headers merged over the default User-Agent/Accept headers
    - Per-request timeout
    - Exponential backoff: backoff_base * 2^attempt seconds before each retry
    - Distinct messages for relay gateway, network, timeout and status errors
    - Backoff waits abort when the cancel event is set

    Example:
        client = FetchClient()
        result = await client.fetch("https://example.com", timeout_ms=10000, max_retries=2)
        if result.success:
            print(result.content)
        else:
            print(result.error.message)
    """

    def __init__(
        self,
        relay: Relay | None = None,
        user_agent: str | None = None,
        backoff_base: float | None = None,
    ):
        """
        Initialize the fetch client.

        Args:
            relay: Transport (default: HttpxRelay with the configured relay URL)
            user_agent: Default User-Agent (default from config)
            backoff_base: Seconds for the first retry wait (default from config)
        """
        self._relay = relay or HttpxRelay(relay_url=config.fetch.relay_url)
        self._user_agent = user_agent or config.fetch.user_agent
        self._backoff_base = (
            config.fetch.backoff_base if backoff_base is None else backoff_base
        )

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": config.fetch.accept,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number attempt (counted from 0)."""
        return self._backoff_base * (2 ** attempt)

    async def _wait(self, delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
        return await sleep_unless_set(delay, cancel_event)

    def _status_error(self, url: str, response: RelayResponse) -> FetchError:
        """Build the error for a non-2xx response."""
        status = response.status_code

        if status in _GATEWAY_REASONS:
            detail = _GATEWAY_REASONS[status]
            try:
                payload = json.loads(response.body)
                if isinstance(payload, dict) and payload.get("error"):
                    detail = str(payload["error"])
            except ValueError:
                pass
            return FetchError(
                f"Relay error: {detail}",
                kind=FetchErrorKind.GATEWAY,
                url=url,
                status_code=status,
            )

        return FetchError(
            f"Received status code {status}",
            kind=FetchErrorKind.HTTP_STATUS,
            url=url,
            status_code=status,
        )

    async def fetch(
        self,
        url: str,
        headers: Dict[str, str] | None = None,
        timeout_ms: int = 30000,
        max_retries: int = 3,
        cancel_event: asyncio.Event | None = None,
    ) -> FetchResult:
        """
        Fetch a URL, retrying failed attempts.

        Args:
            url: The URL to fetch
            headers: Headers merged over the defaults
            timeout_ms: Per-attempt timeout in milliseconds
            max_retries: Retries after the first attempt
            cancel_event: Set to abandon pending retries

        Returns:
            FetchResult with the body, or with a FetchError once the
            retry budget is spent
        """
        request_headers = self.default_headers()
        if headers:
            request_headers.update(headers)

        timeout = timeout_ms / 1000
        total_attempts = max_retries + 1
        error: FetchError | None = None
        start_time = time.time()

        for attempt in range(total_attempts):
            if attempt > 0:
                delay = self.backoff_delay(attempt - 1)
                logger.info(f"Retrying {url} in {delay:.1f}s ({attempt}/{max_retries})")
                if not await self._wait(delay, cancel_event):
                    logger.info(f"Fetch of {url} cancelled")
                    return FetchResult(
                        url=url,
                        attempts=attempt,
                        response_time=time.time() - start_time,
                        error=FetchError(
                            "Fetch cancelled",
                            kind=FetchErrorKind.CANCELLED,
                            url=url,
                            attempts=attempt,
                        ),
                    )

            try:
                response = await self._relay.get(url, request_headers, timeout)
            except httpx.TimeoutException:
                error = FetchError(
                    f"Request to {url} timed out after {timeout_ms}ms",
                    kind=FetchErrorKind.TIMEOUT,
                    url=url,
                )
            except httpx.RequestError as e:
                error = FetchError(
                    f"Relay connection failed for {url}: {e}. Make sure the relay is reachable.",
                    kind=FetchErrorKind.NETWORK,
                    url=url,
                )
            else:
                if response.ok:
                    return FetchResult(
                        url=url,
                        status_code=response.status_code,
                        content=response.body,
                        content_type=response.content_type,
                        response_time=time.time() - start_time,
                        attempts=attempt + 1,
                    )
                error = self._status_error(url, response)

            logger.warning(
                f"Attempt {attempt + 1}/{total_attempts} for {url} failed: {error.message}"
            )

        error.attempts = total_attempts
        logger.error(f"Giving up on {url} after {total_attempts} attempts: {error.message}")

        return FetchResult(
            url=url,
            status_code=error.status_code or 0,
            attempts=total_attempts,
            response_time=time.time() - start_time,
            error=error,
        )
