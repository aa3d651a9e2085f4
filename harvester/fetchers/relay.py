"""
Relay Module

Performs the actual outbound GET, either straight to the target or through
an HTTP relay endpoint that fetches on our behalf.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import httpx


@dataclass
class RelayResponse:
    """Raw response handed back by a relay."""

    status_code: int
    body: str = ""
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Relay(Protocol):
    """Anything that can perform a GET for the fetch client."""

    async def get(
        self,
        url: str,
        headers: Dict[str, str],
        timeout: float,
    ) -> RelayResponse:
        ...


class HttpxRelay:
    """
    httpx-backed relay.

    When relay_url is set the request goes to <relay_url>?url=<address>
    and the relay endpoint performs the real fetch. Redirects are never
    followed here; that is the relay endpoint's business.

    Transport problems surface as httpx exceptions
    (httpx.TimeoutException, httpx.RequestError).

    Example:
        relay = HttpxRelay(relay_url="http://localhost:8000/proxy")
        response = await relay.get("https://example.com", {}, timeout=30.0)
    """

    def __init__(
        self,
        relay_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the relay.

        Args:
            relay_url: Relay endpoint (None = call targets directly)
            transport: Custom httpx transport (used by tests)
        """
        self._relay_url = relay_url
        self._transport = transport

    @property
    def relay_url(self) -> str | None:
        return self._relay_url

    async def get(
        self,
        url: str,
        headers: Dict[str, str],
        timeout: float,
    ) -> RelayResponse:
        """Perform one GET and return the raw response whatever its status."""
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            http2=True,
            transport=self._transport,
        ) as client:
            if self._relay_url:
                response = await client.get(
                    self._relay_url,
                    params={"url": url},
                    headers=headers,
                )
            else:
                response = await client.get(url, headers=headers)

            return RelayResponse(
                status_code=response.status_code,
                body=response.text,
                content_type=response.headers.get("content-type", ""),
            )
