"""
Request Throttle Module

Implements the "Politeness" delay between consecutive page requests.
Every wait can be cut short by a stop request.
"""

import asyncio
import time
from typing import Optional


async def sleep_unless_set(delay: float, event: Optional[asyncio.Event] = None) -> bool:
    """
    Sleep for delay seconds, waking early if event gets set.

    Args:
        delay: Seconds to wait
        event: Cancellation event (plain sleep if None)

    Returns:
        True if the full delay elapsed, False if the event cut it short
    """
    if event is None:
        if delay > 0:
            await asyncio.sleep(delay)
        return True

    if delay <= 0:
        return not event.is_set()

    try:
        await asyncio.wait_for(event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return True
    return False


class RequestThrottle:
    """
    Enforces a pause between consecutive page requests.

    The pause is measured from the last mark(). The crawl controller marks
    once a page has been fetched and processed, so a slow response never
    eats into the delay before the next request.

    Example:
        throttle = RequestThrottle()
        ...  # fetch and process a page
        throttle.mark()
        if await throttle.wait(1.0, stop_event):
            # Safe to make the next request
            ...
    """

    def __init__(self):
        self._last_request: Optional[float] = None
        self._waits = 0
        self._waited_seconds = 0.0

    def mark(self) -> None:
        """Start the pause clock (after a page has been processed)."""
        self._last_request = time.monotonic()

    def reset(self) -> None:
        """Forget the previous request (start of a new run)."""
        self._last_request = None

    async def wait(
        self,
        delay: float,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """
        Wait until delay seconds have passed since the last request.

        Args:
            delay: Minimum seconds between requests
            cancel_event: Event that aborts the wait when set

        Returns:
            False if the wait was cancelled, True otherwise
        """
        if self._last_request is None:
            remaining = 0.0
        else:
            remaining = delay - (time.monotonic() - self._last_request)
        if remaining <= 0:
            # Still yield so stop() and pause() get a turn between pages
            await asyncio.sleep(0)
            return cancel_event is None or not cancel_event.is_set()

        self._waits += 1
        self._waited_seconds += remaining
        return await sleep_unless_set(remaining, cancel_event)

    def get_stats(self) -> dict:
        """Get throttle statistics."""
        return {
            "waits": self._waits,
            "waited_seconds": round(self._waited_seconds, 3),
            "last_request": self._last_request,
        }
