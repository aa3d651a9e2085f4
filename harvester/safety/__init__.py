"""Safety module - politeness delays between requests."""

from .rate_limiter import RequestThrottle, sleep_unless_set

__all__ = ["RequestThrottle", "sleep_unless_set"]
