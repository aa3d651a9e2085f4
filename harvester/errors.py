"""
Errors Module

Exception taxonomy for the extraction engine.
Only configuration errors and exhausted fetch errors end a run; the rest are
absorbed with degraded output.
"""

from enum import Enum
from typing import Optional


class HarvesterError(Exception):
    """Base class for all harvester errors."""


class ConfigurationError(HarvesterError):
    """The extraction plan cannot be run (empty address, no selectors, bad kind)."""


class RunInProgressError(HarvesterError):
    """A run was started while another run is still active on the controller."""


class ExtractionError(HarvesterError):
    """A selector could not be evaluated against a page."""

    def __init__(self, selector_name: str, message: str):
        self.selector_name = selector_name
        super().__init__(f"Selector '{selector_name}' failed: {message}")


class PaginationError(HarvesterError):
    """The next page address could not be resolved."""


class FetchErrorKind(Enum):
    """Category of a fetch failure."""
    GATEWAY = "gateway"          # 502/504 from the relay
    NETWORK = "network"          # relay or host unreachable
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"  # any other non-2xx status
    CANCELLED = "cancelled"      # stop requested during backoff


class FetchError(HarvesterError):
    """
    Terminal failure of a fetch after the retry budget is spent.

    The fetch client returns this instead of raising it, so the
    controller can decide how to handle the page.
    """

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind = FetchErrorKind.HTTP_STATUS,
        url: str = "",
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.url = url
        self.status_code = status_code
        self.attempts = attempts

    @property
    def is_cancelled(self) -> bool:
        return self.kind is FetchErrorKind.CANCELLED
