"""
Page Harvester - plan-driven structured extraction across paginated pages.

This package provides:
- CSS, XPath and regular-expression selectors
- Row structuring of selector results
- Retrying fetches through an optional relay
- Address-pattern and next-link pagination
- A pausable, stoppable crawl controller
- JSON, CSV and SQLite export
"""

from harvester.controller import CrawlController
from harvester.errors import (
    ConfigurationError,
    ExtractionError,
    FetchError,
    HarvesterError,
    PaginationError,
    RunInProgressError,
)
from harvester.models import (
    ExtractionPlan,
    PaginationSpec,
    RateLimitSpec,
    SelectorSpec,
)
from harvester.state import CrawlEvent, EventKind, RunHistory, RunPhase, RunSnapshot

__version__ = "1.0.0"
__author__ = "Scrape_U"

__all__ = [
    "ConfigurationError",
    "CrawlController",
    "CrawlEvent",
    "EventKind",
    "ExtractionError",
    "ExtractionPlan",
    "FetchError",
    "HarvesterError",
    "PaginationError",
    "PaginationSpec",
    "RateLimitSpec",
    "RunHistory",
    "RunInProgressError",
    "RunPhase",
    "RunSnapshot",
    "SelectorSpec",
]
