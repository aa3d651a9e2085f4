"""Fetchers module - relay transport and retrying page fetches."""

from .http_fetcher import FetchClient, FetchResult
from .relay import HttpxRelay, Relay, RelayResponse

__all__ = ["FetchClient", "FetchResult", "HttpxRelay", "Relay", "RelayResponse"]
