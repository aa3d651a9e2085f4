"""
Extraction Plan Models

Immutable per-run input: what to fetch, what to extract and how politely.
Plans are frozen pydantic models, built once before a run starts.
"""

import uuid
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from harvester.errors import ConfigurationError


# A record cell: one string, a list of strings (multi-valued pattern match)
# or None when the selector produced nothing for this row.
RecordValue = Union[str, List[str], None]
Record = Dict[str, RecordValue]


class SelectorKind(Enum):
    """Query language of a selector."""
    STRUCTURAL = "structural"  # CSS selector
    XPATH = "xpath"
    PATTERN = "pattern"        # regular expression over the raw body


class PaginationMode(Enum):
    """How the next page address is found."""
    ADDRESS_PATTERN = "address-pattern"
    NEXT_CONTROL = "next-control"
    INFINITE_SCROLL = "infinite-scroll"


# Spellings used by older plan files
_KIND_ALIASES = {
    "css": SelectorKind.STRUCTURAL,
    "regex": SelectorKind.PATTERN,
}

_MODE_ALIASES = {
    "url": PaginationMode.ADDRESS_PATTERN,
    "button": PaginationMode.NEXT_CONTROL,
    "infinite": PaginationMode.INFINITE_SCROLL,
}


def _new_id() -> str:
    return uuid.uuid4().hex


class SelectorSpec(BaseModel):
    """
    One named selector of an extraction plan.

    Attributes:
        name: Column name the extracted values are stored under
        kind: Query language (structural, xpath or pattern)
        expression: The selector or pattern text
        attribute: "text", "html" or an attribute name (structural kinds only)
        multiple: Extract every match instead of only the first
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    kind: SelectorKind = SelectorKind.STRUCTURAL
    expression: str
    attribute: Optional[str] = None
    multiple: bool = False

    @field_validator("kind", mode="before")
    @classmethod
    def _resolve_kind(cls, value: Any) -> SelectorKind:
        if isinstance(value, SelectorKind):
            return value
        key = str(value).strip().lower()
        if key in _KIND_ALIASES:
            return _KIND_ALIASES[key]
        try:
            return SelectorKind(key)
        except ValueError:
            raise ConfigurationError(f"Unknown selector kind: {value!r}") from None

    @property
    def target(self) -> str:
        """What to read from a matched node."""
        return self.attribute or "text"


class PaginationSpec(BaseModel):
    """Pagination settings. max_pages of None or 0 means unbounded."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    mode: PaginationMode = PaginationMode.NEXT_CONTROL
    expression: Optional[str] = None
    max_pages: Optional[int] = Field(default=None, ge=0)

    @field_validator("mode", mode="before")
    @classmethod
    def _resolve_mode(cls, value: Any) -> PaginationMode:
        if isinstance(value, PaginationMode):
            return value
        key = str(value).strip().lower()
        if key in _MODE_ALIASES:
            return _MODE_ALIASES[key]
        try:
            return PaginationMode(key)
        except ValueError:
            raise ConfigurationError(f"Unknown pagination mode: {value!r}") from None

    @property
    def page_limit(self) -> Optional[int]:
        return self.max_pages or None


class RateLimitSpec(BaseModel):
    """
    Politeness settings for a run.

    concurrent_requests is accepted for compatibility with existing plans
    but pages are always fetched one at a time.
    """

    model_config = ConfigDict(frozen=True)

    request_delay_ms: int = Field(default=1000, ge=0)
    concurrent_requests: int = Field(default=1, ge=1)
    timeout_ms: int = Field(default=30000, gt=0)
    retries: int = Field(default=3, ge=0)

    @property
    def request_delay(self) -> float:
        """Delay between pages in seconds."""
        return self.request_delay_ms / 1000

    @property
    def timeout(self) -> float:
        """Request timeout in seconds."""
        return self.timeout_ms / 1000


class ExtractionPlan(BaseModel):
    """
    Everything a run needs.

    Example:
        plan = ExtractionPlan(
            address="https://books.toscrape.com/catalogue/page-1.html",
            selectors=[SelectorSpec(name="title", expression="h3 a", attribute="title", multiple=True)],
            pagination=PaginationSpec(
                enabled=True,
                mode="address-pattern",
                expression="https://books.toscrape.com/catalogue/page-{page}.html",
                max_pages=3,
            ),
        )
    """

    model_config = ConfigDict(frozen=True)

    address: str = ""
    selectors: Tuple[SelectorSpec, ...] = ()
    pagination: Optional[PaginationSpec] = None
    rate_limit: RateLimitSpec = Field(default_factory=RateLimitSpec)
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("selectors")
    @classmethod
    def _unique_names(cls, selectors: Tuple[SelectorSpec, ...]) -> Tuple[SelectorSpec, ...]:
        # Names become record keys
        seen = set()
        for spec in selectors:
            if spec.name in seen:
                raise ConfigurationError(f"Duplicate selector name: {spec.name!r}")
            seen.add(spec.name)
        return selectors

    def validate_for_run(self) -> None:
        """
        Check the plan can be started.

        Raises:
            ConfigurationError: If the address or the selector list is empty
        """
        if not self.address or not self.address.strip():
            raise ConfigurationError("An address is required to start a run")
        if not self.selectors:
            raise ConfigurationError("At least one selector is required to start a run")

    @property
    def paginates(self) -> bool:
        return self.pagination is not None and self.pagination.enabled

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractionPlan":
        """
        Build a plan from plain data (e.g. a JSON plan file).

        Raises:
            ConfigurationError: If the data does not describe a valid plan
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid extraction plan: {problems}") from e


def record_columns(records: List[Record]) -> List[str]:
    """Union of the keys of all records, in first-seen order."""
    columns: Dict[str, None] = {}
    for record in records:
        for key in record:
            columns.setdefault(key, None)
    return list(columns)
