"""
Tests for the extraction plan models.
"""

import pytest
from pydantic import ValidationError

from harvester.errors import ConfigurationError
from harvester.models import (
    ExtractionPlan,
    PaginationMode,
    PaginationSpec,
    RateLimitSpec,
    SelectorKind,
    SelectorSpec,
    record_columns,
)


class TestSelectorSpec:
    """Tests for SelectorSpec."""

    def test_defaults(self):
        """Test default kind, attribute and multiplicity."""
        spec = SelectorSpec(name="title", expression="h1")

        assert spec.kind is SelectorKind.STRUCTURAL
        assert spec.target == "text"
        assert spec.multiple is False
        assert spec.id

    def test_ids_are_unique(self):
        """Test that each selector gets its own id."""
        first = SelectorSpec(name="a", expression="a")
        second = SelectorSpec(name="a", expression="a")

        assert first.id != second.id

    def test_kind_aliases(self):
        """Test legacy kind spellings."""
        cases = [
            ("css", SelectorKind.STRUCTURAL),
            ("regex", SelectorKind.PATTERN),
            ("XPath", SelectorKind.XPATH),
            ("pattern", SelectorKind.PATTERN),
        ]

        for raw, expected in cases:
            spec = SelectorSpec(name="x", kind=raw, expression=".")
            assert spec.kind is expected, f"Failed for kind: {raw}"

    def test_unknown_kind_rejected(self):
        """Test that unknown kinds fail at build time."""
        with pytest.raises(ConfigurationError, match="Unknown selector kind"):
            SelectorSpec(name="x", kind="jsonpath", expression="$.a")

    def test_frozen(self):
        """Test that a selector cannot be changed after construction."""
        spec = SelectorSpec(name="title", expression="h1")

        with pytest.raises(ValidationError):
            spec.expression = "h2"


class TestPaginationSpec:
    """Tests for PaginationSpec."""

    def test_mode_aliases(self):
        """Test legacy pagination mode spellings."""
        assert PaginationSpec(mode="url").mode is PaginationMode.ADDRESS_PATTERN
        assert PaginationSpec(mode="button").mode is PaginationMode.NEXT_CONTROL
        assert PaginationSpec(mode="infinite").mode is PaginationMode.INFINITE_SCROLL

    def test_unknown_mode_rejected(self):
        """Test that unknown modes fail at build time."""
        with pytest.raises(ConfigurationError):
            PaginationSpec(mode="sideways")

    def test_page_limit(self):
        """Test that 0 and None both mean unbounded."""
        assert PaginationSpec(max_pages=0).page_limit is None
        assert PaginationSpec().page_limit is None
        assert PaginationSpec(max_pages=4).page_limit == 4


class TestRateLimitSpec:
    """Tests for RateLimitSpec."""

    def test_defaults(self):
        """Test politeness defaults."""
        spec = RateLimitSpec()

        assert spec.request_delay_ms == 1000
        assert spec.concurrent_requests == 1
        assert spec.timeout_ms == 30000
        assert spec.retries == 3

    def test_seconds_conversion(self):
        """Test millisecond to second helpers."""
        spec = RateLimitSpec(request_delay_ms=250, timeout_ms=1500)

        assert spec.request_delay == 0.25
        assert spec.timeout == 1.5


class TestExtractionPlan:
    """Tests for ExtractionPlan."""

    def test_validate_for_run_requires_address(self):
        """Test that an empty address is rejected."""
        plan = ExtractionPlan(
            address="   ",
            selectors=[SelectorSpec(name="title", expression="h1")],
        )

        with pytest.raises(ConfigurationError, match="address"):
            plan.validate_for_run()

    def test_validate_for_run_requires_selectors(self):
        """Test that a plan without selectors is rejected."""
        plan = ExtractionPlan(address="https://example.com")

        with pytest.raises(ConfigurationError, match="selector"):
            plan.validate_for_run()

    def test_from_dict(self):
        """Test building a plan from plain data."""
        plan = ExtractionPlan.from_dict({
            "address": "https://example.com/1",
            "selectors": [
                {"name": "title", "kind": "css", "expression": "h1"},
                {"name": "emails", "kind": "regex", "expression": r"\w+@\w+", "multiple": True},
            ],
            "pagination": {"enabled": True, "mode": "url", "expression": "https://example.com/{page}", "max_pages": 2},
            "rate_limit": {"request_delay_ms": 0, "retries": 1},
            "headers": {"Accept-Language": "de"},
        })

        assert [s.name for s in plan.selectors] == ["title", "emails"]
        assert plan.selectors[1].kind is SelectorKind.PATTERN
        assert plan.paginates is True
        assert plan.pagination.page_limit == 2
        assert plan.rate_limit.retries == 1
        assert plan.headers == {"Accept-Language": "de"}
        plan.validate_for_run()

    def test_from_dict_invalid_values(self):
        """Test that schema violations become configuration errors."""
        with pytest.raises(ConfigurationError, match="Invalid extraction plan"):
            ExtractionPlan.from_dict({
                "address": "https://example.com",
                "selectors": [{"name": "title", "expression": "h1"}],
                "rate_limit": {"retries": -1},
            })

    def test_from_dict_unknown_kind(self):
        """Test that an unknown selector kind in plan data is rejected."""
        with pytest.raises(ConfigurationError, match="Unknown selector kind"):
            ExtractionPlan.from_dict({
                "address": "https://example.com",
                "selectors": [{"name": "title", "kind": "magic", "expression": "h1"}],
            })

    def test_duplicate_selector_names_rejected(self):
        """Test that two selectors cannot share a record key."""
        with pytest.raises(ConfigurationError, match="Duplicate selector name"):
            ExtractionPlan(
                address="https://example.com",
                selectors=[
                    SelectorSpec(name="title", expression="h1"),
                    SelectorSpec(name="title", expression="h2"),
                ],
            )

    def test_from_dict_duplicate_names(self):
        with pytest.raises(ConfigurationError, match="Duplicate selector name"):
            ExtractionPlan.from_dict({
                "address": "https://example.com",
                "selectors": [
                    {"name": "price", "expression": ".price"},
                    {"name": "price", "kind": "pattern", "expression": "\\d+"},
                ],
            })

    def test_paginates_requires_enabled(self):
        """Test that a disabled pagination spec does not paginate."""
        plan = ExtractionPlan(
            address="https://example.com",
            pagination=PaginationSpec(enabled=False, mode="url", expression="{page}"),
        )

        assert plan.paginates is False


def test_record_columns_first_seen_order():
    """Test that record columns are the union of keys in first-seen order."""
    records = [
        {"title": "a", "price": "1"},
        {"title": "b", "rating": "5"},
        {"sku": "x", "price": "2"},
    ]

    assert record_columns(records) == ["title", "price", "rating", "sku"]
    assert record_columns([]) == []
