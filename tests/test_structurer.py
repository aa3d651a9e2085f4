"""
Tests for the record structurer.
"""

import pytest

from harvester.extraction.selectors import ParsedPage, SelectorEvaluator
from harvester.extraction.structurer import structure_records
from harvester.models import SelectorSpec


class TestStructureRecords:
    """Tests for structure_records."""

    def test_index_aligned_columns(self):
        """Test that the i-th values of all selectors form row i."""
        records = structure_records({
            "name": ["Widget", "Gadget"],
            "price": ["$10", "$20"],
        })

        assert records == [
            {"name": "Widget", "price": "$10"},
            {"name": "Gadget", "price": "$20"},
        ]

    def test_single_value_is_broadcast(self):
        """Test that a one-value selector repeats on every row."""
        records = structure_records({
            "page": ["Catalogue"],
            "name": ["Widget", "Gadget", "Doohickey"],
        })

        assert [r["page"] for r in records] == ["Catalogue"] * 3

    def test_short_columns_padded_with_none(self):
        """Test that shorter multi-valued columns are padded."""
        records = structure_records({
            "name": ["Widget", "Gadget", "Doohickey"],
            "price": ["$10", "$20"],
        })

        assert [r["price"] for r in records] == ["$10", "$20", None]

    def test_empty_results_are_left_out(self):
        """Test that selectors without values do not become columns."""
        records = structure_records({
            "name": ["Widget"],
            "missing": [],
        })

        assert records == [{"name": "Widget"}]

    def test_nothing_extracted_gives_one_empty_record(self):
        """Test the degenerate page with no values at all."""
        assert structure_records({}) == [{}]
        assert structure_records({"a": [], "b": []}) == [{}]

    def test_list_value_broadcast(self):
        """Test that a multi-valued pattern cell is attached to every row."""
        records = structure_records({
            "emails": [["a@x.test", "b@x.test"]],
            "name": ["Widget", "Gadget"],
        })

        assert records[0]["emails"] == ["a@x.test", "b@x.test"]
        assert records[1]["emails"] == ["a@x.test", "b@x.test"]

    def test_key_order_follows_selectors(self):
        """Test that record keys keep selector order."""
        records = structure_records({"b": ["1"], "a": ["2"], "c": ["3"]})

        assert list(records[0]) == ["b", "a", "c"]

    @pytest.mark.parametrize(
        "lengths",
        [[], [0], [1], [3], [1, 1], [2, 5, 1], [0, 4, 4], [7, 0, 2]],
    )
    def test_record_count_invariant(self, lengths):
        """Test len(records) == max(1, longest column)."""
        results = {
            f"s{i}": [f"v{j}" for j in range(length)]
            for i, length in enumerate(lengths)
        }

        records = structure_records(results)

        assert len(records) == max([1, *lengths])


def test_single_structural_match_broadcast_across_rows():
    """Test that multiple=True with one match still broadcasts."""
    html = """
    <html><body>
      <h1>Summer sale</h1>
      <div class="item">A</div><div class="item">B</div><div class="item">C</div>
    </body></html>
    """
    page = ParsedPage(html)
    evaluator = SelectorEvaluator()
    specs = [
        SelectorSpec(name="campaign", expression="h1", multiple=True),
        SelectorSpec(name="item", expression="div.item", multiple=True),
    ]

    results = evaluator.evaluate_all(page, specs)
    records = structure_records(results)

    assert results["campaign"] == ["Summer sale"]
    assert len(records) == 3
    assert all(r["campaign"] == "Summer sale" for r in records)
    assert [r["item"] for r in records] == ["A", "B", "C"]
