"""Extraction module - selector evaluation and record structuring."""

from .selectors import ParsedPage, SelectorEvaluator
from .structurer import structure_records

__all__ = ["ParsedPage", "SelectorEvaluator", "structure_records"]
