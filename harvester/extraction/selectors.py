"""
Selector Evaluator Module

Applies selector declarations to a fetched page.
CSS selectors run on a BeautifulSoup tree, XPath expressions on an lxml tree,
and patterns on the raw markup.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag
from lxml import etree
from lxml import html as lxml_html

from harvester.errors import ExtractionError
from harvester.models import RecordValue, SelectorKind, SelectorSpec


logger = logging.getLogger(__name__)


class ParsedPage:
    """
    A fetched page with its parsed forms.

    The BeautifulSoup tree is built up front; the lxml tree only when an
    XPath selector asks for it.
    """

    def __init__(self, body: str, url: str = ""):
        self.url = url
        self.body = body
        self.soup = BeautifulSoup(body, "lxml")
        self._tree: Optional[etree._Element] = None

    @property
    def tree(self) -> etree._Element:
        """lxml tree of the raw body."""
        if self._tree is None:
            self._tree = lxml_html.fromstring(self.body)
        return self._tree


def _tag_value(node: Tag, target: str) -> Optional[str]:
    """Value of a BeautifulSoup node for a selector target."""
    if target == "text":
        return node.get_text().strip()
    if target == "html":
        return node.decode_contents()
    value = node.get(target)
    if value is None:
        return None
    # class, rel and friends come back as lists
    if isinstance(value, list):
        return " ".join(value)
    return value


def _element_value(node: Any, target: str) -> Optional[str]:
    """Value of an XPath result for a selector target."""
    if not isinstance(node, etree._Element):
        # Strings, numbers and booleans from text()/@attr/count() expressions
        return str(node).strip()
    if target == "text":
        return node.text_content().strip()
    if target == "html":
        inner = node.text or ""
        return inner + "".join(
            etree.tostring(child, encoding="unicode", method="html")
            for child in node
        )
    return node.get(target)


class SelectorEvaluator:
    """
    Turns a page and a selector into extracted values.

    Features:
    - CSS selectors (first match or all matches, document order)
    - XPath expressions over element, attribute and text results
    - Regular expressions over the unparsed markup
    - Per-selector failure isolation: a broken expression yields no values

    Example:
        evaluator = SelectorEvaluator()
        page = ParsedPage(html)
        titles = evaluator.evaluate(page, SelectorSpec(name="title", expression="h1"))
    """

    def evaluate(self, page: ParsedPage, spec: SelectorSpec) -> List[RecordValue]:
        """
        Extract the values a selector produces on a page.

        Args:
            page: The parsed page
            spec: Selector declaration

        Returns:
            Extracted values in document order; empty when nothing matched
            or the selector could not be evaluated
        """
        try:
            if spec.kind is SelectorKind.STRUCTURAL:
                return self._evaluate_css(page, spec)
            if spec.kind is SelectorKind.XPATH:
                return self._evaluate_xpath(page, spec)
            return self._evaluate_pattern(page, spec)
        except Exception as e:
            error = ExtractionError(spec.name, str(e))
            logger.warning(f"{error} (page: {page.url or 'unknown'})")
            return []

    def evaluate_all(
        self,
        page: ParsedPage,
        selectors: Sequence[SelectorSpec],
    ) -> Dict[str, List[RecordValue]]:
        """Evaluate every selector of a plan, keyed by selector name in plan order."""
        return {spec.name: self.evaluate(page, spec) for spec in selectors}

    def _evaluate_css(self, page: ParsedPage, spec: SelectorSpec) -> List[RecordValue]:
        if spec.multiple:
            nodes: Iterable[Tag] = page.soup.select(spec.expression)
        else:
            first = page.soup.select_one(spec.expression)
            nodes = [first] if first is not None else []
        return [_tag_value(node, spec.target) for node in nodes]

    def _evaluate_xpath(self, page: ParsedPage, spec: SelectorSpec) -> List[RecordValue]:
        result = page.tree.xpath(spec.expression)
        nodes = result if isinstance(result, list) else [result]
        if not spec.multiple:
            nodes = nodes[:1]
        return [_element_value(node, spec.target) for node in nodes]

    def _evaluate_pattern(self, page: ParsedPage, spec: SelectorSpec) -> List[RecordValue]:
        matches = [match.group(0) for match in re.finditer(spec.expression, page.body)]
        if not matches:
            return []
        # All matches travel together as one list-valued cell
        if spec.multiple:
            return [matches]
        return [matches[0]]
