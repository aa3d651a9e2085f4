"""
Pagination Resolver Module

Works out the address of the next page of a paginated resource.
Returning None means pagination has naturally ended.
"""

import logging
from typing import Optional
from urllib.parse import urljoin

from harvester.errors import PaginationError
from harvester.extraction.selectors import ParsedPage
from harvester.models import PaginationMode, PaginationSpec


logger = logging.getLogger(__name__)

PAGE_PLACEHOLDER = "{page}"


class PaginationResolver:
    """
    Resolves next-page addresses.

    Modes:
    - address-pattern: fill {page} in the expression with the page number
    - next-control: follow the href of the element matched by the expression
    - infinite-scroll: needs script execution, never resolves

    Example:
        resolver = PaginationResolver()
        spec = PaginationSpec(enabled=True, mode="address-pattern",
                              expression="https://x.test/p?page={page}")
        resolver.next_address("https://x.test/p?page=2", spec, 3)
        # Returns: "https://x.test/p?page=3"
    """

    def next_address(
        self,
        current_address: str,
        spec: Optional[PaginationSpec],
        next_page_index: int,
        page: Optional[ParsedPage] = None,
    ) -> Optional[str]:
        """
        Get the address of the next page.

        Args:
            current_address: Address of the page just processed
            spec: Pagination settings of the plan
            next_page_index: 1-based number of the page to resolve
            page: The page just processed (needed for next-control)

        Returns:
            The next address, or None when there is no next page
        """
        if spec is None or not spec.enabled or not (spec.expression or "").strip():
            return None

        try:
            if spec.mode is PaginationMode.ADDRESS_PATTERN:
                return self._from_pattern(spec.expression, next_page_index)
            if spec.mode is PaginationMode.NEXT_CONTROL:
                return self._from_next_control(current_address, spec.expression, page)
            logger.info("Infinite-scroll pagination needs script execution; stopping after this page")
            return None
        except PaginationError as e:
            logger.warning(f"Pagination ended: {e}")
            return None

    def _from_pattern(self, expression: str, page_index: int) -> str:
        if PAGE_PLACEHOLDER not in expression:
            raise PaginationError(
                f"Address pattern {expression!r} has no {PAGE_PLACEHOLDER} placeholder"
            )
        return expression.replace(PAGE_PLACEHOLDER, str(page_index), 1)

    def _from_next_control(
        self,
        current_address: str,
        expression: str,
        page: Optional[ParsedPage],
    ) -> Optional[str]:
        if page is None:
            raise PaginationError("Next-control pagination needs the current page")

        try:
            control = page.soup.select_one(expression)
        except Exception as e:
            raise PaginationError(f"Invalid next-control selector {expression!r}: {e}") from e

        if control is None:
            logger.debug(f"No next control matching {expression!r} on {current_address}")
            return None

        href = control.get("href")
        if not href:
            anchor = control.find("a", href=True)
            href = anchor.get("href") if anchor else None
        if not href:
            logger.debug(f"Next control on {current_address} has no href")
            return None

        next_address = urljoin(current_address, href.strip())
        if next_address == current_address:
            return None
        return next_address
