"""Search widget controller.

Binds the search input of a page to :class:`SearchService` and renders the
number of hits into the result element.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Protocol

from DrissionPage import ChromiumPage

from .exceptions import LazysearchError
from .schemas import SearchResponse
from .service import SearchService, iter_highlights

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = (
    "https://1hy5arpx48.execute-api.us-east-1.amazonaws.com/prod/moebelat/_search"
)
SUBMIT_KEY = "Enter"

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace ``{{ name }}`` placeholders with values from ``context``.

    Placeholders without a value are left as they are.
    """

    def substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in context:
            return match.group(0)
        return str(context[key])

    return _PLACEHOLDER.sub(substitute, template)


class SearchView(Protocol):
    """The two elements the widget works with."""

    def read_input(self) -> str: ...

    def read_output(self) -> str: ...

    def write_output(self, html: str) -> None: ...


class PageSearchView:
    """SearchView over the ``.search-input`` and ``.search-count`` elements of a page."""

    def __init__(self, page: ChromiumPage, root: str = ".search") -> None:
        self.page = page
        self.root = root

    def _element(self, selector: str) -> Any:
        return self.page.ele(f"css:{self.root} {selector}")

    def read_input(self) -> str:
        return self._element(".search-input").value or ""

    def read_output(self) -> str:
        return self._element(".search-count").inner_html

    def write_output(self, html: str) -> None:
        self._element(".search-count").set.innerHTML(html)


class SearchController:
    """Runs a search when the user confirms the input.

    Attributes:
        service: The search service queries are sent through.
        view: Input and output elements.
    """

    def __init__(
        self,
        service: SearchService,
        view: SearchView,
        search_url: str = DEFAULT_SEARCH_URL,
    ) -> None:
        self.service = service
        self.view = view
        self.service.search_url = search_url

    async def handle_key(self, key: str) -> SearchResponse | None:
        """React to a key press on the input; only Enter submits."""
        if key != SUBMIT_KEY:
            return None
        return await self.submit(self.view.read_input())

    async def submit(self, term: str) -> SearchResponse | None:
        """Search for ``term`` and render the outcome.

        Returns:
            The search response, or None if the search failed. Failures are
            logged, not raised.
        """
        try:
            result = await self.service.search(term)
            count = result["hits"]["total"]
            self.view.write_output(render_template(self.view.read_output(), {"count": count}))
            for field, fragments in iter_highlights(result):
                logger.info(f"{field} {fragments}")
        except (LazysearchError, KeyError, TypeError) as e:
            logger.error(f"An error occurred during the search service: {e}")
            return None

        return result
