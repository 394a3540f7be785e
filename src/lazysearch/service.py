"""Search service sitting on top of the transport."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import cast

from .query import build_match_query
from .schemas import RequestOptions, SearchResponse
from .transport import Transport

logger = logging.getLogger(__name__)


class SearchService:
    """Sends search queries to a search index endpoint.

    Attributes:
        search_url: Endpoint the queries are POSTed to. Not validated; an
            empty URL simply fails at transport level.
    """

    def __init__(self, transport: Transport, search_url: str = "") -> None:
        self._transport = transport
        self._search_url = search_url

    @property
    def search_url(self) -> str:
        return self._search_url

    @search_url.setter
    def search_url(self, search_url: str) -> None:
        self._search_url = search_url

    async def search(
        self, term: str, custom_options: RequestOptions | None = None
    ) -> SearchResponse:
        """Search the index for ``term``.

        Args:
            term: Free-text search term.
            custom_options: Request options sent as they are instead of the
                default match query. ``term`` is ignored when given.

        Returns:
            The decoded search response.

        Raises:
            FetchError: If the request or the decoding fails.
        """
        if custom_options is not None:
            options = custom_options
        else:
            options = {"method": "POST", "body": build_match_query(term)}

        logger.debug(f"Searching {self._search_url} for {term!r}")
        result = await self._transport.fetch_json(self._search_url, options)
        return cast(SearchResponse, result)


def iter_highlights(response: SearchResponse) -> Iterator[tuple[str, list[str]]]:
    """Yield ``(field, fragments)`` for every highlighted field of every hit, in order."""
    for hit in response["hits"]["hits"]:
        for field, fragments in hit.get("highlight", {}).items():
            yield field, fragments
