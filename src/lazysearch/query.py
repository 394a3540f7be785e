"""Search query construction."""

from __future__ import annotations

from .schemas import SearchQuery

HIGHLIGHT_PRE_TAG = "<strong>"
HIGHLIGHT_POST_TAG = "</strong>"


def build_match_query(term: str) -> SearchQuery:
    """Build a match query on the ``url`` field for ``term``.

    Matches are highlighted in every field with ``<strong>`` tags. A new
    structure is returned on every call.

    Args:
        term: Free-text search term, may be empty.

    Returns:
        The query payload to POST to the search endpoint.
    """
    return {
        "query": {
            "match": {
                "url": term,
            },
        },
        "highlight": {
            "pre_tags": [HIGHLIGHT_PRE_TAG],
            "post_tags": [HIGHLIGHT_POST_TAG],
            "fields": {
                "*": {},
            },
            "require_field_match": False,
        },
    }
