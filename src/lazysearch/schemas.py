"""Type definitions for lazysearch."""

from typing import Any, Literal, TypedDict

# JSON Type Definition
JSONValue = str | int | float | bool | None | dict[str, "JSONValue"] | list["JSONValue"]
JSONDict = dict[str, JSONValue]
JSONList = list[JSONValue]

# Other common types
Headers = dict[str, str]
Method = Literal["GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS"]
XHREvent = Literal["load", "error", "abort", "timeout"]


class Credentials(TypedDict, total=False):
    """Username and optional password the XHR is opened with."""

    username: str
    password: str


class RequestOptions(TypedDict, total=False):
    """Options accepted by :meth:`Transport.fetch`.

    ``body`` is untyped: a mapping is turned into query parameters for GET and
    DELETE, anything that is not a string is JSON encoded for other methods.
    ``timeout`` is in seconds and maps to ``XMLHttpRequest.timeout``.
    """

    method: str
    headers: Headers
    body: Any
    credentials: Credentials
    timeout: float


class JSONPOptions(TypedDict, total=False):
    """Options accepted by :meth:`Transport.fetch_jsonp`."""

    timeout: float
    callback: str
    callback_function: str


class XHRResultData(TypedDict):
    """Structure of the data the in-page XMLHttpRequest reports back."""

    event: XHREvent
    error: str | None
    status: int
    statusText: str
    url: str
    headers: dict[str, str]
    text: str
    response: Any


class MatchClause(TypedDict):
    url: str


class Query(TypedDict):
    match: MatchClause


class Highlight(TypedDict):
    pre_tags: list[str]
    post_tags: list[str]
    fields: dict[str, dict[str, Any]]
    require_field_match: bool


class SearchQuery(TypedDict):
    """Match query on ``url`` with highlighting over every field."""

    query: Query
    highlight: Highlight


class Hit(TypedDict, total=False):
    highlight: dict[str, list[str]]


class Hits(TypedDict):
    total: int
    hits: list[Hit]


class SearchResponse(TypedDict):
    """The part of a search index response the widget reads."""

    hits: Hits
