"""Response class for lazysearch."""

from __future__ import annotations

import json
from typing import Any

from .schemas import JSONValue, XHRResultData, XHREvent


class Response:
    """Wraps the outcome of one in-page XMLHttpRequest exchange.

    Attributes:
        event: The XHR event that ended the exchange ("load", "error", "abort" or "timeout").
        error: The ``error`` field of an error event, if the runtime populated it.
        status_code: Integer Code of responded HTTP Status, 0 when no response arrived.
        url: Final URL location of Response.
        headers: Response headers with lower-cased names.
    """

    def __init__(self, raw_data: XHRResultData) -> None:
        """Initialize the Response object.

        Args:
            raw_data: The raw dictionary reported by the in-page request.
        """
        self._raw_data = raw_data

        self.event: XHREvent = raw_data.get("event", "load")
        self.error: str | None = raw_data.get("error")
        self.status_code: int = raw_data.get("status", 0)
        self.url: str = raw_data.get("url", "")
        self.headers: dict[str, str] = {
            k.lower(): v for k, v in raw_data.get("headers", {}).items()
        }
        self._text: str = raw_data.get("text", "")
        self._response: Any = raw_data.get("response")

    @property
    def raw_data(self) -> XHRResultData:
        """Return the raw dictionary reported by the in-page request."""
        return self._raw_data

    @property
    def text(self) -> str:
        """Content of the response, in unicode."""
        return self._text

    @property
    def body(self) -> Any:
        """The structured ``xhr.response`` value if the page exposed one, else :attr:`text`."""
        if self._response is not None:
            return self._response
        return self._text

    def json(self, **kwargs: Any) -> JSONValue:
        """Returns the json-encoded content of a response, if any.

        Args:
            **kwargs: Optional arguments that ``json.loads`` takes.

        Raises:
            json.JSONDecodeError: If the response body does not contain valid JSON.
        """
        return json.loads(self.text, **kwargs)

    @property
    def failed(self) -> bool:
        """True for status 0 or any status >= 400."""
        return self.status_code == 0 or self.status_code >= 400

    @property
    def ok(self) -> bool:
        """Returns True if the request loaded and :attr:`failed` is False."""
        return self.event == "load" and not self.failed
