"""Custom exceptions for lazysearch module."""

from __future__ import annotations


class LazysearchError(Exception):
    """Base exception class for all lazysearch exceptions.

    All custom exceptions in this library should inherit from this class.
    This allows users to catch all library-specific errors with a single except block.
    """


class BrowserInitError(LazysearchError):
    """Raised when the browser initialization fails.

    This error indicates that the underlying browser process (Chromium)
    could not be started or connected to.

    Common causes include:
    - Missing browser executable
    - Port conflicts
    - Invalid profile directory permissions
    - Incompatible Chromium version
    """


class ScriptExecutionError(LazysearchError):
    """Raised when a DevTools evaluation fails or returns an unexpected shape."""


class FetchError(LazysearchError):
    """Base class for every failure of a single fetch, JSON fetch or JSONP call."""


class RequestShapeError(FetchError, TypeError):
    """The request options are invalid for the method.

    Always raised before the browser page is touched.
    """


class BodyTypeError(RequestShapeError):
    """A GET or DELETE request was given a body that is not a mapping."""


class BodyNotAllowedError(RequestShapeError):
    """A HEAD request ended up with a non-empty body."""


class UnsupportedMethodError(RequestShapeError):
    """The request method is not one the transport knows how to send."""


class TransportError(FetchError):
    """The exchange itself failed.

    Attributes:
        status: HTTP status reported by the page, if any.
    """

    def __init__(self, message: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HTTPStatusError(TransportError):
    """The server answered with status >= 400, or the page reported status 0.

    Status 0 usually means the request never reached a server (CORS rejection,
    DNS failure). The message is the raw response text.
    """


class NetworkError(TransportError):
    """The XHR fired its ``error`` event.

    Attributes:
        reason: The ``error`` field of the event, ``None`` when the runtime left it unset.
    """

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "")
        self.reason = reason


class RequestAbortedError(TransportError):
    """The XHR fired its ``abort`` event."""


class RequestTimeoutError(TransportError):
    """The XHR fired its ``timeout`` event."""


class ResponseDecodeError(FetchError, ValueError):
    """A successful response body could not be parsed as JSON."""


class JSONPError(FetchError):
    """Base class for failures of the script-injection path."""


class JSONPTimeoutError(JSONPError):
    """The JSONP callback was not invoked before the timeout.

    Attributes:
        url: The URL the caller asked for, without the callback parameter.
    """

    def __init__(self, url: str) -> None:
        super().__init__(f"JSONP request to {url} timed out")
        self.url = url


class CallbackConflictError(JSONPError):
    """Another pending JSONP call already uses the requested callback name."""
