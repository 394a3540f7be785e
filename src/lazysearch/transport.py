"""Browser-backed transport for lazysearch.

Requests are executed as real ``XMLHttpRequest`` exchanges inside a Chromium
page driven through the DevTools protocol, so they carry the page's origin,
cookies and CORS rules. JSONP reads inject a ``<script>`` element into the
same page.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, cast

from DrissionPage import ChromiumOptions, ChromiumPage

from .exceptions import (
    BodyNotAllowedError,
    BodyTypeError,
    BrowserInitError,
    HTTPStatusError,
    JSONPTimeoutError,
    NetworkError,
    RequestAbortedError,
    RequestTimeoutError,
    ResponseDecodeError,
    ScriptExecutionError,
    UnsupportedMethodError,
)
from .jsonp import CallbackRegistry
from .response import Response
from .schemas import JSONPOptions, JSONValue, RequestOptions, XHRResultData

logger = logging.getLogger(__name__)

# Type alias for page factory
PageFactory = Callable[[ChromiumOptions], ChromiumPage]

METHODS = frozenset(("GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS"))
# Methods whose mapping body is sent as query parameters
QUERY_BODY_METHODS = frozenset(("GET", "DELETE"))

DEFAULT_JSONP_TIMEOUT = 5.0
DEFAULT_JSONP_CALLBACK_PARAM = "callback"
# Upper bound for one in-page wait on a JSONP callback
JSONP_POLL_INTERVAL = 1.0
# Page-side object holding the delivery promise of each pending callback
JSONP_SLOTS = "__lazysearchJsonp"


def append_query(url: str, query: str) -> str:
    """Append ``query`` to ``url`` with ``?``, or ``&`` if the URL already has a query."""
    joiner = "&" if "?" in url else "?"
    return f"{url}{joiner}{query}"


def encode_query_body(body: Mapping[str, Any]) -> str:
    """Join ``key=value`` pairs with ``&``.

    Keys and values are inserted as they are; nothing is percent-encoded.
    """
    return "&".join(f"{key}={value}" for key, value in body.items())


def prepare_request(url: str, options: RequestOptions) -> tuple[str, str, str | None]:
    """Apply the body encoding rules for the request method.

    For GET and DELETE an empty string body counts as no body, and an empty
    mapping still appends the bare separator (``https://e/search?``).

    Args:
        url: Target URL.
        options: Request options.

    Returns:
        Tuple of (method, url, body) ready to hand to the page.

    Raises:
        UnsupportedMethodError: If the method is unknown.
        BodyTypeError: If a GET or DELETE body is not a mapping.
        BodyNotAllowedError: If a HEAD request ends up with a body.
    """
    method = (options.get("method") or "GET").upper()
    if method not in METHODS:
        raise UnsupportedMethodError(f"Unsupported request method: {method}")

    body = options.get("body")
    if method in QUERY_BODY_METHODS and body == "":
        body = None

    if method in QUERY_BODY_METHODS and body is not None:
        if not isinstance(body, Mapping):
            raise BodyTypeError(
                "Non object like body not allowed for GET requests. The body has to be "
                "an object so the properties will be appended as a GET parameter to the url."
            )
        url = append_query(url, encode_query_body(body))
        body = None
    elif body is not None and not isinstance(body, str):
        body = json.dumps(body)

    if method == "HEAD" and body:
        raise BodyNotAllowedError("Body not allowed for HEAD requests")

    return method, url, body


class Transport:
    """Performs HTTP exchanges from inside a Chromium page.

    Attributes:
        profile_dir: Path to the browser profile directory.
        headless: Whether the browser runs in headless mode.
        page_url: Page the requests are issued from, if any.
        callbacks: Registry of pending JSONP callbacks.
    """

    REQUIRED_KEYS = frozenset((
        "event",
        "error",
        "status",
        "statusText",
        "url",
        "headers",
        "text",
        "response",
    ))

    def __init__(
        self,
        profile_dir: str | Path = "./browser_data",
        headless: bool = True,
        page_url: str | None = None,
        page_factory: PageFactory | None = None,
    ) -> None:
        """Initialize the Transport.

        Args:
            profile_dir: Directory path for the user data profile.
            headless: Run browser in headless mode.
            page_url: Navigate here before the first exchange so requests run in its origin.
            page_factory: Optional callable to create browser pages (for testing/DI).

        Raises:
            BrowserInitError: If browser fails to start.
        """
        self.profile_dir = Path(profile_dir)
        self.headless = headless
        self.page_url = page_url
        self.callbacks = CallbackRegistry()
        self._page_factory = page_factory
        self._page: ChromiumPage | None = None
        self._navigated = False
        self._init_browser()

    def _init_browser(self) -> None:
        """Initialize the DrissionPage browser instance.

        Raises:
            BrowserInitError: If initialization fails.
        """
        try:
            options = ChromiumOptions()
            options.set_user_data_path(str(self.profile_dir))
            options.headless(self.headless)

            if self._page_factory:
                self._page = self._page_factory(options)
            else:
                self._page = ChromiumPage(options)
        except Exception as e:
            # DrissionPage raises a variety of errors on startup
            raise BrowserInitError(f"Failed to initialize browser: {e}") from e

    @property
    def page(self) -> ChromiumPage:
        """Return the active DrissionPage instance.

        Raises:
            BrowserInitError: If page is not initialized.
        """
        if self._page is None:
            raise BrowserInitError("Browser has not been initialized.")
        return self._page

    @property
    def current_url(self) -> str:
        """Return the current URL of the browser."""
        return self.page.url if self._page else ""

    def _ensure_page_context(self) -> None:
        """Navigate to :attr:`page_url` once, if configured."""
        if not self.page_url or self._navigated:
            return
        self._navigated = True
        if self.current_url == self.page_url:
            return
        try:
            self.page.get(self.page_url)
        except Exception as e:
            # Requests still work from the blank page, only without the origin
            logger.warning(f"Failed to open {self.page_url}: {e}")

    def _evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression in the page and return its value.

        Promises are awaited and results are returned by value.

        Raises:
            ScriptExecutionError: If the expression throws or the page cannot be reached.
        """
        self._ensure_page_context()

        try:
            cdp_res = self.page.run_cdp(
                "Runtime.evaluate",
                expression=expression,
                awaitPromise=True,
                returnByValue=True,
                includeCommandLineAPI=False,
            )
        except Exception as e:
            # DrissionPage raises its own errors when the page or connection is gone
            raise ScriptExecutionError(f"DevTools evaluation failed: {e}") from e

        if "exceptionDetails" in cdp_res:
            details = cdp_res["exceptionDetails"]
            raise ScriptExecutionError(f"JS Execution Error: {details}")

        return cdp_res.get("result", {}).get("value")

    async def _run(self, expression: str) -> Any:
        """Evaluate ``expression`` without blocking the event loop."""
        return await asyncio.to_thread(self._evaluate, expression)

    async def fetch(self, url: str, options: RequestOptions | None = None) -> Any:
        """Fetch a resource and return its body.

        Args:
            url: The url to fetch.
            options: Method, headers, body, credentials and timeout.

        Returns:
            The response body, normally a string.

        Raises:
            RequestShapeError: If the body does not fit the method. Nothing is sent.
            HTTPStatusError: If the status is 0 or >= 400. The message is the response text.
            NetworkError: If the request failed at network level.
            RequestAbortedError: If the request was aborted.
            RequestTimeoutError: If ``options["timeout"]`` elapsed.
        """
        options = options or {}
        method, full_url, body = prepare_request(url, options)

        request: dict[str, Any] = {
            "method": method,
            "url": full_url,
            "headers": dict(options.get("headers") or {}),
            "body": body,
            "username": None,
            "password": None,
            "timeout": 0,
        }

        credentials = options.get("credentials") or {}
        if credentials.get("username"):
            request["username"] = credentials["username"]
            request["password"] = credentials.get("password")

        timeout = options.get("timeout")
        if timeout:
            request["timeout"] = int(timeout * 1000)

        logger.debug("%s %s", method, full_url)
        response = await self._exec_xhr(request)
        return self._settle(response)

    async def _exec_xhr(self, request: dict[str, Any]) -> Response:
        """Run one XMLHttpRequest in the page and collect its outcome.

        Args:
            request: Method, url, headers, body, credentials and timeout in ms.

        Returns:
            Response object, whatever event ended the request.
        """
        safe_request = json.dumps(request)

        js_script = f"""
            new Promise((resolve) => {{
                const req = {safe_request};
                const xhr = new XMLHttpRequest();
                const done = (event, error) => {{
                    const headers = {{}};
                    (xhr.getAllResponseHeaders() || '').trim().split(/[\\r\\n]+/).forEach((line) => {{
                        const idx = line.indexOf(':');
                        if (idx > 0) {{
                            headers[line.slice(0, idx).trim()] = line.slice(idx + 1).trim();
                        }}
                    }});
                    resolve({{
                        event: event,
                        error: error,
                        status: xhr.status,
                        statusText: xhr.statusText,
                        url: xhr.responseURL,
                        headers: headers,
                        text: xhr.responseText,
                        response: ('response' in xhr) ? xhr.response : null
                    }});
                }};
                xhr.onload = () => done('load', null);
                xhr.onerror = (e) => done('error', e && e.error ? String(e.error) : null);
                xhr.onabort = () => done('abort', null);
                xhr.ontimeout = () => done('timeout', null);
                if (req.username) {{
                    xhr.open(req.method, req.url, true, req.username, req.password);
                }} else {{
                    xhr.open(req.method, req.url, true);
                }}
                if (req.timeout) {{
                    xhr.timeout = req.timeout;
                }}
                for (const key of Object.keys(req.headers)) {{
                    xhr.setRequestHeader(key, req.headers[key]);
                }}
                xhr.send(req.body);
            }})
        """

        result_value = await self._run(js_script)

        if not isinstance(result_value, dict):
            raise ScriptExecutionError(f"Unexpected JS result type: {type(result_value)}")

        if not self.REQUIRED_KEYS.issubset(result_value.keys()):
            raise ScriptExecutionError(
                f"Invalid XHR result structure. Keys found: {list(result_value.keys())}"
            )

        return Response(cast(XHRResultData, result_value))

    @staticmethod
    def _settle(response: Response) -> Any:
        """Map the terminating XHR event to a body or an exception."""
        if response.event == "error":
            raise NetworkError(response.error)
        if response.event == "abort":
            raise RequestAbortedError("Network request aborted")
        if response.event == "timeout":
            raise RequestTimeoutError("Network request timed out")
        if response.failed:
            raise HTTPStatusError(response.text, status=response.status_code)
        return response.body

    async def fetch_json(
        self, url: str, options: RequestOptions | None = None
    ) -> JSONValue:
        """Fetch a resource with a JSON content type and decode the answer.

        ``Content-Type: application/json`` is added unless the caller already
        set a Content-Type header. The caller's options are not modified.

        Raises:
            ResponseDecodeError: If the body is not valid JSON.
        """
        options = cast(RequestOptions, dict(options or {}))
        headers = dict(options.get("headers") or {})
        if not any(key.lower() == "content-type" for key in headers):
            headers["Content-Type"] = "application/json"
        options["headers"] = headers

        body = await self.fetch(url, options)
        if not isinstance(body, str):
            return cast(JSONValue, body)

        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ResponseDecodeError(f"Invalid JSON in response from {url}: {e}") from e

    async def fetch_jsonp(
        self, url: str, options: JSONPOptions | None = None
    ) -> JSONValue:
        """Read a cross-origin resource by injecting a ``<script>`` element.

        The endpoint must answer with ``<callback-name>(<json>)``. Using the
        same ``callback_function`` for two concurrent calls is not supported.

        Args:
            url: The url to read.
            options: Timeout in seconds, callback parameter name and callback name.

        Raises:
            JSONPTimeoutError: If the callback did not fire within the timeout.
            CallbackConflictError: If the callback name is already pending.
        """
        options = options or {}
        timeout = options.get("timeout") or DEFAULT_JSONP_TIMEOUT
        callback_param = options.get("callback") or DEFAULT_JSONP_CALLBACK_PARAM
        callback_name = options.get("callback_function") or self.callbacks.generate_name()
        script_id = f"{callback_param}_{callback_name}"
        src = append_query(url, f"{callback_param}={callback_name}")

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self.callbacks.register(callback_name, script_id, future)

        logger.debug("JSONP %s via %s", src, callback_name)
        watcher: asyncio.Task[None] | None = None
        try:
            await self._run(self._inject_script_js(callback_name, script_id, src))
            # Timer starts once the script is in the page
            self.callbacks.arm(
                callback_name,
                timeout,
                lambda: self.callbacks.expire(callback_name, JSONPTimeoutError(url)),
            )
            watcher = asyncio.create_task(self._watch_callback(callback_name, timeout))
            return await future
        finally:
            self.callbacks.release(callback_name)
            if watcher is not None:
                watcher.cancel()
            await self._remove_script(callback_name, script_id)

    @staticmethod
    def _inject_script_js(callback_name: str, script_id: str, src: str) -> str:
        name = json.dumps(callback_name)
        return f"""
            (() => {{
                const slots = window.{JSONP_SLOTS} = window.{JSONP_SLOTS} || {{}};
                const slot = slots[{name}] = {{}};
                slot.done = new Promise((resolve) => {{
                    window[{name}] = (payload) => resolve({{ delivered: true, payload: payload }});
                }});
                const script = document.createElement('script');
                script.setAttribute('src', {json.dumps(src)});
                script.id = {json.dumps(script_id)};
                document.getElementsByTagName('head')[0].appendChild(script);
                return true;
            }})()
        """

    async def _watch_callback(self, callback_name: str, timeout: float) -> None:
        """Wait in the page for the callback and hand its payload to the registry.

        Stops as soon as the call is no longer pending.
        """
        name = json.dumps(callback_name)
        wait_ms = int(min(timeout, JSONP_POLL_INTERVAL) * 1000)
        js_script = f"""
            (async () => {{
                const slot = (window.{JSONP_SLOTS} || {{}})[{name}];
                if (!slot) {{
                    return {{ delivered: false, missing: true }};
                }}
                const idle = new Promise((resolve) => setTimeout(() => resolve({{ delivered: false }}), {wait_ms}));
                return await Promise.race([slot.done, idle]);
            }})()
        """

        while callback_name in self.callbacks:
            try:
                result = await self._run(js_script)
            except Exception as e:
                # Page gone or evaluation failed, fail the call now
                self.callbacks.expire(callback_name, e)
                return
            if not isinstance(result, dict) or result.get("missing"):
                # Navigation or reload dropped the page-side slot, the callback can never fire
                self.callbacks.expire(
                    callback_name,
                    ScriptExecutionError(
                        f"JSONP callback {callback_name} is no longer registered in the page"
                    ),
                )
                return
            if result.get("delivered"):
                self.callbacks.deliver(callback_name, result.get("payload"))
                return

    async def _remove_script(self, callback_name: str, script_id: str) -> None:
        """Delete the page callback and the injected script element.

        Failures are logged, never raised.
        """
        name = json.dumps(callback_name)
        js_script = f"""
            (() => {{
                try {{
                    delete window[{name}];
                }} catch (e) {{
                    window[{name}] = undefined;
                }}
                if (window.{JSONP_SLOTS}) {{
                    delete window.{JSONP_SLOTS}[{name}];
                }}
                const script = document.getElementById({json.dumps(script_id)});
                if (script && script.parentNode) {{
                    script.parentNode.removeChild(script);
                }}
                return true;
            }})()
        """
        try:
            await self._run(js_script)
        except Exception as e:
            logger.debug(f"JSONP cleanup for {callback_name} failed: {e}")

    def close(self) -> None:
        """Close the browser instance."""
        if self._page:
            self._page.quit()
            self._page = None

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await asyncio.to_thread(self.close)
