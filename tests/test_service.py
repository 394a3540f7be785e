import json
import unittest

from fakes import XHRPage, xhr_result

from lazysearch.exceptions import HTTPStatusError
from lazysearch.query import build_match_query
from lazysearch.service import SearchService, iter_highlights
from lazysearch.transport import Transport

CHAIR_RESPONSE = (
    '{"hits":{"total":2,"hits":[{"highlight":{"url":["<strong>chair</strong>"]}}]}}'
)


class RecordingTransport:
    def __init__(self, result=None):
        self.result = result if result is not None else {"hits": {"total": 0, "hits": []}}
        self.calls = []

    async def fetch_json(self, url, options=None):
        self.calls.append((url, options))
        return self.result


class TestSearchService(unittest.IsolatedAsyncioTestCase):
    async def test_default_query_is_posted(self):
        transport = RecordingTransport()
        service = SearchService(transport, "https://e/_search")

        await service.search("chair")

        self.assertEqual(
            transport.calls,
            [("https://e/_search", {"method": "POST", "body": build_match_query("chair")})],
        )

    async def test_custom_options_bypass_query_builder(self):
        transport = RecordingTransport()
        service = SearchService(transport)
        service.search_url = "https://e/_search"
        custom = {"method": "GET", "body": {"q": "chair"}}

        await service.search("ignored", custom)

        url, options = transport.calls[0]
        self.assertEqual(url, "https://e/_search")
        self.assertIs(options, custom)

    async def test_unset_endpoint_is_passed_through(self):
        transport = RecordingTransport()
        await SearchService(transport).search("chair")
        self.assertEqual(transport.calls[0][0], "")

    async def test_search_through_browser_transport(self):
        page = XHRPage(xhr_result(200, CHAIR_RESPONSE))
        service = SearchService(
            Transport(page_factory=lambda options: page), "https://e/_search"
        )

        result = await service.search("chair")

        self.assertEqual(result["hits"]["total"], 2)
        self.assertEqual(result, json.loads(CHAIR_RESPONSE))
        request = page.requests[0]
        self.assertEqual(request["method"], "POST")
        self.assertEqual(request["url"], "https://e/_search")
        self.assertEqual(request["headers"], {"Content-Type": "application/json"})
        self.assertEqual(json.loads(request["body"]), build_match_query("chair"))

    async def test_failures_propagate(self):
        page = XHRPage(xhr_result(500, "Internal Error"))
        service = SearchService(Transport(page_factory=lambda options: page), "https://e/")
        with self.assertRaises(HTTPStatusError):
            await service.search("chair")


class TestIterHighlights(unittest.TestCase):
    def test_yields_fields_in_order(self):
        response = {
            "hits": {
                "total": 3,
                "hits": [
                    {"highlight": {"url": ["<strong>a</strong>"], "title": ["x", "y"]}},
                    {},
                    {"highlight": {"url": ["<strong>b</strong>"]}},
                ],
            }
        }
        self.assertEqual(
            list(iter_highlights(response)),
            [
                ("url", ["<strong>a</strong>"]),
                ("title", ["x", "y"]),
                ("url", ["<strong>b</strong>"]),
            ],
        )


if __name__ == "__main__":
    unittest.main()
