import asyncio
import gc
import re
import time
import unittest

from fakes import JSONPPage

from lazysearch.exceptions import (
    CallbackConflictError,
    JSONPTimeoutError,
    ScriptExecutionError,
)
from lazysearch.jsonp import CallbackRegistry
from lazysearch.transport import Transport


class TestCallbackRegistry(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.registry = CallbackRegistry()
        self.loop = asyncio.get_running_loop()

    async def test_generate_name(self):
        name = self.registry.generate_name()
        self.assertRegex(name, r"^jsonp_\d+_\d+$")
        self.assertNotIn(name, self.registry)

    async def test_register_conflict(self):
        self.registry.register("cb", "callback_cb", self.loop.create_future())
        with self.assertRaises(CallbackConflictError):
            self.registry.register("cb", "callback_cb", self.loop.create_future())
        self.assertEqual(len(self.registry), 1)

    async def test_delivery_before_timeout_cancels_timer(self):
        future = self.loop.create_future()
        pending = self.registry.register("cb", "callback_cb", future)
        expired = []
        self.registry.arm("cb", 5.0, lambda: expired.append(True))
        timer = pending.timer

        await asyncio.sleep(0.01)
        self.assertTrue(self.registry.deliver("cb", {"ok": True}))

        self.assertEqual(await future, {"ok": True})
        self.assertTrue(timer.cancelled())
        self.assertNotIn("cb", self.registry)
        self.assertFalse(self.registry.expire("cb", JSONPTimeoutError("https://e/")))
        self.assertEqual(expired, [])

    async def test_timeout_then_late_delivery_is_noop(self):
        future = self.loop.create_future()
        self.registry.register("cb", "callback_cb", future)
        self.registry.arm(
            "cb", 0.01, lambda: self.registry.expire("cb", JSONPTimeoutError("https://e/"))
        )

        with self.assertRaises(JSONPTimeoutError):
            await future

        self.assertNotIn("cb", self.registry)
        self.assertFalse(self.registry.deliver("cb", {"late": True}))

    async def test_release_twice(self):
        self.registry.register("cb", "callback_cb", self.loop.create_future())
        self.assertIsNotNone(self.registry.release("cb"))
        self.assertIsNone(self.registry.release("cb"))


class TestFetchJSONP(unittest.IsolatedAsyncioTestCase):
    def make_transport(self, page: JSONPPage) -> Transport:
        return Transport(page_factory=lambda options: page)

    async def test_delivery_resolves_and_cleans_up_once(self):
        page = JSONPPage(delivery={"items": [1, 2]})
        transport = self.make_transport(page)

        result = await transport.fetch_jsonp("https://e/data", {"timeout": 5.0})

        self.assertEqual(result, {"items": [1, 2]})
        self.assertEqual(len(page.injections), 1)
        self.assertRegex(page.injections[0], r'"https://e/data\?callback=jsonp_\d+_\d+"')
        self.assertEqual(len(page.removals), 1)
        self.assertEqual(len(transport.callbacks), 0)

    async def test_custom_callback_names(self):
        page = JSONPPage(delivery=[])
        transport = self.make_transport(page)

        await transport.fetch_jsonp(
            "https://e/data?x=1", {"callback": "cb", "callback_function": "myFn"}
        )

        injection = page.injections[0]
        self.assertIn('"https://e/data?x=1&cb=myFn"', injection)
        self.assertIn('script.id = "cb_myFn"', injection)
        self.assertIn('document.getElementById("cb_myFn")', page.removals[0])

    async def test_timeout_rejects_with_url_and_cleans_up_once(self):
        page = JSONPPage(delivery=None)
        transport = self.make_transport(page)

        with self.assertRaises(JSONPTimeoutError) as ctx:
            await transport.fetch_jsonp("https://e/slow", {"timeout": 0.05})

        self.assertEqual(str(ctx.exception), "JSONP request to https://e/slow timed out")
        self.assertEqual(ctx.exception.url, "https://e/slow")
        self.assertEqual(len(page.removals), 1)
        self.assertEqual(len(transport.callbacks), 0)

        name = re.search(r'window\["(jsonp_\d+_\d+)"\]', page.removals[0]).group(1)
        self.assertFalse(transport.callbacks.deliver(name, {"late": True}))

    async def test_same_callback_name_conflicts(self):
        page = JSONPPage(delivery=None)
        transport = self.make_transport(page)
        options = {"callback_function": "shared", "timeout": 0.2}

        first = asyncio.create_task(transport.fetch_jsonp("https://e/a", options))
        await asyncio.sleep(0.05)
        with self.assertRaises(CallbackConflictError):
            await transport.fetch_jsonp("https://e/b", options)

        with self.assertRaises(JSONPTimeoutError):
            await first
        self.assertEqual(len(page.injections), 1)
        self.assertEqual(len(page.removals), 1)

    async def test_page_failure_while_waiting(self):
        page = JSONPPage(watch_error=True)
        transport = self.make_transport(page)

        with self.assertRaises(ScriptExecutionError):
            await transport.fetch_jsonp("https://e/data", {"timeout": 5.0})
        self.assertEqual(len(page.removals), 1)
        self.assertEqual(len(transport.callbacks), 0)

    async def test_cleanup_failure_does_not_reach_caller(self):
        page = JSONPPage(delivery={"ok": True}, remove_error=True)
        transport = self.make_transport(page)

        with self.assertLogs("lazysearch.transport", level="DEBUG"):
            result = await transport.fetch_jsonp("https://e/data")
        self.assertEqual(result, {"ok": True})

    async def test_pending_callback_waits_between_polls(self):
        page = JSONPPage(delivery=None)
        transport = self.make_transport(page)

        with self.assertRaises(JSONPTimeoutError):
            await transport.fetch_jsonp("https://e/slow", {"timeout": 0.5})

        self.assertLess(len(page.watches), 5)

    async def test_missing_page_slot_fails_without_waiting_for_timeout(self):
        page = JSONPPage(slot_missing=True)
        transport = self.make_transport(page)

        started = time.monotonic()
        with self.assertRaises(ScriptExecutionError):
            await transport.fetch_jsonp("https://e/data", {"timeout": 5.0})

        self.assertLess(time.monotonic() - started, 1.0)
        self.assertEqual(len(page.watches), 1)
        self.assertEqual(len(page.removals), 1)
        self.assertEqual(len(transport.callbacks), 0)

    async def test_slow_failed_injection_leaves_no_unread_timeout(self):
        page = JSONPPage(inject_error=True, inject_delay=0.05)
        transport = self.make_transport(page)
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda loop, context: reported.append(context))

        with self.assertRaises(ScriptExecutionError):
            await transport.fetch_jsonp("https://e/data", {"timeout": 0.01})
        await asyncio.sleep(0.05)
        gc.collect()

        self.assertEqual(reported, [])
        self.assertEqual(page.watches, [])
        self.assertEqual(len(page.removals), 1)
        self.assertEqual(len(transport.callbacks), 0)


if __name__ == "__main__":
    unittest.main()
