"""Registry of pending JSONP callbacks.

Every JSONP call owns one named slot from the moment its script is injected
until either the page delivers the payload or the timer fires. Whichever comes
first releases the slot; the other one finds nothing and does nothing.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import CallbackConflictError

logger = logging.getLogger(__name__)


@dataclass
class PendingCallback:
    """State of one in-flight JSONP call."""

    name: str
    script_id: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class CallbackRegistry:
    """Maps generated callback names to their pending JSONP calls."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingCallback] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def generate_name(self) -> str:
        """Return a callback name that no pending call uses."""
        while True:
            name = f"jsonp_{int(time.time() * 1000)}_{random.randint(1, 100000)}"
            if name not in self._pending:
                return name

    def register(
        self, name: str, script_id: str, future: asyncio.Future[Any]
    ) -> PendingCallback:
        """Claim ``name`` for a new call.

        Raises:
            CallbackConflictError: If a pending call already holds the name.
        """
        if name in self._pending:
            raise CallbackConflictError(
                f"JSONP callback '{name}' is already in use by a pending request"
            )
        pending = PendingCallback(name=name, script_id=script_id, future=future)
        self._pending[name] = pending
        return pending

    def arm(self, name: str, delay: float, on_expire: Callable[[], Any]) -> None:
        """Schedule ``on_expire`` after ``delay`` seconds on the future's loop."""
        pending = self._pending[name]
        pending.timer = pending.future.get_loop().call_later(delay, on_expire)

    def release(self, name: str) -> PendingCallback | None:
        """Remove the slot and cancel its timer. Returns None if already released."""
        pending = self._pending.pop(name, None)
        if pending is None:
            return None
        if pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None
        return pending

    def deliver(self, name: str, payload: Any) -> bool:
        """Resolve the call waiting on ``name`` with ``payload``.

        Returns False, and does nothing, if the call already finished.
        """
        pending = self.release(name)
        if pending is None:
            logger.debug("Ignoring late JSONP delivery for %s", name)
            return False
        if not pending.future.done():
            pending.future.set_result(payload)
        return True

    def expire(self, name: str, error: BaseException) -> bool:
        """Fail the call waiting on ``name`` with ``error``.

        Returns False, and does nothing, if the call already finished.
        """
        pending = self.release(name)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(error)
        return True
