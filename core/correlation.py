"""Correlation of asynchronous replies with outstanding requests.

Handlers are registered before a request is written. Every inbound message
is offered to every pending handler; the handler that recognizes its reply
returns True and is removed. The registry does not interpret message ids, so
it works with whatever id scheme the peer echoes back.

Each registration may carry a deadline. The deadline timer is created at
registration time and cancelled when the handler is claimed or removed, so
an entry can never outlive both its reply and its timeout.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .exceptions import RequestTimeoutError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], bool]
ErrorHandler = Callable[[BaseException], None]


@dataclass
class PendingCall:
    """One outstanding registration.

    Attributes:
        id: Registry-assigned identifier (monotonically increasing)
        handler: Predicate-and-consumer; returns True when the message is its reply
        on_error: Called at most once with the failure if the call does not complete
        description: Human-readable label used in timeout messages
        created_at: Monotonic registration time
        timer: Expiry timer, if a deadline was given
    """

    id: int
    handler: MessageHandler
    on_error: ErrorHandler | None = None
    description: str = "request"
    created_at: float = field(default_factory=time.monotonic)
    timer: asyncio.TimerHandle | None = None


class CorrelationRegistry:
    """Maps pending-call ids to single-use completion handlers."""

    def __init__(self):
        self._pending: dict[int, PendingCall] = {}
        self._ids = itertools.count(1)

    def register(
        self,
        handler: MessageHandler,
        timeout: float | None = None,
        on_error: ErrorHandler | None = None,
        description: str = "request",
    ) -> int:
        """Register a handler and optionally bind it to a deadline.

        Args:
            handler: Called with each inbound message until it returns True
            timeout: Seconds before the call expires (None = no deadline)
            on_error: Receives RequestTimeoutError on expiry
            description: Label for the timeout error message

        Returns:
            The registration id
        """
        call_id = next(self._ids)
        call = PendingCall(
            id=call_id,
            handler=handler,
            on_error=on_error,
            description=description,
        )
        if timeout is not None:
            loop = asyncio.get_running_loop()
            call.timer = loop.call_later(timeout, self._expire, call_id, timeout)
        self._pending[call_id] = call
        return call_id

    def unregister(self, call_id: int) -> bool:
        """Remove a registration without firing it.

        Returns:
            True if the registration was still pending
        """
        call = self._pending.pop(call_id, None)
        if call is None:
            return False
        if call.timer is not None:
            call.timer.cancel()
        return True

    def dispatch(self, message: dict[str, Any]) -> bool:
        """Offer an inbound message to every pending handler.

        Returns:
            True if some handler claimed the message
        """
        claimed = False
        for call_id, call in list(self._pending.items()):
            if call_id not in self._pending:
                continue
            try:
                done = call.handler(message)
            except Exception as e:
                logger.error("Handler for %s raised: %s", call.description, e)
                continue
            if done:
                self.unregister(call_id)
                claimed = True
        return claimed

    def expect(
        self,
        predicate: Callable[[dict[str, Any]], bool],
        timeout: float | None,
        description: str = "request",
    ) -> tuple[int, asyncio.Future[dict[str, Any]]]:
        """Register a future that resolves with the first matching message.

        Returns:
            (registration id, future)
        """
        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )

        def handler(message: dict[str, Any]) -> bool:
            if not predicate(message):
                return False
            if not future.done():
                future.set_result(message)
            return True

        def on_error(exc: BaseException) -> None:
            if not future.done():
                future.set_exception(exc)

        call_id = self.register(
            handler, timeout=timeout, on_error=on_error, description=description
        )
        return call_id, future

    def reject_all(self, exc: BaseException) -> int:
        """Fail every pending registration with ``exc``.

        Returns:
            Number of registrations rejected
        """
        calls = list(self._pending.values())
        self._pending.clear()
        for call in calls:
            if call.timer is not None:
                call.timer.cancel()
            self._fire_error(call, exc)
        return len(calls)

    def clear(self) -> int:
        """Abandon every pending registration without firing anything."""
        count = len(self._pending)
        for call in self._pending.values():
            if call.timer is not None:
                call.timer.cancel()
        self._pending.clear()
        return count

    def _expire(self, call_id: int, timeout: float) -> None:
        call = self._pending.pop(call_id, None)
        if call is None:
            return
        logger.warning("%s timed out after %.1fs", call.description, timeout)
        self._fire_error(
            call, RequestTimeoutError(f"{call.description} timed out after {timeout:g}s")
        )

    @staticmethod
    def _fire_error(call: PendingCall, exc: BaseException) -> None:
        if call.on_error is None:
            return
        try:
            call.on_error(exc)
        except Exception as e:
            logger.error("Error handler for %s raised: %s", call.description, e)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._pending
