"""Publish/subscribe channel announcing that the access token was replaced."""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Union

from marketplace_session.models.session import AuthEvent

logger = logging.getLogger(__name__)

AuthEventHandler = Callable[[AuthEvent], Union[None, Awaitable[None]]]


class Subscription:
    """Disposer handle returned by :meth:`AuthEventBus.subscribe`."""

    def __init__(self, bus: "AuthEventBus", handler: AuthEventHandler) -> None:
        self._bus = bus
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self._handler)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class AuthEventBus:
    """Deliver :class:`AuthEvent` broadcasts to every subscriber.

    Handlers may be plain callables or coroutine functions. A handler that
    raises is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: list[AuthEventHandler] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: AuthEventHandler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    async def publish(self, event: AuthEvent) -> None:
        # Snapshot so handlers may unsubscribe while being notified.
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Access token refreshed handler failed",
                    extra={"handler": getattr(handler, "__qualname__", repr(handler))},
                )

    def _remove(self, handler: AuthEventHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass


__all__ = ["AuthEventBus", "AuthEventHandler", "Subscription"]
