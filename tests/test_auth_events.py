try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from marketplace_session.models.session import AuthEvent
from marketplace_session.services.auth_events import AuthEventBus

pytestmark = pytest.mark.anyio("asyncio")


async def test_sync_and_async_handlers_receive_event() -> None:
    bus = AuthEventBus()
    received = []

    async def async_handler(event: AuthEvent) -> None:
        received.append(("async", event.new_access_token))

    bus.subscribe(lambda event: received.append(("sync", event.new_access_token)))
    bus.subscribe(async_handler)

    await bus.publish(AuthEvent(new_access_token="A2"))

    assert received == [("sync", "A2"), ("async", "A2")]


async def test_failing_handler_does_not_block_others() -> None:
    bus = AuthEventBus()
    received = []

    def broken(event: AuthEvent) -> None:
        raise RuntimeError("handler bug")

    bus.subscribe(broken)
    bus.subscribe(lambda event: received.append(event.new_access_token))

    await bus.publish(AuthEvent(new_access_token="A3"))

    assert received == ["A3"]


async def test_unsubscribe_is_idempotent() -> None:
    bus = AuthEventBus()
    received = []
    subscription = bus.subscribe(received.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    await bus.publish(AuthEvent(new_access_token="A4"))

    assert received == []
    assert bus.subscriber_count == 0
    assert subscription.active is False


async def test_subscription_as_context_manager() -> None:
    bus = AuthEventBus()

    with bus.subscribe(lambda event: None):
        assert bus.subscriber_count == 1

    assert bus.subscriber_count == 0
