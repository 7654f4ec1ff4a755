"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from fakes import FakeDeviceIds, FakeNotifications
from marketplace_session.clients.platform import Available
from marketplace_session.context import SessionContext
from marketplace_session.core.config import (
    ApiSettings,
    AppSettings,
    PushSettings,
    StorageSettings,
)
from stub_backend import BASE_URL, StubBackend


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def transport(backend: StubBackend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=backend.app)


@pytest.fixture
def app_settings(tmp_path) -> AppSettings:
    return AppSettings(
        api=ApiSettings(MARKETPLACE_API_BASE_URL=BASE_URL),
        storage=StorageSettings(
            MARKETPLACE_STORAGE_PATH=str(tmp_path / "session.db"),
            TOKEN_ENCRYPTION_SECRET="test-secret",
        ),
        push=PushSettings(MARKETPLACE_DEVICE_TYPE="android"),
    )


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture
def device_ids() -> FakeDeviceIds:
    return FakeDeviceIds("dev-123")


@pytest.fixture
def make_context(app_settings, transport, notifications, device_ids):
    """Build a ``SessionContext`` against the stub backend; callers own its lifecycle."""

    def factory(settings: AppSettings = app_settings, **overrides) -> SessionContext:
        overrides.setdefault("notifications", Available(notifications))
        overrides.setdefault("device_ids", Available(device_ids))
        overrides.setdefault("transport", transport)
        return SessionContext(settings, **overrides)

    return factory


@pytest.fixture
async def context(make_context):
    ctx = make_context()
    async with ctx:
        yield ctx
