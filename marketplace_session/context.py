"""
Explicit wiring of the session layer.

One ``SessionContext`` owns every stateful component (stores, HTTP session,
refresh coordinator, push pipeline) for the lifetime of the process. Platform
capabilities and the HTTP transport are injected so tests and host
applications can substitute their own.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from marketplace_session.clients.auth_api import AuthApiClient
from marketplace_session.clients.device_api import DeviceApiClient
from marketplace_session.clients.platform import (
    CapabilityProvider,
    DeviceIdCapabilities,
    MachineIdSource,
    NotificationCapabilities,
    Unavailable,
    resolve_capability,
)
from marketplace_session.clients.session import SessionClient
from marketplace_session.clients.sqlite_store import SQLiteKeyValueStore
from marketplace_session.core.config import AppSettings, get_settings
from marketplace_session.core.logging import configure_logging
from marketplace_session.models.registration import RegistrationState
from marketplace_session.services.auth_events import AuthEventBus
from marketplace_session.services.auth_service import AuthService
from marketplace_session.services.device_identity import DeviceIdentity
from marketplace_session.services.device_registrar import DeviceRegistrar
from marketplace_session.services.logout import LogoutDeactivator
from marketplace_session.services.permission import PushPermissionGate
from marketplace_session.services.push_pipeline import PushRegistrationPipeline
from marketplace_session.services.refresh import RefreshCoordinator
from marketplace_session.services.registration_cache import RegistrationCache
from marketplace_session.services.registration_state import RegistrationStateMachine
from marketplace_session.services.token_cipher import TokenCipher
from marketplace_session.services.token_rotation import TokenRotationListener
from marketplace_session.services.token_store import TokenStore

logger = logging.getLogger(__name__)


class SessionContext:
    """Build and own the session components for one application instance."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        notifications: Optional[CapabilityProvider[NotificationCapabilities]] = None,
        device_ids: Optional[CapabilityProvider[DeviceIdCapabilities]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        api = settings.api

        if notifications is None:
            notifications = Unavailable(reason="no notification capability injected")
        if device_ids is None:
            device_ids = resolve_capability(MachineIdSource, name="device id")

        self.store = SQLiteKeyValueStore(settings.storage.db_path)
        self.token_store = TokenStore(
            self.store, TokenCipher(secret=settings.storage.token_encryption_secret)
        )
        self.registration_cache = RegistrationCache(self.store)
        self.event_bus = AuthEventBus()

        self.auth_api = AuthApiClient(api, transport=transport)
        self.refresh_coordinator = RefreshCoordinator(
            self.token_store, self.auth_api.refresh, self.event_bus
        )
        self.session = SessionClient(
            api, self.token_store, self.refresh_coordinator, transport=transport
        )
        self.device_api = DeviceApiClient(self.session, api)

        self.identity = DeviceIdentity(device_ids, settings.push.device_type)
        self.permission_gate = PushPermissionGate(notifications)
        initial = (
            RegistrationState.REGISTERED
            if self.registration_cache.load().device_registered
            else RegistrationState.UNREGISTERED
        )
        self.state = RegistrationStateMachine(initial)
        self.registrar = DeviceRegistrar(
            self.device_api,
            self.registration_cache,
            self.identity.device_type,
            update_in_place=settings.push.update_in_place,
            account_resolver=self._current_account_id,
        )
        self.rotation_listener = TokenRotationListener(
            notifications,
            self.registrar,
            self.registration_cache,
            self.identity,
            self.state,
        )
        self.pipeline = PushRegistrationPipeline(
            notifications=notifications,
            permission_gate=self.permission_gate,
            identity=self.identity,
            registrar=self.registrar,
            cache=self.registration_cache,
            rotation_listener=self.rotation_listener,
            state=self.state,
            request_permission=settings.push.request_permission,
        )
        self.deactivator = LogoutDeactivator(self.device_api, self.registration_cache)
        self.auth = AuthService(
            settings=api,
            auth_api=self.auth_api,
            session=self.session,
            token_store=self.token_store,
            registration_cache=self.registration_cache,
            pipeline=self.pipeline,
            deactivator=self.deactivator,
            event_bus=self.event_bus,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "SessionContext":
        """Create a context from the process environment.

        Root logging is configured from ``APP_LOG_LEVEL`` as part of this.
        """
        settings = get_settings()
        configure_logging(settings.log_level)
        return cls(settings, **overrides)

    async def init(self) -> None:
        await self.session.init()
        self.auth.start()
        logger.info(
            "Session context ready",
            extra={
                "environment": self.settings.environment,
                "device_type": self.identity.device_type,
                "registration_state": self.state.state.value,
            },
        )

    async def dispose(self) -> None:
        self.auth.stop()
        self.rotation_listener.stop()
        await self.rotation_listener.drain()
        await self.auth.drain()
        await self.session.dispose()

    async def __aenter__(self) -> "SessionContext":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    def _current_account_id(self) -> Optional[str]:
        profile = self.token_store.get_user_info()
        return profile.id if profile else None


__all__ = ["SessionContext"]
