"""
Background reconciliation of push token rotations.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from marketplace_session.clients.platform import (
    Available,
    CapabilityProvider,
    NotificationCapabilities,
    PushTokenHandler,
    Unsubscribe,
)
from marketplace_session.core.logging import redact
from marketplace_session.models.registration import RegistrationState
from marketplace_session.services.device_identity import DeviceIdentity
from marketplace_session.services.device_registrar import DeviceRegistrar, RegistrationResult
from marketplace_session.services.registration_cache import RegistrationCache
from marketplace_session.services.registration_state import RegistrationStateMachine

logger = logging.getLogger(__name__)


class TokenRotationListener:
    """Re-register the device whenever the platform reissues its push token.

    The platform callback may fire on any thread; work is marshalled onto the
    event loop that called :meth:`start`. Reconciliation failures are logged
    and do not surface anywhere else.
    """

    def __init__(
        self,
        provider: CapabilityProvider[NotificationCapabilities],
        registrar: DeviceRegistrar,
        cache: RegistrationCache,
        identity: DeviceIdentity,
        state: Optional[RegistrationStateMachine] = None,
    ) -> None:
        self._provider = provider
        self._registrar = registrar
        self._cache = cache
        self._identity = identity
        self._state = state
        self._unsubscribe: Optional[Unsubscribe] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set["asyncio.Task[Optional[RegistrationResult]]"] = set()

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> bool:
        """Subscribe once; returns False when the platform has no rotation callback."""
        if self._unsubscribe is not None:
            return True
        if not isinstance(self._provider, Available):
            logger.debug("Push token rotation unavailable: %s", self._provider.reason)
            return False

        add_listener: Optional[Callable[[PushTokenHandler], Unsubscribe]] = getattr(
            self._provider.capabilities, "add_push_token_listener", None
        )
        if not callable(add_listener):
            logger.info("Platform has no push token rotation callback; skipping listener")
            return False

        self._loop = asyncio.get_running_loop()
        try:
            self._unsubscribe = add_listener(self._on_platform_token)
        except Exception as exc:
            logger.warning("Failed to subscribe to push token rotation: %s", exc)
            return False
        logger.info("Push token rotation listener started")
        return True

    def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception as exc:
            logger.warning("Failed to remove push token listener: %s", exc)
        logger.info("Push token rotation listener stopped")

    async def drain(self) -> None:
        """Wait for reconciliations that were already scheduled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def handle_rotated_token(self, token: object) -> Optional[RegistrationResult]:
        new_token = token.strip() if isinstance(token, str) else ""
        if not new_token:
            return None

        cached = self._cache.load()
        if cached.last_push_token == new_token:
            return None

        device_id = cached.device_id or await self._identity.get_stable_device_id()
        if not device_id:
            logger.info("Push token rotated but no device id is known; skipping")
            return None

        self._transition(RegistrationState.TOKEN_PENDING)
        try:
            result = await self._registrar.register_if_needed(device_id, new_token)
        except Exception:
            logger.exception(
                "Push token rotation reconciliation failed",
                extra={"push_token": redact(new_token)},
            )
            result = None

        registered = self._cache.load().device_registered
        self._transition(
            RegistrationState.REGISTERED if registered else RegistrationState.UNREGISTERED
        )
        return result

    def _on_platform_token(self, token: object) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or self._unsubscribe is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._schedule(token)
        else:
            loop.call_soon_threadsafe(self._schedule, token)

    def _schedule(self, token: object) -> None:
        task = asyncio.get_running_loop().create_task(self.handle_rotated_token(token))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _transition(self, target: RegistrationState) -> None:
        if self._state is not None:
            self._state.transition(target)


__all__ = ["TokenRotationListener"]
