"""
Push registration pipeline run after every successful authentication.

Missing permission, push token or device id are expected outcomes and are
reported through :class:`PipelineOutcome` rather than raised. Registration
failures from the backend propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from marketplace_session.clients.platform import (
    Available,
    CapabilityProvider,
    NotificationCapabilities,
    PermissionStatus,
)
from marketplace_session.core.errors import (
    DeviceIdentityUnavailable,
    PermissionDenied,
    PushTokenUnavailable,
)
from marketplace_session.models.registration import RegistrationState
from marketplace_session.services.device_identity import DeviceIdentity
from marketplace_session.services.device_registrar import DeviceRegistrar, RegistrationResult
from marketplace_session.services.logout import DeactivationResult
from marketplace_session.services.permission import PushPermissionGate
from marketplace_session.services.registration_cache import RegistrationCache
from marketplace_session.services.registration_state import RegistrationStateMachine
from marketplace_session.services.token_rotation import TokenRotationListener

logger = logging.getLogger(__name__)

PipelineStep = Literal["permission", "token", "device_id"]

_STEP_ERRORS = {
    "permission": (PermissionDenied, "Notification permission is not granted."),
    "token": (PushTokenUnavailable, "The platform did not provide a push token."),
    "device_id": (DeviceIdentityUnavailable, "No stable device identifier is available."),
}


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    ok: bool
    step: Optional[PipelineStep] = None
    result: Optional[RegistrationResult] = None

    def raise_for_step(self) -> None:
        """Raise the matching error for a stopped pipeline; no-op on success."""
        if self.ok or self.step is None:
            return
        error_cls, message = _STEP_ERRORS[self.step]
        raise error_cls(message)


class PushRegistrationPipeline:
    """Permission → push token → device id → idempotent registration → rotation listener."""

    def __init__(
        self,
        *,
        notifications: CapabilityProvider[NotificationCapabilities],
        permission_gate: PushPermissionGate,
        identity: DeviceIdentity,
        registrar: DeviceRegistrar,
        cache: RegistrationCache,
        rotation_listener: TokenRotationListener,
        state: RegistrationStateMachine,
        request_permission: bool = True,
    ) -> None:
        self._notifications = notifications
        self._gate = permission_gate
        self._identity = identity
        self._registrar = registrar
        self._cache = cache
        self._listener = rotation_listener
        self._state = state
        self._request_permission = request_permission

    @property
    def state(self) -> RegistrationState:
        return self._state.state

    async def on_user_authenticated(
        self, request_permission_if_needed: Optional[bool] = None
    ) -> PipelineOutcome:
        allow_prompt = (
            self._request_permission
            if request_permission_if_needed is None
            else request_permission_if_needed
        )

        self._state.transition(RegistrationState.PENDING_PERMISSION)
        if not await self._ensure_permission(allow_prompt):
            self._state.transition(RegistrationState.PERMISSION_DENIED)
            logger.info("Push registration stopped: permission not granted")
            return PipelineOutcome(ok=False, step="permission")
        self._state.transition(RegistrationState.PERMISSION_GRANTED)

        push_token = await self._get_push_token()
        if not push_token:
            self._settle()
            logger.info("Push registration stopped: no push token")
            return PipelineOutcome(ok=False, step="token")

        device_id = await self._identity.get_stable_device_id()
        if not device_id:
            self._settle()
            logger.info("Push registration stopped: no stable device id")
            return PipelineOutcome(ok=False, step="device_id")

        self._state.transition(RegistrationState.TOKEN_PENDING)
        try:
            result = await self._registrar.register_if_needed(device_id, push_token)
        except Exception:
            self._settle()
            raise

        if self._cache.load().device_id != device_id:
            self._cache.update(device_id=device_id)
        self._state.transition(RegistrationState.REGISTERED)

        self._listener.start()
        return PipelineOutcome(ok=True, result=result)

    def on_logout(self, deactivation: DeactivationResult) -> None:
        """Stop reconciling and return the local state to ``UNREGISTERED``."""
        self._listener.stop()
        if deactivation.did_deactivate:
            self._state.transition(RegistrationState.DEACTIVATED)
        self._state.reset()

    async def _ensure_permission(self, allow_prompt: bool) -> bool:
        status = await self._gate.get_permission_status()
        if status is PermissionStatus.GRANTED:
            return True
        # A denied permission cannot be re-prompted by the OS.
        if status is PermissionStatus.DENIED or not allow_prompt:
            return False
        return await self._gate.request_permission()

    async def _get_push_token(self) -> Optional[str]:
        if not isinstance(self._notifications, Available):
            return None
        try:
            token = await self._notifications.capabilities.get_push_token()
        except Exception as exc:
            logger.warning("Failed to obtain push token: %s", exc)
            return None
        if not isinstance(token, str) or not token.strip():
            return None
        return token.strip()

    def _settle(self) -> None:
        registered = self._cache.load().device_registered
        self._state.transition(
            RegistrationState.REGISTERED if registered else RegistrationState.UNREGISTERED
        )


__all__ = ["PipelineOutcome", "PipelineStep", "PushRegistrationPipeline"]
