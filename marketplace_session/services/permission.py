"""Notification permission gate.

Only the registration pipeline's entry point may call :meth:`request_permission`;
nothing prompts the user at startup. A misbehaving platform capability is
treated like a missing one: the gate reports ``DENIED`` rather than raising.
"""

from __future__ import annotations

import logging

from marketplace_session.clients.platform import (
    Available,
    CapabilityProvider,
    NotificationCapabilities,
    PermissionStatus,
)

logger = logging.getLogger(__name__)


def coerce_status(raw: object) -> PermissionStatus:
    """Map a platform status onto the three known values.

    Anything unrecognised (``"provisional"``, ``"ephemeral"``...) counts as
    undetermined.
    """
    if isinstance(raw, PermissionStatus):
        return raw
    try:
        return PermissionStatus(str(raw).lower())
    except ValueError:
        logger.info("Unrecognised notification permission status", extra={"status": raw})
        return PermissionStatus.UNDETERMINED


class PushPermissionGate:
    def __init__(self, provider: CapabilityProvider[NotificationCapabilities]) -> None:
        self._provider = provider

    async def get_permission_status(self) -> PermissionStatus:
        if not isinstance(self._provider, Available):
            return PermissionStatus.DENIED
        try:
            raw = await self._provider.capabilities.get_permission_status()
        except Exception as exc:
            logger.warning("Reading notification permission failed: %s", exc)
            return PermissionStatus.DENIED
        return coerce_status(raw)

    async def request_permission(self) -> bool:
        if not isinstance(self._provider, Available):
            return False
        status = await self.get_permission_status()
        if status is PermissionStatus.GRANTED:
            return True
        try:
            granted = bool(await self._provider.capabilities.request_permission())
        except Exception as exc:
            logger.warning("Notification permission request failed: %s", exc)
            return False
        logger.info("Notification permission requested", extra={"granted": granted})
        return granted


__all__ = ["PushPermissionGate", "coerce_status"]
