"""Stable per-install device identifier."""

from __future__ import annotations

import logging
from typing import Optional

from marketplace_session.clients.platform import (
    Available,
    CapabilityProvider,
    DeviceIdCapabilities,
    host_device_type,
)

logger = logging.getLogger(__name__)


class DeviceIdentity:
    """Fail-soft wrapper around the platform device id capability."""

    def __init__(
        self,
        provider: CapabilityProvider[DeviceIdCapabilities],
        device_type: Optional[str] = None,
    ) -> None:
        self._provider = provider
        self._device_type = device_type or host_device_type()

    @property
    def device_type(self) -> str:
        return self._device_type

    @property
    def available(self) -> bool:
        return self._provider.is_available

    async def get_stable_device_id(self) -> Optional[str]:
        """Return the device id, or ``None`` when the platform cannot supply one."""
        if not isinstance(self._provider, Available):
            return None
        try:
            device_id = await self._provider.capabilities.get_stable_device_id()
        except Exception as exc:
            logger.warning("Failed to read stable device id: %s", exc)
            return None
        if not device_id or not device_id.strip():
            return None
        return device_id.strip()


__all__ = ["DeviceIdentity"]
