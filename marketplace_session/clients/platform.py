"""
Platform capability providers.

Notification and device-identity capabilities are resolved once at startup
into either ``Available(capabilities)`` or ``Unavailable(reason)`` and then
injected. Consumers branch on the variant instead of probing the platform on
every call.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, ClassVar, Generic, Optional, Protocol, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


PushTokenHandler = Callable[[str], None]
Unsubscribe = Callable[[], None]


class NotificationCapabilities(Protocol):
    """What the host platform exposes for push notifications.

    ``add_push_token_listener`` is optional; platforms without token rotation
    callbacks simply do not define it.
    """

    async def get_permission_status(self) -> PermissionStatus: ...

    async def request_permission(self) -> bool: ...

    async def get_push_token(self) -> Optional[str]: ...


class DeviceIdCapabilities(Protocol):
    async def get_stable_device_id(self) -> Optional[str]: ...


C = TypeVar("C")


@dataclass(frozen=True)
class Available(Generic[C]):
    capabilities: C
    is_available: ClassVar[bool] = True


@dataclass(frozen=True)
class Unavailable:
    reason: str
    is_available: ClassVar[bool] = False


CapabilityProvider = Union[Available[C], Unavailable]


def resolve_capability(
    factory: Optional[Callable[[], Optional[C]]],
    *,
    name: str,
) -> CapabilityProvider[C]:
    """Build a capability once; any failure degrades to ``Unavailable``."""
    if factory is None:
        return Unavailable(reason=f"{name} not provided")
    try:
        capabilities = factory()
    except Exception as exc:
        logger.warning("%s capability unavailable: %s", name, exc)
        return Unavailable(reason=str(exc) or type(exc).__name__)
    if capabilities is None:
        return Unavailable(reason=f"{name} not provided")
    logger.debug("%s capability resolved", name)
    return Available(capabilities)


class MachineIdSource:
    """Stable per-install identifier taken from the OS machine id.

    The value survives restarts and app upgrades and changes only when the OS
    is reinstalled, which callers accept as a new device.
    """

    DEFAULT_PATHS: ClassVar[tuple[str, ...]] = ("/etc/machine-id", "/var/lib/dbus/machine-id")

    def __init__(self, paths: Sequence[str] = DEFAULT_PATHS) -> None:
        self._paths = [Path(path) for path in paths]
        if not any(path.exists() for path in self._paths):
            raise FileNotFoundError("No machine id file found on this host.")

    async def get_stable_device_id(self) -> Optional[str]:
        return await asyncio.to_thread(self._read)

    def _read(self) -> Optional[str]:
        for path in self._paths:
            try:
                value = path.read_text(encoding="utf-8").strip()
            except OSError:
                continue
            if value:
                return value
        return None


def host_device_type() -> str:
    """``device_type`` reported to the backend for the current host."""
    if sys.platform in ("ios", "android"):
        return sys.platform
    return platform.system().lower() or "unknown"


__all__ = [
    "Available",
    "CapabilityProvider",
    "DeviceIdCapabilities",
    "MachineIdSource",
    "NotificationCapabilities",
    "PermissionStatus",
    "PushTokenHandler",
    "Unavailable",
    "Unsubscribe",
    "host_device_type",
    "resolve_capability",
]
