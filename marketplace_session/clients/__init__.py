"""Expose constructed client wrappers."""

from .auth_api import AuthApiClient
from .device_api import DeviceApiClient
from .platform import (
    Available,
    MachineIdSource,
    PermissionStatus,
    Unavailable,
    resolve_capability,
)
from .session import SessionClient
from .sqlite_store import SQLiteKeyValueStore

__all__ = [
    "AuthApiClient",
    "Available",
    "DeviceApiClient",
    "MachineIdSource",
    "PermissionStatus",
    "SQLiteKeyValueStore",
    "SessionClient",
    "Unavailable",
    "resolve_capability",
]
