"""
Error taxonomy for the session and device registration layer.

Transport and server failures are exceptions. Missing permission, push token or
device identity are expected outcomes reported by the registration pipeline;
their exception types exist for callers that prefer to raise them explicitly.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional


class MarketplaceClientError(Exception):
    """Base class for every error raised by this package."""


class NetworkError(MarketplaceClientError):
    """Raised when the request never produced an HTTP response."""


class HttpError(MarketplaceClientError):
    """Raised for non-2xx responses."""

    def __init__(
        self,
        status: int,
        message: Optional[str] = None,
        *,
        error_code: Optional[str] = None,
        payload: Any = None,
    ) -> None:
        self.status = status
        self.error_code = error_code
        self.payload = payload
        self.message = message or _default_status_message(status)
        super().__init__(f"HTTP {status}: {self.message}")


class TokenRefreshError(HttpError):
    """Raised when the refresh endpoint rejects or garbles a refresh."""


class ReauthenticationRequired(MarketplaceClientError):
    """Raised once the session cannot be recovered without a fresh login.

    The session tokens have already been cleared when this is raised.
    """


class RegistrationFailed(MarketplaceClientError):
    """Raised when the device endpoint reports a failed registration."""

    def __init__(self, server_message: Optional[str] = None) -> None:
        self.server_message = server_message or "Device registration failed"
        super().__init__(self.server_message)


class PermissionDenied(MarketplaceClientError):
    """Notification permission is not granted."""


class PushTokenUnavailable(MarketplaceClientError):
    """The platform did not hand out a push token."""


class DeviceIdentityUnavailable(MarketplaceClientError):
    """The platform could not provide a stable device identifier."""


def _default_status_message(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unexpected response status"


def is_auth_error(exc: BaseException) -> bool:
    """Return True for failures that mean the user must sign in again."""
    if isinstance(exc, ReauthenticationRequired):
        return True
    if isinstance(exc, HttpError):
        return exc.status in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN) or (
            exc.error_code in ("TOKEN_EXPIRED", "TOKEN_INVALID")
        )
    return False


def is_network_error(exc: BaseException) -> bool:
    """Return True when the failure happened below HTTP."""
    return isinstance(exc, NetworkError)


__all__ = [
    "DeviceIdentityUnavailable",
    "HttpError",
    "MarketplaceClientError",
    "NetworkError",
    "PermissionDenied",
    "PushTokenUnavailable",
    "ReauthenticationRequired",
    "RegistrationFailed",
    "TokenRefreshError",
    "is_auth_error",
    "is_network_error",
]
