"""Public schema exports."""

from .auth import (
    LoginPayload,
    LoginResponseData,
    RefreshTokenPayload,
    RegisterMerchantPayload,
    RegisterUserPayload,
    TokenPairResponse,
)
from .device import (
    DeviceRecord,
    DeviceRegisterPayload,
    DeviceTokenUpdatePayload,
    ServerEnvelope,
)

__all__ = [
    "DeviceRecord",
    "DeviceRegisterPayload",
    "DeviceTokenUpdatePayload",
    "LoginPayload",
    "LoginResponseData",
    "RefreshTokenPayload",
    "RegisterMerchantPayload",
    "RegisterUserPayload",
    "ServerEnvelope",
    "TokenPairResponse",
]
