"""Schemas related to the identity endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class RefreshTokenPayload(BaseModel):
    """Body sent to ``/auth/refresh`` and ``/auth/logout``."""

    refresh_token: str = Field(..., description="Long-lived credential issued at login.")


class LoginPayload(BaseModel):
    """Credentials posted to ``/auth/login``."""

    email: str
    password: str


class RegisterUserPayload(BaseModel):
    """Consumer sign-up posted to ``/auth/register/user``."""

    name: str
    email: str
    password: str


class RegisterMerchantPayload(RegisterUserPayload):
    """Merchant sign-up posted to ``/auth/register/merchant``."""

    store_name: str = Field(..., min_length=1)
    business_license: str = Field(..., min_length=1)


class TokenPairResponse(BaseModel):
    """Token pair returned by login and refresh."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None


class LoginResponseData(BaseModel):
    """Login result: both tokens plus the user payload."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    user: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "LoginPayload",
    "LoginResponseData",
    "RefreshTokenPayload",
    "RegisterMerchantPayload",
    "RegisterUserPayload",
    "TokenPairResponse",
]
