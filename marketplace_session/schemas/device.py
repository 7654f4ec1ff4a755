"""Schemas for the ``/api/v1/devices`` endpoints."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ServerEnvelope(BaseModel, Generic[T]):
    """Standard ``{success, code, message, data}`` response wrapper."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    code: Optional[int] = None
    message: Optional[str] = None
    data: Optional[T] = None
    error: Optional[dict[str, Any]] = None


class DeviceRegisterPayload(BaseModel):
    """Body of ``POST /api/v1/devices``."""

    device_id: str
    device_type: str
    device_token: str


class DeviceTokenUpdatePayload(BaseModel):
    """Body of ``PUT /api/v1/devices/:id/token``."""

    fcm_token: str


class DeviceRecord(BaseModel):
    """Server-side device record; field names follow the backend's casing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., alias="ID")
    user_id: Optional[str] = Field(None, alias="UserID")
    fcm_token: Optional[str] = Field(None, alias="FCMToken")
    device_id: Optional[str] = Field(None, alias="DeviceID")
    platform: Optional[str] = Field(None, alias="Platform")
    is_active: bool = Field(True, alias="IsActive")
    created_at: Optional[str] = Field(None, alias="CreatedAt")
    updated_at: Optional[str] = Field(None, alias="UpdatedAt")


__all__ = [
    "DeviceRecord",
    "DeviceRegisterPayload",
    "DeviceTokenUpdatePayload",
    "ServerEnvelope",
]
