"""
Domain model for the device push-registration ledger.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


class RegistrationRecord(BaseModel):
    """Idempotency ledger persisted under ``push_device_registration_cache_v1``."""

    device_registered: bool = False
    device_id: Optional[str] = None
    last_push_token: Optional[str] = Field(
        None, validation_alias=AliasChoices("last_push_token", "last_fcm_token")
    )
    server_device_id: Optional[str] = None
    last_registered_at: Optional[datetime] = None
    account_id: Optional[str] = Field(
        None, description="User the server record was registered under."
    )

    @model_validator(mode="after")
    def _registered_requires_server_id(self) -> "RegistrationRecord":
        if self.device_registered and not self.server_device_id:
            raise ValueError("A registered device must carry its server_device_id.")
        return self

    def matches(self, device_id: str, push_token: str) -> bool:
        """True when registering ``(device_id, push_token)`` again would be a no-op."""
        return (
            self.device_registered
            and self.device_id == device_id
            and self.last_push_token == push_token
        )


class RegistrationState(str, Enum):
    """Lifecycle of the device registration as seen by the client."""

    UNREGISTERED = "unregistered"
    PENDING_PERMISSION = "pending_permission"
    PERMISSION_DENIED = "permission_denied"
    PERMISSION_GRANTED = "permission_granted"
    TOKEN_PENDING = "token_pending"
    REGISTERED = "registered"
    DEACTIVATED = "deactivated"


__all__ = ["RegistrationRecord", "RegistrationState"]
