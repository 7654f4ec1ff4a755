"""
Domain models for the authenticated session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionTokens(BaseModel):
    """Access/refresh token pair owned by the token store."""

    model_config = ConfigDict(frozen=True)

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token and self.refresh_token)


class UserProfile(BaseModel):
    """Cached profile of the signed-in user."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    name: str = ""
    user_type: str = Field("consumer", description="Either 'consumer' or 'vendor'.")
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "UserProfile":
        """Build a profile from the backend's user payload."""
        return cls(
            id=str(payload.get("id", "")),
            email=payload.get("email", ""),
            name=payload.get("name") or "",
            user_type="vendor" if payload.get("merchant_profile") else "consumer",
            created_at=payload.get("created_at"),
        )


@dataclass(frozen=True, slots=True)
class AuthEvent:
    """Broadcast once per successful refresh; never persisted."""

    new_access_token: str
    ts_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["AuthEvent", "SessionTokens", "UserProfile"]
