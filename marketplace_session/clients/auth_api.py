"""
Identity endpoint client.

These calls run outside the authenticated session. Sign-up and login establish
it, refresh renews it and logout ends it, so none of them go through the
refresh-and-retry protocol themselves.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from marketplace_session.core.config import ApiSettings
from marketplace_session.core.errors import HttpError, NetworkError, TokenRefreshError
from marketplace_session.core.logging import redact
from marketplace_session.models.session import SessionTokens
from marketplace_session.schemas import (
    LoginPayload,
    LoginResponseData,
    RefreshTokenPayload,
    RegisterMerchantPayload,
    RegisterUserPayload,
    TokenPairResponse,
)
from marketplace_session.utils.http import (
    build_headers,
    build_url,
    error_from_response,
    parse_json_body,
    unwrap_envelope,
)

logger = logging.getLogger(__name__)


class AuthApiClient:
    """Call the sign-up, login, refresh and logout endpoints."""

    def __init__(
        self,
        settings: ApiSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def refresh(self, refresh_token: str) -> SessionTokens:
        """Exchange a refresh token for a new token pair.

        A response without a rotated refresh token keeps the presented one.
        """
        body = RefreshTokenPayload(refresh_token=refresh_token).model_dump()
        response = await self._post(self._settings.refresh_path, body)

        if not response.is_success:
            raise error_from_response(response, TokenRefreshError)

        payload = parse_json_body(response)
        if isinstance(payload, dict) and payload.get("success") is False:
            raise TokenRefreshError(
                response.status_code,
                payload.get("message") or "Refresh rejected by server",
                payload=payload,
            )
        try:
            pair = TokenPairResponse.model_validate(unwrap_envelope(payload))
        except ValidationError as exc:
            raise TokenRefreshError(
                response.status_code,
                "Incomplete refresh payload returned from server.",
                payload=payload,
            ) from exc

        logger.info(
            "Access token refreshed",
            extra={"refresh_rotated": bool(pair.refresh_token)},
        )
        return SessionTokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token or refresh_token,
        )

    async def login(self, email: str, password: str) -> LoginResponseData:
        """Authenticate with credentials and return the token pair and user payload."""
        body = LoginPayload(email=email, password=password).model_dump()
        response = await self._post(self._settings.login_path, body)
        if not response.is_success:
            raise error_from_response(response)

        payload = parse_json_body(response)
        try:
            return LoginResponseData.model_validate(unwrap_envelope(payload))
        except ValidationError as exc:
            raise HttpError(
                response.status_code,
                "Login response is missing the token pair.",
                payload=payload,
            ) from exc

    async def register_user(self, name: str, email: str, password: str) -> Dict[str, Any]:
        """Create a consumer account and return the user payload the server echoes."""
        body = RegisterUserPayload(name=name, email=email, password=password).model_dump()
        return await self._register(self._settings.register_user_path, body)

    async def register_merchant(
        self,
        name: str,
        email: str,
        password: str,
        *,
        store_name: str,
        business_license: str,
    ) -> Dict[str, Any]:
        """Create a merchant account together with its store."""
        body = RegisterMerchantPayload(
            name=name,
            email=email,
            password=password,
            store_name=store_name,
            business_license=business_license,
        ).model_dump()
        return await self._register(self._settings.register_merchant_path, body)

    async def logout(self, refresh_token: str) -> None:
        """Revoke the refresh token server-side."""
        body = RefreshTokenPayload(refresh_token=refresh_token).model_dump()
        response = await self._post(self._settings.logout_path, body)
        if not response.is_success:
            raise error_from_response(response)
        logger.info("Server session revoked", extra={"refresh_token": redact(refresh_token)})

    async def _register(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._post(endpoint, body)
        if not response.is_success:
            raise error_from_response(response)

        payload = parse_json_body(response)
        if isinstance(payload, dict) and payload.get("success") is False:
            raise HttpError(
                response.status_code,
                payload.get("message") or "Registration rejected by server",
                payload=payload,
            )
        data = unwrap_envelope(payload)
        logger.info("Account created", extra={"endpoint": endpoint})
        return data if isinstance(data, dict) else {}

    async def _post(self, endpoint: str, body: dict[str, Any]) -> httpx.Response:
        url = build_url(self._settings.root_url, endpoint)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.post(url, json=body, headers=build_headers())
        except httpx.TransportError as exc:
            raise NetworkError(f"POST {endpoint} failed: {exc}") from exc


__all__ = ["AuthApiClient"]
