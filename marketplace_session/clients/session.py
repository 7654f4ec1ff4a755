"""
Authenticated HTTP session with transparent access token refresh.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx

from marketplace_session.core.config import ApiSettings
from marketplace_session.core.errors import NetworkError, ReauthenticationRequired
from marketplace_session.core.logging import redact
from marketplace_session.utils.http import (
    build_headers,
    build_url,
    error_from_response,
    parse_json_body,
)

if TYPE_CHECKING:
    from marketplace_session.services.refresh import RefreshCoordinator
    from marketplace_session.services.token_store import TokenStore

logger = logging.getLogger(__name__)


class SessionClient:
    """Execute backend requests, refreshing the access token at most once per request.

    On a 401 for an authenticated request the client asks the
    :class:`RefreshCoordinator` for a new token and retries exactly once. If
    the refresh fails or the retry is still unauthorized, the session tokens
    are cleared and :class:`ReauthenticationRequired` is raised.
    """

    def __init__(
        self,
        settings: ApiSettings,
        token_store: TokenStore,
        refresh_coordinator: RefreshCoordinator,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._tokens = token_store
        self._refresh = refresh_coordinator
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def init(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            )

    async def dispose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SessionClient":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        body: Any = None,
        require_auth: bool = False,
        headers: Optional[Dict[str, Optional[str]]] = None,
    ) -> Any:
        """Send a request and return the parsed JSON body."""
        method = method.upper()
        access_token: Optional[str] = None
        if require_auth:
            access_token = self._tokens.get_access_token()
            if not access_token:
                raise ReauthenticationRequired(
                    "Authentication required but no access token is stored."
                )

        response = await self._send(endpoint, method, body, access_token, headers)
        if not require_auth or response.status_code != HTTPStatus.UNAUTHORIZED:
            return self._handle(response)

        logger.info(
            "Access token rejected; refreshing",
            extra={"endpoint": endpoint, "method": method, "token": redact(access_token)},
        )
        new_token = await self._refresh.refresh(stale_access_token=access_token)

        retry = await self._send(endpoint, method, body, new_token, headers)
        if retry.status_code == HTTPStatus.UNAUTHORIZED:
            logger.warning(
                "Request still unauthorized after refresh; clearing session",
                extra={"endpoint": endpoint, "method": method},
            )
            self._tokens.clear_tokens()
            raise ReauthenticationRequired("Request unauthorized after token refresh.")
        return self._handle(retry)

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="GET", **kwargs)

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="POST", body=body, **kwargs)

    async def put(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="PUT", body=body, **kwargs)

    async def patch(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="PATCH", body=body, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self.request(endpoint, method="DELETE", **kwargs)

    async def _send(
        self,
        endpoint: str,
        method: str,
        body: Any,
        access_token: Optional[str],
        headers: Optional[Dict[str, Optional[str]]],
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("SessionClient is not initialised; call init() first.")

        url = build_url(self._settings.root_url, endpoint)
        json_body = body if body is not None and method != "GET" else None
        try:
            return await self._client.request(
                method,
                url,
                json=json_body,
                headers=build_headers(access_token, headers),
            )
        except httpx.TransportError as exc:
            logger.warning("Request transport failure", extra={"endpoint": endpoint, "method": method})
            raise NetworkError(f"{method} {endpoint} failed: {exc}") from exc

    @staticmethod
    def _handle(response: httpx.Response) -> Any:
        if not response.is_success:
            raise error_from_response(response)
        return parse_json_body(response)


__all__ = ["SessionClient"]
