"""
Single-flight access token refresh.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from marketplace_session.core.errors import MarketplaceClientError, ReauthenticationRequired
from marketplace_session.models.session import AuthEvent, SessionTokens
from marketplace_session.services.auth_events import AuthEventBus
from marketplace_session.services.token_store import TokenStore

logger = logging.getLogger(__name__)

RefreshCall = Callable[[str], Awaitable[SessionTokens]]


class RefreshCoordinator:
    """Coalesce concurrent refresh attempts into one network call.

    Every caller that faults during the same expiry window awaits the same
    task and observes the same outcome: the new access token, or
    :class:`ReauthenticationRequired` after the tokens were cleared.
    """

    def __init__(
        self,
        token_store: TokenStore,
        refresh_call: RefreshCall,
        event_bus: AuthEventBus,
    ) -> None:
        self._tokens = token_store
        self._refresh_call = refresh_call
        self._bus = event_bus
        self._inflight: Optional[asyncio.Task[str]] = None
        self._refresh_count = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def refresh_count(self) -> int:
        """Number of refresh calls actually sent to the server."""
        return self._refresh_count

    async def refresh(self, stale_access_token: Optional[str] = None) -> str:
        """Return a fresh access token.

        ``stale_access_token`` is the token the caller was rejected with; if
        the stored token has already moved on, it is returned as-is.
        """
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)

        if stale_access_token is not None:
            current = self._tokens.get_access_token()
            if current and current != stale_access_token:
                logger.debug("Access token already rotated by another caller")
                return current

        task = asyncio.get_running_loop().create_task(self._run())
        task.add_done_callback(self._release)
        self._inflight = task

        access_token = await asyncio.shield(task)
        # The slot is already released here, so handlers may issue requests.
        await self._bus.publish(AuthEvent(new_access_token=access_token))
        return access_token

    async def _run(self) -> str:
        refresh_token = self._tokens.get_refresh_token()
        if not refresh_token:
            self._tokens.clear_tokens()
            raise ReauthenticationRequired("No refresh token available; sign in again.")

        self._refresh_count += 1
        try:
            tokens = await self._refresh_call(refresh_token)
        except MarketplaceClientError as exc:
            logger.warning("Token refresh failed: %s", exc)
            self._tokens.clear_tokens()
            raise ReauthenticationRequired("Session refresh failed; sign in again.") from exc

        if not tokens.access_token or not tokens.refresh_token:
            self._tokens.clear_tokens()
            raise ReauthenticationRequired("Refresh returned an incomplete token pair.")
        self._tokens.save_tokens(tokens.access_token, tokens.refresh_token)
        return tokens.access_token

    def _release(self, task: "asyncio.Task[str]") -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away.
            task.exception()


__all__ = ["RefreshCall", "RefreshCoordinator"]
