"""
Session orchestration: sign-up, login, session restore and logout.

Push registration hangs off each of these entry points; its failures are
reported on the returned result but never fail the sign-in or sign-out itself.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional, Set

from marketplace_session.clients.auth_api import AuthApiClient
from marketplace_session.clients.session import SessionClient
from marketplace_session.core.config import ApiSettings
from marketplace_session.core.errors import (
    HttpError,
    MarketplaceClientError,
    is_auth_error,
    is_network_error,
)
from marketplace_session.models.session import AuthEvent, UserProfile
from marketplace_session.services.auth_events import AuthEventBus, Subscription
from marketplace_session.services.logout import DeactivationResult, LogoutDeactivator
from marketplace_session.services.push_pipeline import PipelineOutcome, PushRegistrationPipeline
from marketplace_session.services.registration_cache import RegistrationCache
from marketplace_session.services.token_store import TokenStore
from marketplace_session.utils.http import unwrap_envelope

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SignInResult:
    """Profile of the signed-in user plus what happened to push registration."""

    profile: UserProfile
    push: Optional[PipelineOutcome] = None
    push_error: Optional[MarketplaceClientError] = None


class AuthService:
    """Drive the session lifecycle around the token store and push pipeline."""

    def __init__(
        self,
        *,
        settings: ApiSettings,
        auth_api: AuthApiClient,
        session: SessionClient,
        token_store: TokenStore,
        registration_cache: RegistrationCache,
        pipeline: PushRegistrationPipeline,
        deactivator: LogoutDeactivator,
        event_bus: AuthEventBus,
    ) -> None:
        self._settings = settings
        self._auth_api = auth_api
        self._session = session
        self._tokens = token_store
        self._cache = registration_cache
        self._pipeline = pipeline
        self._deactivator = deactivator
        self._bus = event_bus
        self._subscription: Optional[Subscription] = None
        self._background: Set["asyncio.Task[None]"] = set()

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self._bus.subscribe(self._on_access_token_refreshed)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def drain(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def current_user(self) -> Optional[UserProfile]:
        return self._tokens.get_user_info()

    async def login(self, email: str, password: str) -> SignInResult:
        """Authenticate, persist the session and register the device for push."""
        data = await self._auth_api.login(email, password)
        profile = UserProfile.from_api(data.user)

        self._tokens.save_tokens(data.access_token, data.refresh_token)
        self._tokens.save_user_info(profile)
        logger.info("User signed in", extra={"user_id": profile.id})

        self._forget_foreign_registration(profile.id)
        return await self._register_push(profile, request_permission_if_needed=None)

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        *,
        user_type: str = "consumer",
        store_name: Optional[str] = None,
        business_license: Optional[str] = None,
    ) -> SignInResult:
        """Create an account and sign straight into it.

        ``user_type="vendor"`` registers a merchant, which needs both the store
        name and the business license.
        """
        if user_type == "vendor":
            if not store_name or not business_license:
                raise ValueError("Merchant sign-up requires store_name and business_license.")
            await self._auth_api.register_merchant(
                name,
                email,
                password,
                store_name=store_name,
                business_license=business_license,
            )
        else:
            await self._auth_api.register_user(name, email, password)
        logger.info("Account registered", extra={"user_type": user_type})
        return await self.login(email, password)

    async def restore_session(self) -> Optional[SignInResult]:
        """Resume a stored session at startup without prompting for permission.

        Returns ``None`` when there is no usable session. Network failures
        propagate and leave the stored tokens in place.
        """
        if not self._tokens.get_access_token():
            return None

        profile = self._tokens.get_user_info()
        if profile is None:
            try:
                payload = await self._session.get(self._settings.profile_path, require_auth=True)
            except MarketplaceClientError as exc:
                if is_network_error(exc):
                    raise
                if isinstance(exc, HttpError) and exc.status == HTTPStatus.NOT_FOUND:
                    logger.warning("Profile endpoint missing; keeping stored tokens")
                    return None
                if is_auth_error(exc):
                    logger.info("Stored session is no longer accepted; signing out locally")
                else:
                    logger.warning("Session restore rejected: %s", exc)
                self._tokens.clear_all()
                return None
            profile = UserProfile.from_api(unwrap_envelope(payload) or {})
            self._tokens.save_user_info(profile)

        logger.info("Session restored", extra={"user_id": profile.id})
        return await self._register_push(profile, request_permission_if_needed=False)

    async def logout(self) -> DeactivationResult:
        """Sign out locally no matter what the backend says."""
        # Let reconciles queued by a refresh settle so the deactivation sees
        # the final server device id.
        await self.drain()

        deactivation = await self._deactivator.deactivate()
        self._pipeline.on_logout(deactivation)

        refresh_token = self._tokens.get_refresh_token()
        if refresh_token:
            try:
                await self._auth_api.logout(refresh_token)
            except MarketplaceClientError as exc:
                if is_network_error(exc):
                    logger.warning("Backend unreachable during logout; continuing local cleanup")
                else:
                    logger.warning("Server logout failed; continuing local cleanup: %s", exc)

        self._tokens.clear_all()
        logger.info(
            "User signed out",
            extra={"device_deactivated": deactivation.did_deactivate},
        )
        return deactivation

    async def _register_push(
        self, profile: UserProfile, *, request_permission_if_needed: Optional[bool]
    ) -> SignInResult:
        try:
            outcome = await self._pipeline.on_user_authenticated(
                request_permission_if_needed=request_permission_if_needed
            )
        except MarketplaceClientError as exc:
            logger.warning("Push registration failed: %s", exc)
            return SignInResult(profile=profile, push_error=exc)
        return SignInResult(profile=profile, push=outcome)

    def _forget_foreign_registration(self, account_id: str) -> None:
        """Drop a registration still held for a different account.

        It happens when the previous sign-out could not deactivate the server
        record. The old account's credentials are gone, so the record can only
        be abandoned; the new account then registers afresh.
        """
        record = self._cache.load()
        if not record.device_registered or record.account_id == account_id:
            return
        logger.warning(
            "Abandoning device registration held by another account",
            extra={
                "server_device_id": record.server_device_id,
                "previous_account_id": record.account_id,
            },
        )
        self._cache.update(
            device_registered=False,
            server_device_id=None,
            last_push_token=None,
            account_id=None,
        )

    def _on_access_token_refreshed(self, event: AuthEvent) -> None:
        # Runs in the background so the refreshing request is not held up.
        task = asyncio.get_running_loop().create_task(self._reconcile_after_refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _reconcile_after_refresh(self) -> None:
        if not self._cache.load().device_registered:
            return
        try:
            await self._pipeline.on_user_authenticated(request_permission_if_needed=False)
        except MarketplaceClientError as exc:
            logger.warning("Push reconciliation after refresh failed: %s", exc)


__all__ = ["AuthService", "SignInResult"]
