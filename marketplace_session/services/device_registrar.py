"""
Idempotent create/update of the server-side push device record.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Callable, Literal, Optional

from marketplace_session.clients.device_api import DeviceApiClient
from marketplace_session.core.errors import HttpError
from marketplace_session.core.logging import redact
from marketplace_session.models.registration import RegistrationRecord
from marketplace_session.schemas import DeviceRecord
from marketplace_session.services.registration_cache import RegistrationCache

logger = logging.getLogger(__name__)

RegistrationReason = Literal["no-op", "registered", "token-updated"]


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    did_register: bool
    reason: RegistrationReason
    device: Optional[DeviceRecord] = None
    record: Optional[RegistrationRecord] = None


class DeviceRegistrar:
    """Register ``(device_id, push_token)`` with the backend only when it changed.

    A network call is made unless the cache already holds a registered record
    with the same device id and push token. Successful calls update the cache
    in one write; failures leave it untouched and propagate to the caller.
    Calls are serialised so that redundant concurrent triggers collapse into a
    single request followed by no-ops.
    """

    def __init__(
        self,
        device_api: DeviceApiClient,
        cache: RegistrationCache,
        device_type: str,
        *,
        update_in_place: bool = False,
        account_resolver: Optional[Callable[[], Optional[str]]] = None,
    ) -> None:
        self._api = device_api
        self._cache = cache
        self._device_type = device_type
        self._update_in_place = update_in_place
        self._account_resolver = account_resolver
        self._lock = asyncio.Lock()

    async def register_if_needed(self, device_id: str, push_token: str) -> RegistrationResult:
        async with self._lock:
            cached = self._cache.load()
            if cached.matches(device_id, push_token):
                logger.debug("Device registration unchanged; skipping")
                return RegistrationResult(did_register=False, reason="no-op", record=cached)

            reason: RegistrationReason = "registered"
            if self._can_update_in_place(cached, device_id):
                device = await self._update_token(str(cached.server_device_id), device_id, push_token)
                if device is not None:
                    reason = "token-updated"
                else:
                    device = await self._post(device_id, push_token)
            else:
                device = await self._post(device_id, push_token)

            record = self._cache.update(
                device_registered=True,
                device_id=device_id,
                last_push_token=push_token,
                server_device_id=device.id,
                last_registered_at=datetime.now(timezone.utc),
                account_id=self._resolve_account(),
            )

        logger.info(
            "Device registration stored",
            extra={
                "reason": reason,
                "server_device_id": device.id,
                "push_token": redact(push_token),
            },
        )
        return RegistrationResult(did_register=True, reason=reason, device=device, record=record)

    def _can_update_in_place(self, cached: RegistrationRecord, device_id: str) -> bool:
        return bool(
            self._update_in_place
            and cached.device_registered
            and cached.device_id == device_id
            and cached.server_device_id
        )

    async def _post(self, device_id: str, push_token: str) -> DeviceRecord:
        return await self._api.register_device(
            device_id=device_id,
            device_type=self._device_type,
            device_token=push_token,
        )

    async def _update_token(
        self, server_device_id: str, device_id: str, push_token: str
    ) -> Optional[DeviceRecord]:
        """PUT the new token; ``None`` when the server no longer knows the record."""
        try:
            return await self._api.update_token(server_device_id, push_token)
        except HttpError as exc:
            if exc.status != HTTPStatus.NOT_FOUND:
                raise
            logger.info(
                "Server device record missing; re-registering",
                extra={"server_device_id": server_device_id, "device_id": device_id},
            )
            return None

    def _resolve_account(self) -> Optional[str]:
        if self._account_resolver is None:
            return None
        return self._account_resolver()


__all__ = ["DeviceRegistrar", "RegistrationResult"]
