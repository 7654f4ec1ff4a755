"""
Deactivate the server device record at sign-out.

Unlike registration, this path never raises: sign-out must complete even when
the backend is unreachable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from marketplace_session.clients.device_api import DeviceApiClient
from marketplace_session.core.errors import MarketplaceClientError
from marketplace_session.services.registration_cache import RegistrationCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeactivationResult:
    did_deactivate: bool
    server_device_id: Optional[str] = None


class LogoutDeactivator:
    def __init__(self, device_api: DeviceApiClient, cache: RegistrationCache) -> None:
        self._api = device_api
        self._cache = cache

    async def deactivate(self) -> DeactivationResult:
        server_id = self._cache.load().server_device_id
        if not server_id:
            return DeactivationResult(did_deactivate=False)

        try:
            await self._api.delete_device(server_id)
        except MarketplaceClientError as exc:
            logger.warning(
                "Device deactivation failed; continuing sign-out: %s",
                exc,
                extra={"server_device_id": server_id},
            )
            return DeactivationResult(did_deactivate=False, server_device_id=server_id)
        except Exception:
            logger.exception(
                "Unexpected error deactivating device", extra={"server_device_id": server_id}
            )
            return DeactivationResult(did_deactivate=False, server_device_id=server_id)

        # device_id is kept so the next login can reuse it.
        self._cache.update(
            device_registered=False,
            server_device_id=None,
            last_registered_at=datetime.now(timezone.utc),
        )
        logger.info("Device deactivated", extra={"server_device_id": server_id})
        return DeactivationResult(did_deactivate=True, server_device_id=server_id)


__all__ = ["DeactivationResult", "LogoutDeactivator"]
