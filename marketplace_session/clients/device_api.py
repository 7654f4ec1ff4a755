"""
Device record endpoints, called through the authenticated session.
"""

from __future__ import annotations

from typing import Any, List

from pydantic import ValidationError

from marketplace_session.clients.session import SessionClient
from marketplace_session.core.config import ApiSettings
from marketplace_session.core.errors import RegistrationFailed
from marketplace_session.schemas import (
    DeviceRecord,
    DeviceRegisterPayload,
    DeviceTokenUpdatePayload,
    ServerEnvelope,
)


class DeviceApiClient:
    """Create, list, update and delete the server-side push device record."""

    def __init__(self, session: SessionClient, settings: ApiSettings) -> None:
        self._session = session
        self._base = settings.devices_path.rstrip("/")

    async def register_device(
        self, *, device_id: str, device_type: str, device_token: str
    ) -> DeviceRecord:
        """POST the device record; the backend upserts on ``device_id``."""
        body = DeviceRegisterPayload(
            device_id=device_id,
            device_type=device_type,
            device_token=device_token,
        ).model_dump()
        payload = await self._session.post(self._base, body, require_auth=True)
        return self._device_from(payload)

    async def list_devices(self) -> List[DeviceRecord]:
        payload = await self._session.get(self._base, require_auth=True)
        envelope = self._envelope(payload)
        try:
            return [DeviceRecord.model_validate(item) for item in envelope.data or []]
        except ValidationError as exc:
            raise RegistrationFailed("Malformed device list returned from server.") from exc

    async def update_token(self, server_device_id: str, fcm_token: str) -> DeviceRecord:
        body = DeviceTokenUpdatePayload(fcm_token=fcm_token).model_dump()
        payload = await self._session.put(
            f"{self._base}/{server_device_id}/token", body, require_auth=True
        )
        envelope = self._envelope(payload)
        data = envelope.data if isinstance(envelope.data, dict) else {}
        # The update response only echoes ID, FCMToken and UpdatedAt.
        return DeviceRecord.model_validate({"ID": server_device_id, **data})

    async def delete_device(self, server_device_id: str) -> None:
        payload = await self._session.delete(
            f"{self._base}/{server_device_id}", require_auth=True
        )
        self._envelope(payload)

    def _device_from(self, payload: Any) -> DeviceRecord:
        envelope = self._envelope(payload)
        data = envelope.data if envelope.data is not None else payload
        if not isinstance(data, dict) or not data.get("ID"):
            raise RegistrationFailed(envelope.message or "Server did not return a device ID.")
        try:
            return DeviceRecord.model_validate(data)
        except ValidationError as exc:
            raise RegistrationFailed("Malformed device record returned from server.") from exc

    @staticmethod
    def _envelope(payload: Any) -> ServerEnvelope[Any]:
        if payload is None:
            return ServerEnvelope[Any]()
        if not isinstance(payload, dict):
            raise RegistrationFailed("Unexpected response shape from device endpoint.")
        envelope = ServerEnvelope[Any].model_validate(payload)
        if not envelope.success:
            raise RegistrationFailed(envelope.message)
        return envelope


__all__ = ["DeviceApiClient"]
