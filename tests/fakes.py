"""Fake platform capabilities shared by the tests."""

from __future__ import annotations

from typing import List, Optional

from marketplace_session.clients.platform import PermissionStatus, PushTokenHandler, Unsubscribe


class FakeNotifications:
    def __init__(
        self,
        *,
        status: PermissionStatus = PermissionStatus.GRANTED,
        token: Optional[str] = "tok-xyz",
        grant_on_request: bool = True,
    ) -> None:
        self.status = status
        self.token = token
        self.grant_on_request = grant_on_request
        self.permission_requests = 0
        self.token_calls = 0
        self.listeners: List[PushTokenHandler] = []

    async def get_permission_status(self) -> PermissionStatus:
        return self.status

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        if self.grant_on_request:
            self.status = PermissionStatus.GRANTED
        else:
            self.status = PermissionStatus.DENIED
        return self.grant_on_request

    async def get_push_token(self) -> Optional[str]:
        self.token_calls += 1
        return self.token

    def add_push_token_listener(self, handler: PushTokenHandler) -> Unsubscribe:
        self.listeners.append(handler)

        def unsubscribe() -> None:
            if handler in self.listeners:
                self.listeners.remove(handler)

        return unsubscribe

    def rotate(self, token: str) -> None:
        self.token = token
        for handler in list(self.listeners):
            handler(token)


class FakeNotificationsWithoutListener:
    """Platform that hands out tokens but never reports rotations."""

    async def get_permission_status(self) -> PermissionStatus:
        return PermissionStatus.GRANTED

    async def request_permission(self) -> bool:
        return True

    async def get_push_token(self) -> Optional[str]:
        return "tok-static"


class FakeDeviceIds:
    def __init__(self, device_id: Optional[str] = "dev-123") -> None:
        self.device_id = device_id
        self.calls = 0

    async def get_stable_device_id(self) -> Optional[str]:
        self.calls += 1
        return self.device_id


class ExplodingDeviceIds:
    async def get_stable_device_id(self) -> Optional[str]:
        raise RuntimeError("identifier service crashed")


class ExplodingNotifications(FakeNotifications):
    """Push service whose native module fails on every permission call."""

    def __init__(self, error: Exception = RuntimeError("native module missing"), **kwargs) -> None:
        super().__init__(**kwargs)
        self.error = error

    async def get_permission_status(self) -> PermissionStatus:
        raise self.error

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        raise self.error


class PromptFailingNotifications(FakeNotifications):
    """Reports an undetermined permission but crashes when asked to prompt."""

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault("status", PermissionStatus.UNDETERMINED)
        super().__init__(**kwargs)

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        raise RuntimeError("permission dialog unavailable")
