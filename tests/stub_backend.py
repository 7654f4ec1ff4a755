"""In-process FastAPI stand-in for the marketplace backend used by the tests."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Body, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

BASE_URL = "http://backend.test"


class StubBackend:
    """Issues ``A<n>``/``R<n>`` token pairs and keeps device records in memory.

    Flags on the instance switch individual failure modes on and off; the
    ``*_calls`` lists record what the client actually sent.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.valid_access: set[str] = set()
        self.valid_refresh: set[str] = set()
        self.password = "correct-horse"
        self.user: Dict[str, Any] = {"id": "user-1", "email": "ada@example.com", "name": "Ada"}

        self.refresh_delay = 0.0
        self.fail_refresh = False
        self.rotate_refresh = True
        self.profile_status: Optional[int] = None
        self.reject_registration: Optional[str] = None
        self.fail_deletes = False

        self.signup_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.refresh_calls: List[Optional[str]] = []
        self.logout_calls: List[Optional[str]] = []
        self.resource_calls: List[str] = []
        self.register_calls: List[Dict[str, Any]] = []
        self.update_calls: List[Tuple[str, str]] = []
        self.delete_calls: List[str] = []

        self.devices: Dict[str, Dict[str, Any]] = {}
        self._next_device = 0
        self.app = self._build_app()

    def issue_pair(self) -> Tuple[str, str]:
        self.generation += 1
        access, refresh = f"A{self.generation}", f"R{self.generation}"
        self.valid_access.add(access)
        self.valid_refresh.add(refresh)
        return access, refresh

    def expire_access_tokens(self) -> None:
        self.valid_access.clear()

    def _authorize(self, authorization: Optional[str]) -> str:
        token = (authorization or "").removeprefix("Bearer ").strip()
        if token not in self.valid_access:
            raise HTTPException(status_code=401, detail="Token expired")
        return token

    def _upsert_device(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        for record in self.devices.values():
            if record["DeviceID"] == payload["device_id"]:
                record["FCMToken"] = payload["device_token"]
                record["IsActive"] = True
                return dict(record)
        self._next_device += 1
        server_id = f"srv-{self._next_device}"
        record = {
            "ID": server_id,
            "UserID": self.user["id"],
            "FCMToken": payload["device_token"],
            "DeviceID": payload["device_id"],
            "Platform": payload["device_type"],
            "IsActive": True,
            "CreatedAt": "2024-05-01T12:00:00Z",
            "UpdatedAt": "2024-05-01T12:00:00Z",
        }
        self.devices[server_id] = record
        return dict(record)

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.post("/auth/login")
        async def login(payload: Dict[str, Any] = Body(...)):
            if (
                payload.get("email") != backend.user["email"]
                or payload.get("password") != backend.password
            ):
                return JSONResponse(
                    status_code=401,
                    content={"success": False, "message": "Invalid email or password"},
                )
            access, refresh = backend.issue_pair()
            return {
                "success": True,
                "data": {
                    "access_token": access,
                    "refresh_token": refresh,
                    "user": dict(backend.user),
                },
            }

        def sign_up(kind: str, payload: Dict[str, Any], extra: Dict[str, Any]):
            backend.signup_calls.append((kind, dict(payload)))
            if payload.get("email") == backend.user["email"]:
                return JSONResponse(
                    status_code=409,
                    content={"success": False, "message": "Email already registered"},
                )
            # The new account replaces the seeded one so a follow-up login works.
            backend.user = {
                "id": f"user-{len(backend.signup_calls) + 1}",
                "email": payload["email"],
                "name": payload["name"],
                **extra,
            }
            backend.password = payload["password"]
            return JSONResponse(
                status_code=201, content={"success": True, "data": dict(backend.user)}
            )

        @app.post("/auth/register/user")
        async def register_user(payload: Dict[str, Any] = Body(...)):
            return sign_up("user", payload, {})

        @app.post("/auth/register/merchant")
        async def register_merchant(payload: Dict[str, Any] = Body(...)):
            merchant = {
                "store_name": payload["store_name"],
                "business_license": payload["business_license"],
            }
            return sign_up("merchant", payload, {"merchant_profile": merchant})

        @app.post("/auth/refresh")
        async def refresh(payload: Dict[str, Any] = Body(...)):
            token = payload.get("refresh_token")
            backend.refresh_calls.append(token)
            if backend.refresh_delay:
                await asyncio.sleep(backend.refresh_delay)
            if backend.fail_refresh or token not in backend.valid_refresh:
                return JSONResponse(
                    status_code=401,
                    content={"success": False, "message": "Invalid refresh token"},
                )
            access, new_refresh = backend.issue_pair()
            if not backend.rotate_refresh:
                backend.valid_refresh.discard(new_refresh)
                return {"success": True, "data": {"access_token": access}}
            backend.valid_refresh.discard(token)
            return {"access_token": access, "refresh_token": new_refresh}

        @app.post("/auth/logout")
        async def logout(payload: Dict[str, Any] = Body(...)):
            token = payload.get("refresh_token")
            backend.logout_calls.append(token)
            backend.valid_refresh.discard(token)
            return {"success": True, "message": "Logged out"}

        @app.get("/auth/user")
        async def profile(authorization: Optional[str] = Header(None)):
            if backend.profile_status is not None:
                return JSONResponse(
                    status_code=backend.profile_status,
                    content={"success": False, "message": "Profile unavailable"},
                )
            backend._authorize(authorization)
            return {"success": True, "data": dict(backend.user)}

        @app.get("/api/v1/orders")
        async def orders(authorization: Optional[str] = Header(None)):
            token = backend._authorize(authorization)
            backend.resource_calls.append(token)
            return {"success": True, "data": [{"id": "order-1"}]}

        @app.get("/api/v1/always-unauthorized")
        async def always_unauthorized():
            raise HTTPException(status_code=401, detail="Nope")

        @app.get("/api/v1/public")
        async def public():
            return {"success": True, "data": {"status": "ok"}}

        @app.post("/api/v1/devices")
        async def register_device(
            payload: Dict[str, Any] = Body(...),
            authorization: Optional[str] = Header(None),
        ):
            backend._authorize(authorization)
            backend.register_calls.append(dict(payload))
            if backend.reject_registration:
                return {"success": False, "code": 400, "message": backend.reject_registration}
            record = backend._upsert_device(payload)
            return JSONResponse(
                status_code=201,
                content={"success": True, "code": 201, "message": "Device registered", "data": record},
            )

        @app.get("/api/v1/devices")
        async def list_devices(authorization: Optional[str] = Header(None)):
            backend._authorize(authorization)
            return {"success": True, "data": list(backend.devices.values())}

        @app.put("/api/v1/devices/{server_id}/token")
        async def update_token(
            server_id: str,
            payload: Dict[str, Any] = Body(...),
            authorization: Optional[str] = Header(None),
        ):
            backend._authorize(authorization)
            backend.update_calls.append((server_id, payload["fcm_token"]))
            record = backend.devices.get(server_id)
            if record is None:
                return JSONResponse(
                    status_code=404,
                    content={"success": False, "code": 404, "message": "Device not found"},
                )
            record["FCMToken"] = payload["fcm_token"]
            record["UpdatedAt"] = "2024-05-02T08:00:00Z"
            return {
                "success": True,
                "data": {
                    "ID": server_id,
                    "FCMToken": record["FCMToken"],
                    "UpdatedAt": record["UpdatedAt"],
                },
            }

        @app.delete("/api/v1/devices/{server_id}")
        async def delete_device(server_id: str, authorization: Optional[str] = Header(None)):
            backend._authorize(authorization)
            backend.delete_calls.append(server_id)
            if backend.fail_deletes:
                return JSONResponse(
                    status_code=500,
                    content={"success": False, "message": "Database unavailable"},
                )
            backend.devices.pop(server_id, None)
            return {"success": True, "message": "Device deleted"}

        return app
