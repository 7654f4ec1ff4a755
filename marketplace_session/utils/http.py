"""HTTP helpers shared by the backend client wrappers."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from marketplace_session.core.errors import HttpError

JSON_HEADERS: Dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def build_url(root_url: str, endpoint: str) -> str:
    """Join ``endpoint`` onto the API root unless it is already absolute."""
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    return f"{root_url}{endpoint}"


def build_headers(
    access_token: Optional[str] = None,
    extra: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, str]:
    headers = dict(JSON_HEADERS)
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    for key, value in (extra or {}).items():
        if value is not None:
            headers[key] = value
    return headers


def parse_json_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body, ``None`` for an empty body."""
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HttpError(
            response.status_code,
            "Response body could not be parsed",
            payload=response.text,
        ) from exc


def error_from_response(response: httpx.Response, error_cls: type[HttpError] = HttpError) -> HttpError:
    """Translate a non-2xx response into ``HttpError`` using the server envelope when present."""
    try:
        payload = response.json() if response.content else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = response.text or None

    message: Optional[str] = None
    error_code: Optional[str] = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            error_code = error.get("code")
        elif isinstance(error, str):
            message = error
        detail = payload.get("detail")
        message = payload.get("message") or (detail if isinstance(detail, str) else None) or message
    return error_cls(response.status_code, message, error_code=error_code, payload=payload)


def unwrap_envelope(payload: Any) -> Any:
    """Return ``payload['data']`` for ``{success, data}`` envelopes, else the payload itself."""
    if isinstance(payload, dict) and "data" in payload and "success" in payload:
        return payload["data"]
    return payload


__all__ = [
    "JSON_HEADERS",
    "build_headers",
    "build_url",
    "error_from_response",
    "parse_json_body",
    "unwrap_envelope",
]
