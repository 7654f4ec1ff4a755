"""
Durable persistence of the session tokens and the cached user profile.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Optional

from pydantic import ValidationError

from marketplace_session.clients.sqlite_store import SQLiteKeyValueStore
from marketplace_session.models.session import SessionTokens, UserProfile
from marketplace_session.services.token_cipher import TokenCipher

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "authToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_INFO_KEY = "userInfo"


class TokenStore:
    """Owns the ``SessionTokens`` pair; tokens are encrypted at rest.

    Both tokens are always written and cleared together. Each mutation runs
    under a lock and never awaits, so no other caller can observe a half
    written pair.
    """

    def __init__(self, store: SQLiteKeyValueStore, cipher: TokenCipher) -> None:
        self._store = store
        self._cipher = cipher
        self._lock = threading.RLock()

    def get_access_token(self) -> Optional[str]:
        return self._read_sealed(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self._read_sealed(REFRESH_TOKEN_KEY)

    def get_tokens(self) -> SessionTokens:
        with self._lock:
            return SessionTokens(
                access_token=self.get_access_token(),
                refresh_token=self.get_refresh_token(),
            )

    def save_tokens(self, access_token: str, refresh_token: str) -> SessionTokens:
        if not access_token or not refresh_token:
            raise ValueError("Both access and refresh tokens are required.")
        with self._lock:
            self._store.multi_set(
                {
                    ACCESS_TOKEN_KEY: self._cipher.seal(access_token),
                    REFRESH_TOKEN_KEY: self._cipher.seal(refresh_token),
                }
            )
        return SessionTokens(access_token=access_token, refresh_token=refresh_token)

    def clear_tokens(self) -> None:
        with self._lock:
            self._store.multi_remove((ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY))
        logger.info("Session tokens cleared")

    def save_user_info(self, profile: UserProfile) -> None:
        with self._lock:
            self._store.set_item(USER_INFO_KEY, profile.model_dump_json())

    def get_user_info(self) -> Optional[UserProfile]:
        raw = self._store.get_item(USER_INFO_KEY)
        if not raw:
            return None
        try:
            return UserProfile.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Cached user profile is malformed: %s", exc)
            return None

    def clear_all(self) -> None:
        with self._lock:
            self._store.multi_remove((ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_INFO_KEY))
        logger.info("Session tokens and profile cleared")

    def _read_sealed(self, key: str) -> Optional[str]:
        sealed = self._store.get_item(key)
        if not sealed:
            return None
        try:
            return self._cipher.open(sealed)
        except ValueError:
            logger.warning("Stored credential is unreadable; treating as absent", extra={"key": key})
            return None


__all__ = ["ACCESS_TOKEN_KEY", "REFRESH_TOKEN_KEY", "TokenStore", "USER_INFO_KEY"]
