"""Symmetric encryption for credentials kept in local storage."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class TokenCipher:
    """Seal and open stored credentials with a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def open(self, sealed: str) -> str:
        """Return the plaintext; ``ValueError`` when the value was not sealed by this key."""
        try:
            plaintext = self._fernet.decrypt(sealed.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Stored credential could not be decrypted.") from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipher"]
