"""Durable idempotency ledger for the device push registration."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from pydantic import ValidationError

from marketplace_session.clients.sqlite_store import SQLiteKeyValueStore
from marketplace_session.models.registration import RegistrationRecord

logger = logging.getLogger(__name__)

CACHE_KEY = "push_device_registration_cache_v1"


class RegistrationCache:
    """Persist the :class:`RegistrationRecord` as JSON under a single key.

    ``update`` is one critical section: the record is read, merged, validated
    and written without yielding, under a lock for callers on other threads.
    """

    def __init__(self, store: SQLiteKeyValueStore) -> None:
        self._store = store
        self._lock = threading.RLock()

    def load(self) -> RegistrationRecord:
        raw = self._store.get_item(CACHE_KEY)
        if not raw:
            return RegistrationRecord()
        try:
            return RegistrationRecord.model_validate(json.loads(raw))
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            logger.warning("Registration cache unreadable; using defaults: %s", exc)
            return RegistrationRecord()

    def update(self, **patch: Any) -> RegistrationRecord:
        """Merge ``patch`` into the stored record and return the result."""
        with self._lock:
            current = self.load()
            merged = RegistrationRecord.model_validate({**current.model_dump(), **patch})
            self._store.set_item(CACHE_KEY, merged.model_dump_json())
        return merged

    def clear(self) -> None:
        with self._lock:
            self._store.remove_item(CACHE_KEY)


__all__ = ["CACHE_KEY", "RegistrationCache"]
