"""
keyledger_core.manager
----------------------
KeyManager applies the key lifecycle operations over a single storage
provider. Each mutation (register / mark_deleted / purge) runs under one
process-wide lock and inside the provider's ``atomic()`` unit of work, so the
record change and its activity-log entry land together or not at all.
Queries take the same lock, so they never observe a unit of work that is
still open.
"""

from __future__ import annotations
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .constants import MAX_LOG_ENTRIES
from .errors import NotFoundError, StorageError, ValidationError, ConflictError
from .lifecycle import Resolution, resolve
from .logger import get_logger
from .storage import KeyRecord, LogAction, LogEntry, StorageProvider
from .utils import parse_ts, utcnow, to_iso

log = get_logger("KeyLedger.Manager")

Clock = Callable[[], datetime]


class KeyManager:
    def __init__(self, store: StorageProvider, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or utcnow
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def register(self, key: Optional[str], expired_time: Any) -> KeyRecord:
        if not key or expired_time in (None, ""):
            raise ValidationError("API key and expiration time are required!")
        if not isinstance(key, str):
            raise ValidationError("API key must be a string!")

        expired_at = parse_ts(expired_time)
        if expired_at is None:
            raise ValidationError("Invalid date format!")

        with self._lock, self.store.atomic():
            if self.store.get_key(key) is not None:
                log.info(f"[ADD] conflict key={key}")
                raise ConflictError(key)

            now = self.clock()
            rec = KeyRecord(key=key, expired_at=expired_at, created_at=now, deleted=False)
            self.store.insert_key(rec)
            self.store.append_log(LogEntry(LogAction.ADD, key, now))

        log.info(f"[ADD] key={key} expired={to_iso(expired_at)}")
        return rec

    def mark_deleted(self, key: str) -> None:
        with self._lock, self.store.atomic():
            rec = self.store.get_key(key)
            if rec is None:
                raise NotFoundError(key)

            if not rec.deleted:
                rec.deleted = True
                self.store.update_key(rec)
            self.store.append_log(LogEntry(LogAction.DELETED, key, self.clock()))

        log.info(f"[DELETED] key={key}")

    def purge(self, key: str) -> None:
        with self._lock, self.store.atomic():
            if not self.store.delete_key(key):
                raise NotFoundError(key)
            self.store.append_log(LogEntry(LogAction.DELETE, key, self.clock()))

        log.info(f"[PURGE] key={key}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def check(self, key: str, now: Optional[datetime] = None) -> Resolution:
        with self._lock:
            record = self.store.get_key(key)
        return resolve(record, now or self.clock())

    def list_keys(self, include_deleted: bool = False) -> Dict[str, Dict[str, Any]]:
        """Serialized records keyed by API key, newest first."""
        with self._lock:
            records = self.store.list_keys()
        records = sorted(records, key=lambda r: r.created_at, reverse=True)
        return {
            r.key: r.to_dict()
            for r in records
            if include_deleted or not r.deleted
        }

    def list_logs(self, newest_first: bool = True, limit: int = MAX_LOG_ENTRIES) -> List[Dict[str, Any]]:
        with self._lock:
            entries = self.store.list_logs()
        if newest_first:
            entries = list(reversed(entries))
        return [e.to_dict() for e in entries[:limit]]

    def stats(self) -> Dict[str, int]:
        with self._lock:
            records = self.store.list_keys()
        deleted = sum(1 for r in records if r.deleted)
        return {
            "total": len(records),
            "deleted": deleted,
            "active": len(records) - deleted,
        }

    def health(self) -> Dict[str, Any]:
        try:
            with self._lock:
                self.store.ping()
        except StorageError:
            log.exception(f"[HEALTH] storage={self.store.name} unreachable")
            raise
        return {
            "status": "ok",
            "timestamp": to_iso(self.clock()),
            "storage": self.store.name,
            "storage_connected": True,
        }
