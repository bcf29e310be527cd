# keyledger_core/storage/provider.py
from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, List, Optional

from keyledger_core.constants import MAX_LOG_ENTRIES
from keyledger_core.storage.models import KeyRecord, LogEntry


def trim_logs(entries: list, limit: int = MAX_LOG_ENTRIES) -> list:
    """Keep only the newest ``limit`` entries, preserving their order."""
    if len(entries) > limit:
        return entries[-limit:]
    return entries


class StorageProvider:
    """
    Storage interface for key records and the activity log.

    Records: get_key / insert_key / update_key / delete_key / list_keys
    Log:     append_log / list_logs (chronological, bounded to MAX_LOG_ENTRIES)

    insert_key must raise ConflictError when the key already exists, whether
    detected by the provider itself or by a backend uniqueness constraint.
    All backing-store failures surface as StorageError.
    """
    name: str = "base"

    # records
    def get_key(self, key: str) -> Optional[KeyRecord]: ...
    def insert_key(self, rec: KeyRecord) -> None: ...
    def update_key(self, rec: KeyRecord) -> None: ...
    def delete_key(self, key: str) -> bool: ...
    def list_keys(self) -> List[KeyRecord]: ...

    # activity log
    def append_log(self, entry: LogEntry) -> None: ...
    def list_logs(self) -> List[LogEntry]: ...

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Unit of work: every change made inside the block is committed together
        or not at all. Providers without transactional support just yield.
        """
        yield

    def ping(self) -> None:
        """Raise StorageError if the backing store is unreachable."""

    def close(self) -> None:
        return
