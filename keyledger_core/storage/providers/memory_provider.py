import copy
from contextlib import contextmanager
from typing import List, Optional

from keyledger_core.errors import ConflictError
from keyledger_core.storage.models import KeyRecord, LogEntry
from keyledger_core.storage.provider import StorageProvider, trim_logs


class InMemoryStorage(StorageProvider):
    name = "memory"

    def __init__(self):
        self.keys = {}
        self.logs = []
        self._depth = 0

    # records
    def get_key(self, key: str) -> Optional[KeyRecord]:
        rec = self.keys.get(key)
        return copy.copy(rec) if rec else None

    def insert_key(self, rec: KeyRecord):
        if rec.key in self.keys:
            raise ConflictError(rec.key)
        self.keys[rec.key] = copy.copy(rec)

    def update_key(self, rec: KeyRecord):
        self.keys[rec.key] = copy.copy(rec)

    def delete_key(self, key: str) -> bool:
        return self.keys.pop(key, None) is not None

    def list_keys(self) -> List[KeyRecord]:
        return [copy.copy(rec) for rec in self.keys.values()]

    # activity log
    def append_log(self, entry: LogEntry):
        self.logs.append(entry)
        self.logs = trim_logs(self.logs)

    def list_logs(self) -> List[LogEntry]:
        return list(self.logs)

    @contextmanager
    def atomic(self):
        # snapshot on the outermost block, restore it if the block fails
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        keys, logs = dict(self.keys), list(self.logs)
        self._depth = 1
        try:
            yield
        except BaseException:
            self.keys, self.logs = keys, logs
            raise
        finally:
            self._depth = 0
