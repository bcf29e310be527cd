from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import json, os, tempfile

from keyledger_core.constants import KEYS_FILENAME, LOGS_FILENAME
from keyledger_core.errors import ConflictError, StorageError
from keyledger_core.logger import get_logger
from keyledger_core.storage.models import KeyRecord, LogEntry
from keyledger_core.storage.provider import StorageProvider, trim_logs

log = get_logger("KeyLedger.Storage.JSON")


class JSONFileStorage(StorageProvider):
    """
    Flat-file provider: ``keys.json`` maps API key -> {expired, created_at,
    deleted}; ``logs.json`` is the parallel list of activity entries.

    Every operation is a full read, in-memory mutation and full rewrite.
    Inside ``atomic()`` the files are read once and written once at the end.
    Writes go through a temp file + os.replace so a crash never leaves a
    half-written document behind.
    """
    name = "json"

    def __init__(self, data_dir="data"):
        self.data_dir = str(data_dir)
        os.makedirs(self.data_dir, exist_ok=True)
        self.keys_path = os.path.join(self.data_dir, KEYS_FILENAME)
        self.logs_path = os.path.join(self.data_dir, LOGS_FILENAME)

        self._depth = 0
        self._keys: Optional[Dict[str, Any]] = None
        self._logs: Optional[List[Dict[str, Any]]] = None
        self._dirty = False

        self._init()

    def _init(self) -> None:
        if not os.path.exists(self.keys_path):
            self._write(self.keys_path, {})
        if not os.path.exists(self.logs_path):
            self._write(self.logs_path, [])
        log.info(f"[JSON] data_dir={self.data_dir}")

    # ------------------------------------------------------------------
    # File IO
    # ------------------------------------------------------------------
    def _read(self, path: str, default):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return default
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}") from e
        if not isinstance(data, type(default)):
            raise StorageError(f"Unexpected document type in {path}")
        return data

    def _read_text(self, path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def _write(self, path: str, data) -> None:
        self._write_text(path, json.dumps(data, indent=2))

    def _write_text(self, path: str, text: str) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"Failed to write {path}: {e}") from e

    def _commit(self, keys, logs) -> None:
        # two documents, one unit: put keys.json back if logs.json can't be written
        previous = self._read_text(self.keys_path)
        self._write(self.keys_path, keys)
        try:
            self._write(self.logs_path, logs)
        except StorageError:
            log.error(f"[JSON] log write failed, restoring {self.keys_path}")
            self._write_text(self.keys_path, previous if previous is not None else "{}")
            raise

    def _state(self):
        if self._depth and self._keys is not None:
            return self._keys, self._logs
        keys = self._read(self.keys_path, {})
        logs = self._read(self.logs_path, [])
        if self._depth:
            self._keys, self._logs = keys, logs
        return keys, logs

    def _save(self, keys, logs) -> None:
        if self._depth:
            self._keys, self._logs = keys, logs
            self._dirty = True
            return
        self._commit(keys, logs)

    @contextmanager
    def atomic(self):
        self._depth += 1
        try:
            yield
            if self._depth == 1 and self._dirty:
                self._commit(self._keys, self._logs)
        finally:
            self._depth -= 1
            if not self._depth:
                self._keys = self._logs = None
                self._dirty = False

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def _record(self, key: str, data: Dict[str, Any]) -> KeyRecord:
        try:
            return KeyRecord.from_dict(key, data)
        except (ValueError, AttributeError) as e:
            raise StorageError(f"Corrupt record in {self.keys_path}: {e}") from e

    def get_key(self, key: str) -> Optional[KeyRecord]:
        keys, _ = self._state()
        data = keys.get(key)
        return self._record(key, data) if data is not None else None

    def insert_key(self, rec: KeyRecord) -> None:
        keys, logs = self._state()
        if rec.key in keys:
            raise ConflictError(rec.key)
        keys[rec.key] = rec.to_dict()
        self._save(keys, logs)

    def update_key(self, rec: KeyRecord) -> None:
        keys, logs = self._state()
        keys[rec.key] = rec.to_dict()
        self._save(keys, logs)

    def delete_key(self, key: str) -> bool:
        keys, logs = self._state()
        if key not in keys:
            return False
        del keys[key]
        self._save(keys, logs)
        return True

    def list_keys(self) -> List[KeyRecord]:
        keys, _ = self._state()
        return [self._record(k, v) for k, v in keys.items()]

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------
    def append_log(self, entry: LogEntry) -> None:
        keys, logs = self._state()
        logs.append(entry.to_dict())
        self._save(keys, trim_logs(logs))

    def list_logs(self) -> List[LogEntry]:
        _, logs = self._state()
        try:
            return [LogEntry.from_dict(e) for e in logs]
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Corrupt log in {self.logs_path}: {e}") from e

    def ping(self) -> None:
        self._state()
