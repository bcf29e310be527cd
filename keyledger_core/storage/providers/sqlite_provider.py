from __future__ import annotations
from contextlib import contextmanager
from typing import Optional, List
import sqlite3, os

from keyledger_core.constants import KEYS_TABLE, LOGS_TABLE, MAX_LOG_ENTRIES
from keyledger_core.errors import ConflictError, StorageError
from keyledger_core.logger import get_logger
from keyledger_core.storage.provider import StorageProvider
from keyledger_core.storage.models import KeyRecord, LogEntry, LogAction
from keyledger_core.utils import to_iso, parse_ts

log = get_logger("KeyLedger.Storage.SQLite")


class SQLiteStorage(StorageProvider):
    name = "sqlite"

    def __init__(self, path="db/keyledger.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(str(path)) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.path = str(path)
        try:
            self.db = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open {self.path}: {e}") from e
        self._depth = 0

        self._init()

    def _init(self) -> None:
        c = self.db.cursor()
        c.execute(f"""CREATE TABLE IF NOT EXISTS {KEYS_TABLE}(
            api_key TEXT PRIMARY KEY,
            expired TEXT NOT NULL,
            created_at TEXT NOT NULL,
            deleted INTEGER NOT NULL DEFAULT 0
        )""")
        c.execute(f"""CREATE TABLE IF NOT EXISTS {LOGS_TABLE}(
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            api_key TEXT NOT NULL,
            time TEXT NOT NULL
        )""")
        self.db.commit()
        log.info(f"[SQLITE] opened {self.path}")

    def execute(self, sql: str, params: tuple = ()):
        try:
            return self.db.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise StorageError(f"SQLite error: {e}") from e

    def _commit(self) -> None:
        # inside atomic() the outermost block commits
        if not self._depth:
            self.db.commit()

    @contextmanager
    def atomic(self):
        self._depth += 1
        try:
            yield
        except BaseException:
            if self._depth == 1:
                self.db.rollback()
            raise
        else:
            if self._depth == 1:
                self.db.commit()
        finally:
            self._depth -= 1

    @staticmethod
    def _row_to_record(row) -> KeyRecord:
        api_key, expired, created_at, deleted = row
        expired_at, created = parse_ts(expired), parse_ts(created_at)
        if expired_at is None or created is None:
            raise StorageError(f"Corrupt timestamps for key {api_key!r}")
        return KeyRecord(key=api_key, expired_at=expired_at, created_at=created, deleted=bool(deleted))

    # --- records ---

    def get_key(self, key: str) -> Optional[KeyRecord]:
        cur = self.execute(
            f"SELECT api_key,expired,created_at,deleted FROM {KEYS_TABLE} WHERE api_key=?", (key,)
        )
        row = cur.fetchone()
        if not row: return None
        return self._row_to_record(row)

    def insert_key(self, rec: KeyRecord) -> None:
        try:
            self.execute(
                f"INSERT INTO {KEYS_TABLE}(api_key,expired,created_at,deleted) VALUES(?,?,?,?)",
                (rec.key, to_iso(rec.expired_at), to_iso(rec.created_at), int(rec.deleted)),
            )
        except sqlite3.IntegrityError as e:
            log.warning(f"[SQLITE] unique violation key={rec.key}")
            raise ConflictError(rec.key) from e
        self._commit()

    def update_key(self, rec: KeyRecord) -> None:
        self.execute(
            f"UPDATE {KEYS_TABLE} SET expired=?, created_at=?, deleted=? WHERE api_key=?",
            (to_iso(rec.expired_at), to_iso(rec.created_at), int(rec.deleted), rec.key),
        )
        self._commit()

    def delete_key(self, key: str) -> bool:
        cur = self.execute(f"DELETE FROM {KEYS_TABLE} WHERE api_key=?", (key,))
        self._commit()
        return cur.rowcount > 0

    def list_keys(self) -> List[KeyRecord]:
        cur = self.execute(f"SELECT api_key,expired,created_at,deleted FROM {KEYS_TABLE} ORDER BY rowid")
        return [self._row_to_record(r) for r in cur.fetchall()]

    # --- activity log ---

    def append_log(self, entry: LogEntry) -> None:
        self.execute(
            f"INSERT INTO {LOGS_TABLE}(action,api_key,time) VALUES(?,?,?)",
            (entry.action.value, entry.key, to_iso(entry.time)),
        )
        self.execute(
            f"DELETE FROM {LOGS_TABLE} WHERE id NOT IN "
            f"(SELECT id FROM {LOGS_TABLE} ORDER BY id DESC LIMIT ?)",
            (MAX_LOG_ENTRIES,),
        )
        self._commit()

    def list_logs(self) -> List[LogEntry]:
        cur = self.execute(f"SELECT action,api_key,time FROM {LOGS_TABLE} ORDER BY id")
        entries = []
        for action, api_key, time in cur.fetchall():
            ts = parse_ts(time)
            if ts is None:
                raise StorageError(f"Corrupt log time {time!r}")
            entries.append(LogEntry(action=LogAction(action), key=api_key, time=ts))
        return entries

    def ping(self) -> None:
        self.execute("SELECT 1").fetchone()

    def close(self):
        self.db.close()
