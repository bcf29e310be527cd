# keyledger_core/storage/providers/rest_provider.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

import requests

from keyledger_core.constants import KEYS_TABLE, LOGS_TABLE, MAX_LOG_ENTRIES, DEFAULT_REST_TIMEOUT
from keyledger_core.errors import ConflictError, StorageError
from keyledger_core.logger import get_logger
from keyledger_core.storage.models import KeyRecord, LogEntry
from keyledger_core.storage.provider import StorageProvider

log = get_logger("KeyLedger.Storage.REST")

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

RECORD_COLUMNS = "api_key,expired,created_at,deleted"
LOG_COLUMNS = "id,action,api_key,time"


class RESTStorage(StorageProvider):
    """
    Remote relational backend reached over a PostgREST-compatible API
    (e.g. Supabase ``/rest/v1``).

    Expected tables:
      api_keys(api_key text primary key, expired timestamptz,
               created_at timestamptz, deleted boolean)
      activity_logs(id bigserial primary key, action text,
                    api_key text, time timestamptz)

    There is no cross-request transaction: ``atomic()`` is a no-op and the
    backend's primary key is the authority on uniqueness.
    """
    name = "rest"

    def __init__(self, base_url: str, api_key: str, timeout: float = DEFAULT_REST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("REST storage requires a base URL")
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------
    def _request(self, method: str, table: str, *, params: Optional[Dict[str, Any]] = None,
                 json: Any = None, prefer: Optional[str] = None,
                 conflict_key: Optional[str] = None) -> Any:
        url = f"{self.base_url}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        log.debug(f"[REST] {method} {url} params={params}")
        try:
            res = self.session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            log.error(f"[REST] {method} {url} failed: {e}")
            raise StorageError(f"Remote storage unreachable: {e}") from e

        if not res.ok:
            code = self._error_code(res)
            if conflict_key is not None and (res.status_code == 409 or code == UNIQUE_VIOLATION):
                raise ConflictError(conflict_key)
            log.error(f"[REST] {method} {url} -> {res.status_code}: {res.text}")
            raise StorageError(f"Remote storage error {res.status_code}: {res.text}")

        if not res.content:
            return None
        try:
            return res.json()
        except ValueError as e:
            raise StorageError(f"Remote storage returned invalid JSON: {e}") from e

    @staticmethod
    def _error_code(res) -> Optional[str]:
        try:
            body = res.json()
        except ValueError:
            return None
        return body.get("code") if isinstance(body, dict) else None

    @staticmethod
    def _row_to_record(row: Dict[str, Any]) -> KeyRecord:
        try:
            return KeyRecord.from_dict(row["api_key"], row)
        except (KeyError, ValueError) as e:
            raise StorageError(f"Malformed api_keys row: {e}") from e

    @staticmethod
    def _row_to_entry(row: Dict[str, Any]) -> LogEntry:
        try:
            return LogEntry.from_dict(row)
        except (KeyError, ValueError) as e:
            raise StorageError(f"Malformed activity_logs row: {e}") from e

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def get_key(self, key: str) -> Optional[KeyRecord]:
        rows = self._request("GET", KEYS_TABLE, params={"select": RECORD_COLUMNS, "api_key": f"eq.{key}"})
        if not rows:
            return None
        return self._row_to_record(rows[0])

    def insert_key(self, rec: KeyRecord) -> None:
        row = {"api_key": rec.key, **rec.to_dict()}
        self._request("POST", KEYS_TABLE, json=[row], prefer="return=minimal", conflict_key=rec.key)

    def update_key(self, rec: KeyRecord) -> None:
        self._request(
            "PATCH", KEYS_TABLE,
            params={"api_key": f"eq.{rec.key}"},
            json=rec.to_dict(),
            prefer="return=minimal",
        )

    def delete_key(self, key: str) -> bool:
        rows = self._request(
            "DELETE", KEYS_TABLE,
            params={"api_key": f"eq.{key}"},
            prefer="return=representation",
        )
        return bool(rows)

    def list_keys(self) -> List[KeyRecord]:
        rows = self._request("GET", KEYS_TABLE, params={"select": RECORD_COLUMNS, "order": "created_at.asc"})
        return [self._row_to_record(r) for r in rows or []]

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------
    def append_log(self, entry: LogEntry) -> None:
        self._request("POST", LOGS_TABLE, json=[entry.to_dict()], prefer="return=minimal")

        surplus = self._request(
            "GET", LOGS_TABLE,
            params={"select": "id", "order": "id.desc", "offset": MAX_LOG_ENTRIES},
        )
        ids = [str(r["id"]) for r in surplus or []]
        if ids:
            log.debug(f"[REST] trimming {len(ids)} log rows")
            self._request("DELETE", LOGS_TABLE, params={"id": f"in.({','.join(ids)})"})

    def list_logs(self) -> List[LogEntry]:
        rows = self._request(
            "GET", LOGS_TABLE,
            params={"select": LOG_COLUMNS, "order": "id.desc", "limit": MAX_LOG_ENTRIES},
        )
        return [self._row_to_entry(r) for r in reversed(rows or [])]

    def ping(self) -> None:
        self._request("GET", KEYS_TABLE, params={"select": "api_key", "limit": 1})

    def close(self) -> None:
        self.session.close()
