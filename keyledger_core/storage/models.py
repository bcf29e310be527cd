# keyledger_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from keyledger_core.utils import to_iso, parse_ts, utcnow


class LogAction(str, Enum):
    ADD = "add"
    DELETED = "deleted"   # soft delete
    DELETE = "delete"     # hard delete (purge)


@dataclass
class KeyRecord:
    """
    Storage-level representation of a registered API key.

    This is intentionally storage-agnostic and can be used by any provider
    (memory, JSON file, SQLite, remote REST).
    """
    key: str
    expired_at: datetime
    created_at: datetime = field(default_factory=utcnow)
    deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expired": to_iso(self.expired_at),
            "created_at": to_iso(self.created_at),
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "KeyRecord":
        expired_at = parse_ts(data.get("expired"))
        created_at = parse_ts(data.get("created_at"))
        if expired_at is None or created_at is None:
            raise ValueError(f"malformed timestamps for key {key!r}")
        return cls(
            key=key,
            expired_at=expired_at,
            created_at=created_at,
            deleted=bool(data.get("deleted", False)),
        )


@dataclass
class LogEntry:
    action: LogAction
    key: str
    time: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "api_key": self.key,
            "time": to_iso(self.time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        time = parse_ts(data.get("time"))
        if time is None:
            raise ValueError(f"malformed log time: {data.get('time')!r}")
        return cls(
            action=LogAction(data["action"]),
            key=data["api_key"],
            time=time,
        )
