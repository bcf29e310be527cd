"""
keyledger_core.lifecycle
------------------------
Resolves the reported status of an API key at a given instant.

Precedence is fixed: missing record > deleted > expired > valid. A key whose
expiration equals ``now`` is still valid; it expires strictly after.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .storage.models import KeyRecord
from .utils import to_iso


class KeyStatus(str, Enum):
    NOT_FOUND = "invalid"
    DELETED = "deleted"
    EXPIRED = "expired"
    VALID = "valid"


@dataclass(frozen=True)
class Resolution:
    status: KeyStatus
    record: Optional[KeyRecord] = None

    @property
    def found(self) -> bool:
        return self.status is not KeyStatus.NOT_FOUND

    def to_payload(self) -> Dict[str, Any]:
        if self.status is KeyStatus.NOT_FOUND:
            return {"status": self.status.value, "message": "API key not found!"}
        if self.status is KeyStatus.DELETED:
            return {"status": self.status.value, "message": "API key has been deleted!", "deleted": True}
        if self.status is KeyStatus.EXPIRED:
            return {
                "status": self.status.value,
                "message": "API key has expired!",
                "expired_time": to_iso(self.record.expired_at),
                "expired": True,
            }
        return {
            "status": self.status.value,
            "message": "API key is valid",
            "expired_time": to_iso(self.record.expired_at),
            "created_at": to_iso(self.record.created_at),
            "valid": True,
        }


def resolve(record: Optional[KeyRecord], now: datetime) -> Resolution:
    if record is None:
        return Resolution(KeyStatus.NOT_FOUND)
    if record.deleted:
        return Resolution(KeyStatus.DELETED, record)
    if now > record.expired_at:
        return Resolution(KeyStatus.EXPIRED, record)
    return Resolution(KeyStatus.VALID, record)
