"""
keyledger_core.errors
---------------------
Error hierarchy shared by the key manager, storage providers and HTTP layer.
Each error carries a stable ``code`` and the HTTP status it maps to.
"""

from __future__ import annotations


class KeyLedgerError(Exception):
    code = "KEYLEDGER_ERROR"
    http_status = 500

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(KeyLedgerError):
    """Missing or malformed input."""
    code = "VALIDATION_ERROR"
    http_status = 400


class ConflictError(KeyLedgerError):
    """A record with the same key already exists."""
    code = "CONFLICT"
    http_status = 409

    def __init__(self, key: str, message: str = "API key already exists!") -> None:
        self.key = key
        super().__init__(message)


class NotFoundError(KeyLedgerError):
    """Operation on a key that has no record."""
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, key: str, message: str = "API key not found!") -> None:
        self.key = key
        super().__init__(message)


class StorageError(KeyLedgerError):
    """Backing store read/write failure."""
    code = "STORAGE_ERROR"
    http_status = 500
