# keyledger_core/storage/__init__.py

from .models import KeyRecord, LogEntry, LogAction
from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.json_provider import JSONFileStorage
from .providers.sqlite_provider import SQLiteStorage
from .providers.rest_provider import RESTStorage
from keyledger_core.constants import DEFAULT_PROVIDER, DEFAULT_DATA_DIR, DEFAULT_DB_PATH, DEFAULT_REST_TIMEOUT
import os
import tempfile


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for selecting the runtime storage backend.

        - json (default)  flat JSON files under KEYLEDGER_DATA_DIR
        - json-tmp        JSON files under the system temp directory
        - sqlite          embedded database at KEYLEDGER_DB_PATH
        - rest            PostgREST / Supabase at SUPABASE_URL
        - memory
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("KEYLEDGER_STORAGE_PROVIDER", DEFAULT_PROVIDER)
    provider = provider.lower()

    if provider == "memory":
        return InMemoryStorage()

    if provider == "json":
        data_dir = config.get("data_dir") or os.getenv("KEYLEDGER_DATA_DIR", DEFAULT_DATA_DIR)
        return JSONFileStorage(data_dir)

    if provider == "json-tmp":
        return JSONFileStorage(os.path.join(tempfile.gettempdir(), "keyledger"))

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("KEYLEDGER_DB_PATH", DEFAULT_DB_PATH)
        return SQLiteStorage(db_path)

    if provider == "rest":
        base_url = config.get("rest_url") or os.getenv("SUPABASE_URL", "")
        api_key = config.get("rest_key") or os.getenv("SUPABASE_ANON_KEY", "")
        timeout = float(config.get("rest_timeout") or os.getenv("KEYLEDGER_REST_TIMEOUT", DEFAULT_REST_TIMEOUT))
        return RESTStorage(base_url, api_key, timeout=timeout)

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "KeyRecord",
    "LogEntry",
    "LogAction",
    "StorageProvider",
    "InMemoryStorage",
    "JSONFileStorage",
    "SQLiteStorage",
    "RESTStorage",
    "load_storage_provider",
]
