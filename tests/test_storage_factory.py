import tempfile
import os

import pytest

from keyledger_core.storage import (
    load_storage_provider, InMemoryStorage, JSONFileStorage, SQLiteStorage, RESTStorage,
)


def test_factory_config_modes(tmp_path):
    assert isinstance(load_storage_provider({"provider": "memory"}), InMemoryStorage)

    s = load_storage_provider({"provider": "json", "data_dir": str(tmp_path / "data")})
    assert isinstance(s, JSONFileStorage)
    assert (tmp_path / "data" / "keys.json").exists()

    s = load_storage_provider({"provider": "sqlite", "sqlite_path": str(tmp_path / "k.db")})
    assert isinstance(s, SQLiteStorage)
    s.close()

    s = load_storage_provider({"provider": "rest", "rest_url": "https://db.example.co", "rest_key": "k"})
    assert isinstance(s, RESTStorage)
    assert s.base_url == "https://db.example.co/rest/v1"


def test_factory_env_modes(monkeypatch, tmp_path):
    monkeypatch.setenv("KEYLEDGER_STORAGE_PROVIDER", "sqlite")
    monkeypatch.setenv("KEYLEDGER_DB_PATH", str(tmp_path / "env.db"))
    s = load_storage_provider()
    assert isinstance(s, SQLiteStorage)
    assert s.path == str(tmp_path / "env.db")
    s.close()

    monkeypatch.setenv("KEYLEDGER_STORAGE_PROVIDER", "json")
    monkeypatch.setenv("KEYLEDGER_DATA_DIR", str(tmp_path / "envdata"))
    s = load_storage_provider()
    assert isinstance(s, JSONFileStorage)
    assert s.data_dir == str(tmp_path / "envdata")

    monkeypatch.setenv("KEYLEDGER_STORAGE_PROVIDER", "rest")
    monkeypatch.setenv("SUPABASE_URL", "https://env.example.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    assert isinstance(load_storage_provider(), RESTStorage)


def test_factory_tmp_json_uses_temp_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    monkeypatch.setenv("KEYLEDGER_STORAGE_PROVIDER", "json-tmp")
    s = load_storage_provider()
    assert isinstance(s, JSONFileStorage)
    assert s.data_dir == os.path.join(tempfile.gettempdir(), "keyledger")


def test_factory_unknown_provider():
    with pytest.raises(ValueError):
        load_storage_provider({"provider": "cassandra"})
