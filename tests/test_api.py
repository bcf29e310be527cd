from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from keyledger_core.api import create_app
from keyledger_core.errors import StorageError
from keyledger_core.manager import KeyManager
from keyledger_core.storage import InMemoryStorage, JSONFileStorage


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2030, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def client(clock):
    manager = KeyManager(InMemoryStorage(), clock=clock)
    return TestClient(create_app(manager, prefix=""))


def _add(client, key="abc", expired="2099-01-01T00:00:00Z"):
    return client.post("/add", json={"api_key": key, "expired_time": expired})


def test_add_then_get_valid(client):
    res = _add(client)
    assert res.status_code == 200
    assert res.json() == {
        "status": "success",
        "message": "API key added successfully!",
        "key": "abc",
        "expired": "2099-01-01T00:00:00.000Z",
    }

    res = client.get("/get/abc")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "valid"
    assert body["valid"] is True
    assert body["created_at"] == "2030-01-01T00:00:00.000Z"


def test_get_after_expiry(client, clock):
    _add(client)
    clock.now = datetime(2099, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    body = client.get("/get/abc").json()
    assert body["status"] == "expired"
    assert body["expired"] is True


def test_soft_delete_reports_deleted_before_expiry(client):
    _add(client)
    res = client.post("/deleted/abc")
    assert res.status_code == 200
    assert res.json()["status"] == "success"

    body = client.get("/get/abc").json()
    assert body == {"status": "deleted", "message": "API key has been deleted!", "deleted": True}


def test_unknown_key_is_invalid_404(client):
    res = client.get("/get/nope")
    assert res.status_code == 404
    assert res.json()["status"] == "invalid"


def test_add_missing_api_key_is_400(client):
    res = client.post("/add", json={"expired_time": "2099-01-01T00:00:00Z"})
    assert res.status_code == 400
    assert res.json() == {"status": "error", "message": "API key and expiration time are required!"}


def test_add_bad_date_is_400(client):
    res = _add(client, expired="someday")
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid date format!"


def test_add_without_body_is_400(client):
    res = client.post("/add")
    assert res.status_code == 400
    assert res.json()["status"] == "error"


def test_add_twice_conflicts(client):
    assert _add(client).status_code == 200
    res = _add(client)
    assert res.status_code == 409
    assert res.json() == {"status": "error", "message": "API key already exists!"}


def test_delete_unknown_key_404(client):
    assert client.post("/deleted/ghost").status_code == 404
    assert client.delete("/delete/ghost").status_code == 404


def test_hard_delete_then_readd(client):
    _add(client)
    res = client.delete("/delete/abc")
    assert res.status_code == 200
    assert client.get("/get/abc").status_code == 404
    assert _add(client).status_code == 200


def test_keys_listing_filters_deleted(client):
    _add(client, "a")
    _add(client, "b")
    client.post("/deleted/a")

    assert list(client.get("/keys").json()) == ["b"]
    assert set(client.get("/keys", params={"include_deleted": "true"}).json()) == {"a", "b"}


def test_logs_newest_first(client):
    _add(client)
    client.post("/deleted/abc")
    client.delete("/delete/abc")

    logs = client.get("/logs").json()
    assert [e["action"] for e in logs] == ["delete", "deleted", "add"]
    assert set(logs[0]) == {"action", "api_key", "time"}


def test_stats_and_health(client):
    _add(client, "a")
    _add(client, "b")
    client.post("/deleted/a")
    assert client.get("/stats").json() == {"total": 2, "deleted": 1, "active": 1}

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["storage_connected"] is True


def test_health_storage_failure_is_500(clock):
    store = InMemoryStorage()

    def broken_ping():
        raise StorageError("unreachable")

    store.ping = broken_ping
    client = TestClient(create_app(KeyManager(store, clock=clock), prefix=""))
    res = client.get("/health")
    assert res.status_code == 500
    assert res.json() == {"status": "error", "message": "Database connection failed: unreachable"}


def test_storage_error_is_500_json(clock):
    store = InMemoryStorage()

    def broken_list():
        raise StorageError("Failed to read keys")

    store.list_keys = broken_list
    client = TestClient(create_app(KeyManager(store, clock=clock), prefix=""))
    res = client.get("/keys")
    assert res.status_code == 500
    assert res.json() == {"status": "error", "message": "Failed to read keys"}


def test_unknown_route(client):
    res = client.get("/nowhere")
    assert res.status_code == 404
    assert res.json() == {"status": "error", "message": "Endpoint not found: /nowhere"}


def test_prefix_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("KEYLEDGER_API_PREFIX", "/api")
    app = create_app(storage_config={"provider": "json", "data_dir": str(tmp_path)})
    client = TestClient(app)

    assert client.post("/api/add", json={"api_key": "abc", "expired_time": "2099-01-01"}).status_code == 200
    assert client.get("/api/get/abc").json()["status"] == "valid"
    assert isinstance(app.state.manager.store, JSONFileStorage)
    assert client.get("/api/").json()["endpoints"]["add"] == "POST /api/add"


def test_cors_preflight(client):
    res = client.options(
        "/add",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "POST"},
    )
    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"


def test_early_year_key_keeps_listing_readable(clock, tmp_path):
    manager = KeyManager(JSONFileStorage(tmp_path), clock=clock)
    client = TestClient(create_app(manager, prefix=""))

    res = _add(client, "old", "0099-01-01T00:00:00Z")
    assert res.status_code == 200
    assert res.json()["expired"] == "0099-01-01T00:00:00.000Z"

    assert client.get("/keys").status_code == 200
    assert client.get("/stats").json() == {"total": 1, "deleted": 0, "active": 1}
    assert client.get("/get/old").json()["status"] == "expired"


def test_add_out_of_range_expiry_is_400(client):
    res = _add(client, expired="9999-12-31T23:59:59-01:00")
    assert res.status_code == 400
    assert res.json() == {"status": "error", "message": "Invalid date format!"}
