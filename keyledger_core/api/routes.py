"""Key management routes.

- GET    /                    -> service index
- GET    /health              -> storage connectivity
- GET    /keys                -> registered keys (deleted excluded unless asked)
- POST   /add                 -> register a key
- GET    /get/{api_key}       -> lifecycle status of a key
- POST   /deleted/{api_key}   -> soft delete
- DELETE /delete/{api_key}    -> hard delete
- GET    /logs                -> activity log, newest first
- GET    /stats               -> record counts
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from keyledger_core.constants import SERVICE_NAME
from keyledger_core.errors import StorageError
from keyledger_core.lifecycle import KeyStatus
from keyledger_core.logger import get_logger
from keyledger_core.manager import KeyManager
from keyledger_core.utils import now_ts, to_iso

log = get_logger("KeyLedger.HTTP")


class AddKeyRequest(BaseModel):
    api_key: str | None = None
    expired_time: str | None = None


def create_key_router(*, manager: KeyManager, prefix: str = "") -> APIRouter:
    """Create the key management router bound to ``manager``."""
    router = APIRouter(prefix=prefix, tags=["keys"])

    @router.get("/")
    def index() -> dict[str, Any]:
        return {
            "status": "ok",
            "message": SERVICE_NAME,
            "timestamp": now_ts(),
            "storage": manager.store.name,
            "endpoints": {
                "health": f"GET {prefix}/health",
                "keys": f"GET {prefix}/keys",
                "validate": f"GET {prefix}/get/:key",
                "add": f"POST {prefix}/add",
                "deleted": f"POST {prefix}/deleted/:key",
                "delete": f"DELETE {prefix}/delete/:key",
                "logs": f"GET {prefix}/logs",
                "stats": f"GET {prefix}/stats",
            },
        }

    @router.get("/health")
    def health() -> Any:
        try:
            body = manager.health()
        except StorageError as e:
            return JSONResponse(
                status_code=500,
                content={"status": "error", "message": f"Database connection failed: {e.message}"},
            )
        body["message"] = f"{SERVICE_NAME} is running"
        return body

    @router.get("/keys")
    def list_keys(include_deleted: bool = False) -> dict[str, Any]:
        return manager.list_keys(include_deleted=include_deleted)

    @router.post("/add")
    def add_key(body: AddKeyRequest) -> dict[str, Any]:
        log.info(f"[HTTP] add key={body.api_key} expired_time={body.expired_time}")
        rec = manager.register(body.api_key, body.expired_time)
        return {
            "status": "success",
            "message": "API key added successfully!",
            "key": rec.key,
            "expired": to_iso(rec.expired_at),
        }

    @router.get("/get/{api_key}")
    def get_key(api_key: str) -> JSONResponse:
        resolution = manager.check(api_key)
        status_code = 404 if resolution.status is KeyStatus.NOT_FOUND else 200
        return JSONResponse(status_code=status_code, content=resolution.to_payload())

    @router.post("/deleted/{api_key}")
    def mark_deleted(api_key: str) -> dict[str, Any]:
        manager.mark_deleted(api_key)
        return {"status": "success", "message": "API key marked as deleted!"}

    @router.delete("/delete/{api_key}")
    def purge(api_key: str) -> dict[str, Any]:
        manager.purge(api_key)
        return {"status": "success", "message": "API key permanently deleted!"}

    @router.get("/logs")
    def list_logs() -> list[dict[str, Any]]:
        return manager.list_logs()

    @router.get("/stats")
    def stats() -> dict[str, int]:
        return manager.stats()

    return router
