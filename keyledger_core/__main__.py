"""Run the key management API: ``python -m keyledger_core``."""

import os

import uvicorn

from keyledger_core.api import create_app
from keyledger_core.logger import get_logger, configure_server_logging

log = get_logger("KeyLedger")


def main() -> None:
    host = os.getenv("KEYLEDGER_HOST", "0.0.0.0")
    port = int(os.getenv("KEYLEDGER_PORT", "8000"))
    app = create_app()
    configure_server_logging()
    log.info(f"[SERVE] {host}:{port} storage={app.state.manager.store.name}")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
