import logging, json, sys, time, os

_FORMAT = json.dumps({
    "ts": "%(asctime)s",
    "level": "%(levelname)s",
    "name": "%(name)s",
    "msg": "%(message)s"
})


def _formatter():
    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime  # UTC timestamps
    return formatter


def get_logger(name="keyledger", level=None, to_file=None):
    """
    Structured logger shared by all KeyLedger components.

    level   defaults to KEYLEDGER_LOG_LEVEL (INFO)
    to_file defaults to KEYLEDGER_LOG_FILE (stdout only when unset)
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or os.getenv("KEYLEDGER_LOG_LEVEL", "INFO").upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter())
        logger.addHandler(handler)

        to_file = to_file or os.getenv("KEYLEDGER_LOG_FILE")
        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(_formatter())
            logger.addHandler(file_handler)

    return logger


def configure_server_logging():
    """Route uvicorn's own loggers through the same JSON format."""
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        server_log = logging.getLogger(name)
        server_log.handlers.clear()
        server_log.propagate = False
        get_logger(name)
