import json
import logging

from keyledger_core.logger import get_logger


def test_logger_writes_json_lines_to_file(tmp_path):
    path = tmp_path / "logs" / "keyledger.log"
    log = get_logger("KeyLedger.Test.File", to_file=str(path))
    log.info("[ADD] key=abc")
    for h in log.handlers:
        h.flush()

    line = path.read_text().strip().splitlines()[-1]
    record = json.loads(line)
    assert record["level"] == "INFO"
    assert record["name"] == "KeyLedger.Test.File"
    assert record["msg"] == "[ADD] key=abc"
    assert record["ts"].endswith("Z")


def test_logger_level_from_env(monkeypatch):
    monkeypatch.setenv("KEYLEDGER_LOG_LEVEL", "debug")
    log = get_logger("KeyLedger.Test.Level")
    assert log.level == logging.DEBUG


def test_logger_attaches_handlers_once():
    a = get_logger("KeyLedger.Test.Once")
    b = get_logger("KeyLedger.Test.Once")
    assert a is b
    assert len(b.handlers) == 1
