"""Tests for structured logging."""

import json
import logging

import pytest

from patchin.logging_config import JSONFormatter, redact, setup_logging


def _record(message: str, context=None) -> logging.LogRecord:
    record = logging.LogRecord("patchin.app", logging.INFO, __file__, 1, message, (), None)
    if context is not None:
        record.context = context
    return record


class TestJSONFormatter:
    def test_context_is_nested(self):
        line = JSONFormatter().format(_record("Stats", {"total_received": 3}))
        data = json.loads(line)

        assert data["message"] == "Stats"
        assert data["logger"] == "patchin.app"
        assert data["context"] == {"total_received": 3}

    def test_private_keys_are_redacted(self):
        line = JSONFormatter().format(
            _record("Starting daemon", {"private_key": "a" * 64, "relays": ["wss://r"]})
        )
        assert "a" * 64 not in line
        assert json.loads(line)["context"]["private_key"] == "[redacted]"

    def test_dm_text_stays_readable(self):
        line = JSONFormatter().format(_record("🦀status ünïcode"))
        assert "🦀status ünïcode" in line


def test_redact_walks_nested_values():
    assert redact({"outer": [{"nsec": "nsec1xyz", "ok": 1}]}) == {
        "outer": [{"nsec": "[redacted]", "ok": 1}]
    }


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    noisy = logging.getLogger("websockets").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("websockets").setLevel(noisy)


def test_setup_writes_json_file(tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "patchin.log"
    setup_logging(log_level="DEBUG", log_file=str(log_file))

    logging.getLogger("patchin.test").info("hello", extra={"context": {"n": 1}})
    for handler in logging.getLogger().handlers:
        handler.flush()

    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert entry["message"] == "hello"
    assert entry["context"] == {"n": 1}
    assert logging.getLogger("websockets").level == logging.WARNING


def test_setup_without_file(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "unused.log"))
    setup_logging(console_format="plain", to_file=False)

    root = logging.getLogger()
    assert [type(h) for h in root.handlers] == [logging.StreamHandler]
    assert not (tmp_path / "unused.log").exists()
