"""Tests for logging configuration."""

import json
import logging

import pytest

from nimbridge import logging_config
from nimbridge.logging_config import JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging_config._configured = False


class TestConfigureLogging:
    def test_sets_level_and_handler(self):
        configure_logging(level="DEBUG", force=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_second_call_ignored(self):
        configure_logging(level="WARNING", force=True)
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.WARNING

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("NIMBRIDGE_LOG_LEVEL", "ERROR")

        configure_logging(force=True)

        assert logging.getLogger().level == logging.ERROR

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "nimbridge.log"

        configure_logging(level="INFO", file_path=str(log_file), force=True)
        logging.getLogger("nimbridge.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello file" in log_file.read_text()

    def test_json_format(self):
        configure_logging(level="INFO", format="json", force=True)

        assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)


def test_json_formatter_includes_extra():
    record = logging.LogRecord(
        "nimbridge.gateway", logging.INFO, __file__, 1, "hello %s", ("world",), None
    )
    record.trace_id = "00001_x"

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["logger"] == "nimbridge.gateway"
    assert data["extra"] == {"trace_id": "00001_x"}
