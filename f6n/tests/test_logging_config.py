"""
Where: f6n/tests/test_logging_config.py
What: Tests for the JSON formatter and YAML logging setup.
Why: The terminal belongs to the UI, so logs must land in the file as JSON.
"""

import json
import logging
import sys

import pytest

from f6n.core.logging_config import DEFAULT_CONFIG_PATH, CustomJsonFormatter, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    f6n_logger = logging.getLogger("f6n")
    saved = (root.handlers[:], root.level, f6n_logger.handlers[:], f6n_logger.level, f6n_logger.propagate)
    yield
    for logger in (root, f6n_logger):
        for handler in logger.handlers[:]:
            if handler not in saved[0] + saved[2]:
                handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    f6n_logger.handlers[:] = saved[2]
    f6n_logger.setLevel(saved[3])
    f6n_logger.propagate = saved[4]


class TestCustomJsonFormatter:
    def test_fields_and_extras(self):
        record = logging.LogRecord("f6n.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.function = "orders"

        data = json.loads(CustomJsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "f6n.test"
        assert data["message"] == "hello world"
        assert data["function"] == "orders"
        assert data["_time"].endswith("+00:00")

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("f6n", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(CustomJsonFormatter().format(record))
        assert "ValueError: bad" in data["exception"]


class TestSetupLogging:
    def test_packaged_config_exists(self):
        assert DEFAULT_CONFIG_PATH.exists()

    def test_yaml_substitution(self, tmp_path, restore_logging):
        log_file = tmp_path / "debug.log"

        setup_logging(log_level="debug", log_file=str(log_file))
        logging.getLogger("f6n.test").debug("stream started")
        for handler in logging.getLogger("f6n").handlers:
            handler.flush()

        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "stream started"
        assert data["level"] == "DEBUG"

    def test_custom_config_file(self, tmp_path, restore_logging):
        config = tmp_path / "logging.yml"
        config.write_text(
            "version: 1\n"
            "disable_existing_loggers: false\n"
            "handlers:\n"
            "  file:\n"
            "    class: logging.FileHandler\n"
            "    filename: ${LOG_FILE}\n"
            "loggers:\n"
            "  f6n:\n"
            "    level: ${LOG_LEVEL}\n"
            "    handlers: [file]\n"
            "    propagate: false\n"
        )
        log_file = tmp_path / "custom.log"

        setup_logging(str(config), "warning", str(log_file))

        assert logging.getLogger("f6n").level == logging.WARNING

    def test_missing_config_falls_back(self, tmp_path, monkeypatch, restore_logging):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        setup_logging(str(tmp_path / "missing.yml"), "error", str(tmp_path / "x.log"))

        assert calls[0]["filename"] == str(tmp_path / "x.log")
        assert calls[0]["level"] == "ERROR"
