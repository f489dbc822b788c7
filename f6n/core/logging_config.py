"""
Logging Configuration

Provides:
- CustomJsonFormatter: one JSON object per line, written to the debug log file
- setup_logging: YAML dictConfig loader with ${VAR} substitution

The terminal is owned by the UI, so nothing here writes to stdout/stderr.
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "logging.yml"

_STANDARD_ATTRS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. f6n.dispatcher)
      - message: Log message
      - any ``extra`` fields passed to the logging call
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
):
    """
    Load the YAML config, substitute environment variables, and initialize logging.

    Args:
        config_path: dictConfig YAML file. Defaults to the packaged logging.yml.
        log_level: Value for ${LOG_LEVEL}. Falls back to the environment, then INFO.
        log_file: Value for ${LOG_FILE}. Falls back to the environment, then f6n-debug.log.
    """
    mapping = os.environ.copy()
    if log_level:
        mapping["LOG_LEVEL"] = log_level.upper()
    mapping.setdefault("LOG_LEVEL", "INFO")
    if log_file:
        mapping["LOG_FILE"] = log_file
    mapping.setdefault("LOG_FILE", "f6n-debug.log")

    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logging.basicConfig(
            filename=mapping["LOG_FILE"],
            level=mapping["LOG_LEVEL"],
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return

    with open(path, "r", encoding="utf-8") as f:
        # Supports ${LOG_LEVEL} / ${LOG_FILE} format.
        template = string.Template(f.read())

    content = template.safe_substitute(mapping)
    config = yaml.safe_load(content)
    logging.config.dictConfig(config)
