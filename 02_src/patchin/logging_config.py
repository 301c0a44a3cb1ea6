"""Structured logging for the patch-in daemon and its command-line tools."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOG_PATH

# Never written to a log, even inside `context`
SECRET_FIELDS = frozenset({"private_key", "privateKey", "nsec"})

# Frame-level chatter from the transport libraries
NOISY_LOGGERS = ("websockets", "httpx", "httpcore")


def redact(value: Any) -> Any:
    """Mask secret fields in a (possibly nested) log context."""
    if isinstance(value, dict):
        return {
            k: "[redacted]" if k in SECRET_FIELDS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line; `extra={"context": {...}}` becomes a nested field."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Stats snapshots and per-event details
        if hasattr(record, "context"):
            log_data["context"] = redact(record.context)

        # Plaintext DMs and 🦀 commands are not ASCII
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console_format: str = "json",
    to_file: bool = True,
) -> None:
    """
    Configure the root logger.

    The daemon logs JSON to stdout and to a rotating file. The key and
    DM tools pass console_format="plain" and to_file=False so their
    output stays readable in a terminal.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Defaults to LOG_FILE env var or logs/patchin.log
                  under the project root.
        console_format: "json" or "plain".
        to_file: Also write to the rotating log file.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain" if console_format == "plain" else "json",
            "stream": "ext://sys.stdout",
        },
    }

    if to_file:
        if log_file is None:
            log_file = os.getenv("LOG_FILE") or str(DEFAULT_LOG_PATH)
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "patchin.logging_config.JSONFormatter"},
            "plain": {"format": "%(levelname)-7s %(name)s: %(message)s"},
        },
        "handlers": handlers,
        "loggers": {
            name: {"level": "WARNING"} for name in NOISY_LOGGERS
        },
        "root": {
            "level": log_level.upper(),
            "handlers": list(handlers),
        },
    })


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass __name__ so records carry the patchin.* path."""
    return logging.getLogger(name)
