"""
CLI logging bootstrap.
Installs a Rich console handler and, optionally, a JSONL file sink.
"""

import json
import logging
import os
from datetime import UTC
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEFAULT_LEVEL = os.environ.get("PROTOSYNC_LOG_LEVEL", "INFO").upper()
DEFAULT_JSON_PATH = os.environ.get("PROTOSYNC_LOG_PATH")

LEVELS = ["trace", "debug", "info", "warning", "error"]

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RECORD_ATTRS = frozenset(
    (
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "name",
        "taskName",
        "message",
    )
)


class JsonlHandler(logging.Handler):
    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            payload = {
                "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            for k, v in record.__dict__.items():
                if k not in _RECORD_ATTRS:
                    payload.setdefault(k, v)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


def parse_level(level: str | int) -> int:
    """Map a level name ("trace", "debug", ...) or number to a logging level."""
    if isinstance(level, int):
        return level
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"invalid log level {level!r}")
    return value


def init_logging(
    level: str | int | None = None,
    json_path: str | Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``protosync`` logger for CLI use and return it.

    Only the package logger is touched, so embedding applications and tests
    keep control of the root logger.
    """
    logger = logging.getLogger("protosync")
    logger.setLevel(parse_level(level or DEFAULT_LEVEL))
    logger.propagate = False
    for handler in list(logger.handlers):
        if isinstance(handler, (RichHandler, JsonlHandler)):
            logger.removeHandler(handler)
            handler.close()

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
    )
    json_path = json_path or DEFAULT_JSON_PATH
    if json_path:
        logger.addHandler(JsonlHandler(json_path))
    return logger
