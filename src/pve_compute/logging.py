"""
JSON logging for the compute-resource adapter.

All loggers live under the ``pve_compute`` namespace and share one handler
installed on that logger. Each record is written to stderr as a single JSON
object. Guest and API context (``uuid``, ``operation``, ``node``) comes first
so that records about the same guest line up when grepped.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, IO, Optional

ROOT_LOGGER = "pve_compute"

# Keys every record about a guest or an API call is tagged with
CONTEXT_KEYS = ("uuid", "operation", "node")

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in CONTEXT_KEYS:
            if key in record.__dict__:
                entry[key] = record.__dict__[key]

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in entry:
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_handler(
    level: int = logging.INFO, stream: Optional[IO[str]] = None
) -> logging.Handler:
    """
    (Re)install the JSON handler on the package logger.

    Args:
        level: Level of the package logger
        stream: Target stream, stderr by default

    Returns:
        logging.Handler: The installed handler
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return handler


def set_level(level: int) -> None:
    logging.getLogger(ROOT_LOGGER).setLevel(level)


class StructuredLogger:
    """
    Logger whose keyword arguments become JSON fields.

    Context bound with ``bind`` is added to every record, e.g.
    ``get_logger(__name__).bind(uuid="qemu_100")``.
    """

    def __init__(self, name: str, **context: Any) -> None:
        self.logger = logging.getLogger(name)
        self.context = context

    def bind(self, **context: Any) -> "StructuredLogger":
        return StructuredLogger(self.logger.name, **{**self.context, **context})

    def _log(self, level: int, message: str, exc_info: bool, fields: Dict[str, Any]) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(
                level, message, exc_info=exc_info, extra={**self.context, **fields}
            )

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, False, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, False, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, False, kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info, kwargs)

    def critical(self, message: str, exc_info: bool = True, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, exc_info, kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger for a module of this package."""
    return StructuredLogger(name)


setup_handler()
logger = get_logger(ROOT_LOGGER)
