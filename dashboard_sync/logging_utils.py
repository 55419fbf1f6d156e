"""
Structured JSON logging utilities.

Sync failures are absorbed rather than raised, so logs are the only place
they surface. Stores log through ``SyncLoggerAdapter`` so every record says
which key and owner it concerns; ``StructuredJsonFormatter`` renders those
records as one JSON object per line for log collectors.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Context fields emitted ahead of any other extras
SYNC_CONTEXT_FIELDS = ("sync_key", "owner_id")

_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredJsonFormatter(logging.Formatter):
    """
    Render log records as single-line JSON.

    Fields: ``timestamp`` (record creation time, UTC), ``level``, ``logger``,
    ``message``, then the sync context fields, then any other ``extra``
    values. Values that are not JSON serializable are stringified.

    Args:
        include_location: Also emit ``module`` and ``line``
    """

    def __init__(self, include_location: bool = False) -> None:
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_location:
            log_obj["module"] = record.module
            log_obj["line"] = record.lineno

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        for key in SYNC_CONTEXT_FIELDS:
            if key in extras:
                log_obj[key] = _jsonable(extras.pop(key))
        for key, value in extras.items():
            log_obj[key] = _jsonable(value)

        return json.dumps(log_obj)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = "dashboard_sync",
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Send a logger's records to a stream as JSON lines.

    Existing handlers on the logger are replaced, so calling this twice does
    not duplicate output.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger;
            pass None for the root logger)
        stream: Destination (default: stdout)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class SyncLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps the store's key and owner on every record.

    Per-call ``extra`` values are kept; the store context wins on a clash.
    """

    @classmethod
    def for_store(cls, logger: logging.Logger, key: str, owner_id: str | None) -> "SyncLoggerAdapter":
        return cls(logger, {"sync_key": key, "owner_id": owner_id})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs
