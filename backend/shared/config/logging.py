"""
Centralized structured logging for the backend.

Loggers accept keyword context next to the message:

    logger.info("Order created", order_id=12, table_number=3)

Production writes one JSON object per line; development writes colored
single-line records. Records carry the request correlation id when a
request is in flight.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

# Third-party loggers held at WARNING
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine", "slowapi")

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
_RESET = "\033[0m"
_DIM = "\033[2m"


def _request_id(record: logging.LogRecord) -> str | None:
    value = getattr(record, "request_id", None)
    return value if value and value != "-" else None


class StructuredFormatter(logging.Formatter):
    """JSON lines for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if request_id := _request_id(record):
            entry["request_id"] = request_id
        context = getattr(record, "context", None)
        if context:
            entry.update({k: v for k, v in context.items() if k not in entry})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored one-line records: time, level, request id, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno, _RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}{clock} {record.levelname:<8}{_RESET}"]

        if request_id := _request_id(record):
            parts.append(f"{_DIM}{request_id[:8]}{_RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")

        context = getattr(record, "context", None)
        if context:
            parts.append(" ".join(f"{k}={v}" for k, v in context.items()))

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose debug/info/warning/error calls take keyword context."""

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **context: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["context"] = context or None
        super()._log(
            level, msg, args,
            exc_info=exc_info, extra=extra, stack_info=stack_info, stacklevel=stacklevel + 1,
        )

    def debug(self, msg: object, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: object, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: object, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: object, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: object, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(logging.CRITICAL):
            self._log(logging.CRITICAL, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def _resolve_level() -> int:
    if settings.log_level:
        return logging.getLevelName(settings.log_level.upper())
    return logging.DEBUG if settings.debug else logging.INFO


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call more than once."""
    # Deferred: the infrastructure package imports this module
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = _resolve_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.error("Broadcast failed", event="orderCreated", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_email(email: str | None) -> str:
    """Shorten an email for logs: diner@example.com becomes di***@example.com."""
    if not email or "@" not in email:
        return "<no-email>"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


rest_api_logger = get_logger("rest_api")
order_logger = get_logger("rest_api.orders")
session_logger = get_logger("rest_api.sessions")
table_logger = get_logger("rest_api.tables")
auth_logger = get_logger("rest_api.auth")
