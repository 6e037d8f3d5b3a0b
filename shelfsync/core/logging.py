"""
Structured logging for the client.

Records carry optional ``extra_fields`` (method, path, status, ids...) and
the id of the backend request in flight. ``setup_logging`` only touches the
``shelfsync`` logger; the host application owns the root logger.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from shelfsync.core.config import Settings, get_settings

PACKAGE_LOGGER = "shelfsync"

# Id of the backend request currently in flight, sent as X-Request-ID
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def __init__(
        self,
        app_name: str = PACKAGE_LOGGER,
        environment: str | None = None,
        include_location: bool = False,
    ):
        super().__init__()
        self.app_name = app_name
        self.environment = environment
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "app": self.app_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.environment:
            log_data["environment"] = self.environment

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(getattr(record, "extra_fields", None) or {})

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output with extra fields as ``key=value``."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        request_id = request_id_var.get()
        request_id_str = f"[{request_id[:8]}] " if request_id else ""
        name = record.name.removeprefix(f"{PACKAGE_LOGGER}.")

        line = (
            f"{color}{record.levelname:8}{self.RESET} "
            f"{request_id_str}"
            f"{name}: {record.getMessage()}"
        )

        fields = getattr(record, "extra_fields", None)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(settings: Settings | None = None) -> None:
    """Configure the ``shelfsync`` logger based on environment."""
    settings = settings or get_settings()

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)

    if settings.ENVIRONMENT == "production":
        handler.setFormatter(
            JSONFormatter(
                app_name=settings.APP_NAME,
                environment=settings.ENVIRONMENT,
                include_location=log_level <= logging.DEBUG,
            )
        )
    else:
        handler.setFormatter(DevelopmentFormatter())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    package_logger.handlers = [handler]
    package_logger.propagate = False

    # Per-request lines from httpx duplicate ours
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Merges a fixed context (an import id, a scope...) into ``extra_fields``."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["extra_fields"] = {**self.extra, **extra.get("extra_fields", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    return LoggerAdapter(get_logger(name), context)
