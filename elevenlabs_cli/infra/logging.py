"""
Centralized Logging
-------------------
Structured logging with request_id propagation.

Design:
- Every tool-server request (and every CLI command) gets a request_id
- request_id propagates through: Server -> Dispatcher -> ResilientCaller -> Client
- Console output goes to stderr via Rich, so stdout stays free for protocol
  traffic and command output
- Optional JSON file output for post-mortems
- Severity discipline: INFO=state, WARNING=recoverable, ERROR=abort

Usage:
    from elevenlabs_cli.infra.logging import get_logger, RequestContext

    logger = get_logger("server")

    with RequestContext() as request_id:
        logger.info("Dispatching")
"""

import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "elevenlabs"

# Context variable for request_id - thread-safe and async-safe
_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return _request_id_var.get()


def set_request_id(request_id: str) -> contextvars.Token:
    return _request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    _request_id_var.reset(token)


class RequestContext:
    """
    Context manager for request scoping.

    Usage:
        with RequestContext() as request_id:
            # All logs within this block carry request_id
            logger.info("Processing...")
    """

    def __init__(self, request_id: Optional[str] = None):
        self._request_id = request_id or generate_request_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_request_id(self._request_id)
        return self._request_id

    def __exit__(self, *args) -> None:
        if self._token is not None:
            reset_request_id(self._token)


class RequestIdFilter(logging.Filter):
    """Logging filter that adds request_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    EXTRA_FIELDS = ("operation", "attempts", "execution_time_ms", "success", "kind")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Prefix console messages with the request ID when there is one."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        request_id = getattr(record, "request_id", "-")
        if request_id and request_id != "-":
            return f"[{request_id}] {record.name}: {message}"
        return f"{record.name}: {message}"


# Global configuration state
_logging_initialized = False
_log_file_path: Optional[Path] = None

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 3


def configure_logging(
    level: Union[int, str] = logging.WARNING,
    log_file: Optional[str] = None,
    console: bool = True,
    force: bool = False,
) -> None:
    """
    Configure the elevenlabs logging system.

    Args:
        level: Console logging level (default WARNING)
        log_file: Path of a JSON log file (disabled if None)
        console: Enable Rich console output on stderr
        force: Reconfigure even if already configured
    """
    global _logging_initialized, _log_file_path

    if _logging_initialized and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG if log_file else level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.propagate = False

    request_filter = RequestIdFilter()

    if console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter("%(message)s"))
        console_handler.addFilter(request_filter)
        root_logger.addHandler(console_handler)

    if log_file:
        _log_file_path = Path(log_file).expanduser()
        _log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            str(_log_file_path),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(request_filter)
        root_logger.addHandler(file_handler)

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the elevenlabs namespace.

    Args:
        name: Logger name (prefixed with 'elevenlabs.' if not already)
    """
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
