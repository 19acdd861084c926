"""
Structured logging for the conversion engine.

Log events never carry the user's file names, paths or content: the
``filter_sensitive_data`` processor scrubs them before rendering.
"""

import logging
import logging.handlers
import os
import re
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

LOG_FILE_NAME = "fileconv.log"
REDACTED = "***REDACTED***"
MAX_REDACTION_DEPTH = 10

# Keys whose values may identify the user's files or their contents
SENSITIVE_KEYS = frozenset(
    {
        "file_path",
        "filename",
        "file_name",
        "path",
        "input_path",
        "output_path",
        "output_directory",
        "directory",
        "folder",
        "content",
        "text",
        "data",
        "checksum",
        "hash",
        "username",
        "email",
    }
)

# Libraries that log per page or per chunk at INFO/DEBUG
QUIET_LOGGERS = ("PIL", "pypdf", "reportlab", "chardet")

_VALUE_PATTERNS = (
    (re.compile(r"^(/|~/|[A-Za-z]:\\|\\\\)"), "***PATH_REDACTED***"),
    (
        re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
        "***EMAIL_REDACTED***",
    ),
    (
        re.compile(
            r"\.(txt|text|log|md|markdown|html?|csv|json|xml|pdf|docx|zip"
            r"|ya?ml|toml|css|m?js|svg|jpe?g|png|gif|bmp|webp|tiff?|ico)$",
            re.IGNORECASE,
        ),
        "***FILENAME_REDACTED***",
    ),
)


def _is_sensitive_key(key: Any) -> bool:
    name = str(key).lower()
    if name in SENSITIVE_KEYS:
        return True
    return any(name.endswith("_" + sensitive) for sensitive in SENSITIVE_KEYS)


def _redact(value: Any, depth: int = 0) -> Any:
    if depth > MAX_REDACTION_DEPTH:
        return "***DEPTH_LIMIT***"
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_sensitive_key(key) else _redact(item, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item, depth + 1) for item in value]
    if isinstance(value, os.PathLike):
        return "***PATH_REDACTED***"
    if isinstance(value, str):
        for pattern, replacement in _VALUE_PATTERNS:
            if pattern.search(value):
                return replacement
    return value


def filter_sensitive_data(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking paths, file names and content."""
    return _redact(event_dict)


def add_correlation_id(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag the event with the conversion bound in context, or a fresh id."""
    if "correlation_id" not in event_dict:
        bound = structlog.contextvars.get_contextvars()
        event_dict["correlation_id"] = bound.get("correlation_id") or str(
            uuid.uuid4()
        )
    return event_dict


def _build_handlers(
    level: int,
    enable_file_logging: bool,
    log_dir: str,
    max_log_size_mb: int,
    backup_count: int,
) -> List[logging.Handler]:
    # Console output goes to stderr
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if enable_file_logging:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=str(directory / LOG_FILE_NAME),
                maxBytes=max_log_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    enable_file_logging: bool = False,
    log_dir: str = "./logs",
    max_log_size_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Configure structlog on top of the stdlib logging module.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render events as JSON lines instead of console output
        enable_file_logging: Also write to a rotating log file
        log_dir: Directory for log files
        max_log_size_mb: Maximum size of each log file in MB
        backup_count: Number of rotated files to keep
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_correlation_id,
            filter_sensitive_data,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        handlers=_build_handlers(
            level, enable_file_logging, log_dir, max_log_size_mb, backup_count
        ),
        level=level,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_settings(settings: Optional[Any] = None) -> None:
    """Apply the logging section of ``Settings`` (the global one by default)."""
    if settings is None:
        from fileconv.config import settings

    setup_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        enable_file_logging=settings.logging_enabled,
        log_dir=settings.log_dir,
        max_log_size_mb=settings.max_log_size_mb,
        backup_count=settings.log_backup_count,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LoggingContext:
    """Bind key/values (e.g. ``correlation_id``) to every event in scope.

    Bindings live in contextvars, so they follow the conversion into
    executor threads started with ``contextvars.copy_context()``.
    """

    def __init__(self, **bindings: Any) -> None:
        self.bindings = bindings
        self._tokens: Dict[str, Any] = {}

    def __enter__(self) -> "LoggingContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.bindings)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}
