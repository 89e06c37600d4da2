"""
Structured Logging for the Ariadna installer

Provides JSON-structured logging with correlation IDs so every install or
uninstall run can be traced end to end. Human-facing progress goes through the
rich console; these logs are the machine-readable side channel.

Usage:
    from ariadna.core.logging_config import get_logger, setup_logging

    logger = get_logger("ariadna.installer")
    logger.info("message", trace_id="...")

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: WARNING)
    LOG_DIR: Log file directory (default: ~/.claude/logs)
    LOG_TO_CONSOLE: true/false (default: true)
    LOG_TO_FILE: true/false (default: false)
    LOG_MAX_SIZE_MB: Max size per log file (default: 10)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_CONFIG = {
    "log_level": "WARNING",
    "log_dir": str(Path.home() / ".claude" / "logs"),
    "log_to_console": True,
    "log_to_file": False,
    "log_max_size_mb": 10,
    "log_backup_count": 3,
    "pretty_json": False,
}

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# LogRecord attributes that are never copied into the JSON payload
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "correlation_id",
})

_config: dict[str, Any] = {}
_loggers: dict[str, "StructuredLogger"] = {}
_correlation_id_context: threading.local = threading.local()


# =============================================================================
# Correlation ID Management
# =============================================================================

def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return getattr(_correlation_id_context, "correlation_id", None)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in thread-local context."""
    _correlation_id_context.correlation_id = correlation_id


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())[:8]


class CorrelationIdFilter(logging.Filter):
    """Filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or ""
        return True


# =============================================================================
# JSON Formatter
# =============================================================================

class StructuredJSONFormatter(logging.Formatter):
    """Formatter that outputs JSON with required fields for machine parsing."""

    def __init__(self, script_name: str = "", pretty: bool = False):
        super().__init__()
        self.script_name = script_name
        self.pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "script": self.script_name or record.name,
            "function": record.funcName,
            "message": record.getMessage(),
            "logger": record.name,
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_data["trace_id"] = correlation_id

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_data:
                continue
            log_data[key] = self._serialize_value(value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "Unknown",
                "traceback": self.formatException(record.exc_info),
            }

        if self.pretty:
            return json.dumps(log_data, indent=2, default=str)
        return json.dumps(log_data, default=str)

    def _serialize_value(self, value: Any) -> Any:
        """Serialize complex values to JSON-compatible types."""
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, (list, tuple, set)):
            return [self._serialize_value(v) for v in value]
        if isinstance(value, dict):
            return {str(k): self._serialize_value(v) for k, v in value.items()}
        return str(value)


# =============================================================================
# Structured Logger Class
# =============================================================================

class StructuredLogger:
    """Structured logger with correlation ID support."""

    def __init__(
        self,
        name: str,
        script_name: str = "",
        log_level: int = logging.WARNING,
        log_dir: str = "",
    ):
        self.name = name
        self.script_name = script_name or name
        self._logger = logging.getLogger(name)
        self._logger.setLevel(log_level)
        self._logger.handlers = []
        self._logger.filters = []

        config = _config.copy()
        log_dir = log_dir or config.get("log_dir", DEFAULT_CONFIG["log_dir"])

        self._logger.addFilter(CorrelationIdFilter())

        if config.get("log_to_console", DEFAULT_CONFIG["log_to_console"]):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(
                StructuredJSONFormatter(
                    script_name=self.script_name,
                    pretty=config.get("pretty_json", DEFAULT_CONFIG["pretty_json"]),
                )
            )
            self._logger.addHandler(console_handler)

        if config.get("log_to_file", DEFAULT_CONFIG["log_to_file"]):
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_path / f"{name}.log",
                maxBytes=config.get("log_max_size_mb", DEFAULT_CONFIG["log_max_size_mb"]) * 1024 * 1024,
                backupCount=config.get("log_backup_count", DEFAULT_CONFIG["log_backup_count"]),
                encoding="utf-8",
            )
            file_handler.setFormatter(StructuredJSONFormatter(script_name=self.script_name))
            self._logger.addHandler(file_handler)

    def _log(
        self,
        level: int,
        message: str,
        trace_id: str | None = None,
        **kwargs,
    ):
        """Internal log method with correlation ID support."""
        if trace_id:
            old_cid = get_correlation_id()
            set_correlation_id(trace_id)

        try:
            extra = {
                key: value
                for key, value in kwargs.items()
                if key not in ("exc_info", "stack_info", "stacklevel")
            }
            self._logger.log(
                level,
                message,
                exc_info=kwargs.get("exc_info"),
                stack_info=kwargs.get("stack_info", False),
                extra=extra,
            )
        finally:
            if trace_id:
                set_correlation_id(old_cid)

    def debug(self, message: str, trace_id: str | None = None, **kwargs):
        """DEBUG: Detailed flow tracing, per-file decisions."""
        self._log(logging.DEBUG, message, trace_id, **kwargs)

    def info(self, message: str, trace_id: str | None = None, **kwargs):
        """INFO: Key operations, state changes, milestones."""
        self._log(logging.INFO, message, trace_id, **kwargs)

    def warning(self, message: str, trace_id: str | None = None, **kwargs):
        """WARNING: Degraded state that the run recovers from."""
        self._log(logging.WARNING, message, trace_id, **kwargs)

    def error(
        self,
        message: str,
        trace_id: str | None = None,
        exc_info: bool | None = None,
        **kwargs,
    ):
        """ERROR: Failures that abort the current run."""
        self._log(logging.ERROR, message, trace_id, exc_info=exc_info, **kwargs)

    def measure_time(self, operation: str, trace_id: str | None = None):
        """Context manager to measure operation time.

        Usage:
            with logger.measure_time("copy_trees"):
                installer.copy_trees()
        """
        return _MeasureTime(self, operation, trace_id)


class _MeasureTime:
    """Context manager for measuring operation duration."""

    def __init__(
        self,
        logger: StructuredLogger,
        operation: str,
        trace_id: str | None = None,
    ):
        self.logger = logger
        self.operation = operation
        self.trace_id = trace_id
        self.start_time: float | None = None
        self.duration_ms: float | None = None

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc).timestamp()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (datetime.now(timezone.utc).timestamp() - self.start_time) * 1000
        if exc_type:
            self.logger.error(
                f"{self.operation} failed",
                trace_id=self.trace_id,
                duration_ms=round(self.duration_ms, 2),
                operation=self.operation,
                error=str(exc_val),
            )
        else:
            self.logger.debug(
                f"{self.operation} completed",
                trace_id=self.trace_id,
                duration_ms=round(self.duration_ms, 2),
                operation=self.operation,
            )
        return False


# =============================================================================
# Public API
# =============================================================================

def _env_flag(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


def setup_logging(
    log_level: str | None = None,
    log_dir: str | None = None,
    log_to_console: bool | None = None,
    log_to_file: bool | None = None,
    pretty_json: bool = False,
) -> dict[str, Any]:
    """Initialize the logging system.

    Explicit arguments win over environment variables, which win over
    DEFAULT_CONFIG. Loggers already handed out are reconfigured in place.

    Returns:
        Configuration dict
    """
    global _config

    _config = {
        "log_level": (log_level or os.environ.get("LOG_LEVEL", DEFAULT_CONFIG["log_level"])).upper(),
        "log_dir": log_dir or os.environ.get("LOG_DIR", DEFAULT_CONFIG["log_dir"]),
        "log_to_console": log_to_console if log_to_console is not None else
            _env_flag("LOG_TO_CONSOLE", DEFAULT_CONFIG["log_to_console"]),
        "log_to_file": log_to_file if log_to_file is not None else
            _env_flag("LOG_TO_FILE", DEFAULT_CONFIG["log_to_file"]),
        "log_max_size_mb": int(os.environ.get("LOG_MAX_SIZE_MB", DEFAULT_CONFIG["log_max_size_mb"])),
        "log_backup_count": int(os.environ.get("LOG_BACKUP_COUNT", DEFAULT_CONFIG["log_backup_count"])),
        "pretty_json": pretty_json,
    }

    # Loggers are cached by module-level references, so reconfigure in place
    level = LOG_LEVELS.get(_config["log_level"], logging.WARNING)
    for name, existing in list(_loggers.items()):
        _loggers[name] = StructuredLogger(
            name=name,
            script_name=existing.script_name,
            log_level=level,
            log_dir=_config["log_dir"],
        )
    return _config


def get_logger(
    name: str,
    script_name: str = "",
    log_level: str | None = None,
) -> StructuredLogger:
    """Get or create a structured logger.

    Args:
        name: Logger name (usually module name)
        script_name: Script name for log context
        log_level: Override log level

    Returns:
        StructuredLogger instance
    """
    if name in _loggers:
        return _loggers[name]

    if not _config:
        setup_logging()

    level_name = (log_level or _config.get("log_level", "WARNING")).upper()
    logger = StructuredLogger(
        name=name,
        script_name=script_name,
        log_level=LOG_LEVELS.get(level_name, logging.WARNING),
        log_dir=_config.get("log_dir"),
    )
    _loggers[name] = logger
    return logger
