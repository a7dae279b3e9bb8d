"""
Logging utilities for the Vehicle Report Pipeline

Provides structured JSON logging and per-job log context. Context values
(inspection_id, job_id, sequence_order) live in a ContextVar so concurrent
inspections driven on one event loop do not leak context into each other.
"""

import logging
import sys
import json
from contextvars import ContextVar
from datetime import datetime
from typing import Dict, Any, Optional
from pathlib import Path

PACKAGE_LOGGER = "vehicle_report_pipeline"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("vrp_log_context", default={})

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'exc_info', 'exc_text',
    'stack_info', 'taskName'
}


class StructuredFormatter(logging.Formatter):
    """
    Formats log records as JSON lines.

    Extra fields passed through ``extra={...}`` and the active job context
    are nested under ``extra``.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        if self.include_extra:
            extra_fields = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS
            }
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class JobContextFilter(logging.Filter):
    """Copies the active job context onto every record that passes through."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured JSON logging
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    # Avoid adding handlers multiple times
    if any(not isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        return logger

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(JobContextFilter())
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(JobContextFilter())
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_log_context(**kwargs):
    """Add values to the active log context."""
    context = dict(_log_context.get())
    context.update(kwargs)
    _log_context.set(context)


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context():
    """Clear the active log context."""
    _log_context.set({})


class LoggerContext:
    """
    Context manager for temporary log context.

    Example:
        with LoggerContext(inspection_id=job.inspection_id, job_id=job.job_id):
            logger.info("Running job")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        context = dict(_log_context.get())
        context.update(self.context)
        self._token = _log_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
