"""Logging configuration for gitbridge."""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from datetime import datetime

from config import _config_dir


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'pid': getattr(record, 'pid', None),
        }

        # Add exception info if present
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, 'extra_data'):
            log_entry['extra'] = record.extra_data

        return json.dumps(log_entry, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Add contextual information to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context to log record."""
        record.pid = os.getpid()
        return True


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = True,
    log_to_console: bool = True,
    json_format: bool = False,
    log_dir: Path | None = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Setup logging for the process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to file
        log_to_console: Whether to log to console (stderr, so stdout stays machine-readable)
        json_format: Whether to use JSON formatting
        log_dir: Directory for log files, defaults to the config dir's ``logs``
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(root_logger.level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(ContextFilter())
        root_logger.addHandler(console_handler)

    if log_to_file:
        target_dir = log_dir or (_config_dir() / "logs")
        target_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            target_dir / "gitbridge.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ContextFilter())
        root_logger.addHandler(file_handler)

        # Separate error log file
        error_handler = logging.handlers.RotatingFileHandler(
            target_dir / "errors.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(ContextFilter())
        root_logger.addHandler(error_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, message: str, exc_info: bool = True, **kwargs):
    """Log an exception with additional context."""
    logger.error(message, exc_info=exc_info, extra={'extra_data': kwargs})


def log_performance(logger: logging.Logger, operation: str, duration: float, **kwargs):
    """Log performance metrics."""
    extra_data = {
        'operation': operation,
        'duration_ms': round(duration * 1000, 2),
        **kwargs
    }
    logger.debug(f"Performance: {operation} took {duration:.3f}s", extra={'extra_data': extra_data})


def configure_qt_logging():
    """Route Qt's own diagnostics into the ``qt`` logger."""
    from PySide6.QtCore import qInstallMessageHandler, QtMsgType

    def qt_message_handler(msg_type: QtMsgType, context, message: str):
        """Handle Qt log messages."""
        qt_logger = get_logger('qt')

        if msg_type == QtMsgType.QtDebugMsg:
            qt_logger.debug(f"Qt: {message}")
        elif msg_type == QtMsgType.QtInfoMsg:
            qt_logger.info(f"Qt: {message}")
        elif msg_type == QtMsgType.QtWarningMsg:
            qt_logger.warning(f"Qt: {message}")
        elif msg_type == QtMsgType.QtCriticalMsg:
            qt_logger.error(f"Qt: {message}")
        elif msg_type == QtMsgType.QtFatalMsg:
            qt_logger.critical(f"Qt: {message}")

    qInstallMessageHandler(qt_message_handler)
