"""
Centralized logging configuration for the Reporting Studio NLQ engine.
"""

import logging
import os
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Context var to hold request/trace id
REQUEST_ID: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class UTCFormatter(logging.Formatter):
    """Formatter that renders %(asctime)s in UTC."""
    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime('%Y-%m-%dT%H:%M:%SZ')


class RequestIdFilter(logging.Filter):
    """Inject request_id from contextvar into log records."""
    def filter(self, record: logging.LogRecord) -> bool:
        rid = REQUEST_ID.get()
        if not hasattr(record, "request_id"):
            record.request_id = rid or "-"
        return True


class LoggerManager:
    """Manages application-wide logging configuration."""

    _instance: Optional['LoggerManager'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize logger manager (singleton pattern)."""
        if not LoggerManager._initialized:
            self.log_dir = Path(os.getenv("REPORTSTUDIO_LOG_DIR", "logs"))
            LoggerManager._initialized = True

    def setup_logging(self, level: str = "INFO", log_to_file: bool = True) -> None:
        """
        Configure application-wide logging.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_to_file: Also write a detailed log to <log_dir>/app.log
        """
        log_level = getattr(logging, level.upper(), logging.INFO)

        detailed_formatter = UTCFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - [rid:%(request_id)s] - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        req_filter = RequestIdFilter()

        # If terminal does not support ANSI, strip codes from console output
        supports_color = sys.stdout.isatty() and os.getenv("TERM") not in (None, "dumb")

        class _StripANSIFormatter(UTCFormatter):
            ansi_re = re.compile(r"\x1b\[[0-9;]*m")

            def format(self, record):
                s = super().format(record)
                return s if supports_color else self.ansi_re.sub("", s)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(_StripANSIFormatter(
            '%(asctime)s - %(levelname)s - [rid:%(request_id)s] - %(message)s',
            datefmt='%H:%M:%S',
        ))
        console_handler.addFilter(req_filter)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        # Remove existing handlers to avoid duplicates
        root_logger.handlers.clear()
        root_logger.addHandler(console_handler)

        log_file = None
        if log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_file = self.log_dir / "app.log"
            file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            file_handler.addFilter(req_filter)
            root_logger.addHandler(file_handler)

        # Route FastAPI/Uvicorn loggers through the same handlers
        for lname in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
            lg = logging.getLogger(lname)
            lg.setLevel(log_level)
            lg.handlers.clear()
            lg.propagate = True

        logger = logging.getLogger(__name__)
        logger.info("=" * 60)
        logger.info("Reporting Studio NLQ engine starting")
        logger.info(f"Log File: {log_file or 'disabled'}")
        logger.info(f"Log Level: {level.upper()}")
        logger.info("=" * 60)

        # Suppress noisy third-party loggers
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('openai').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger instance for a specific module.

        Args:
            name: Logger name (typically __name__ of the module)

        Returns:
            Configured logger instance
        """
        return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """
    Convenience function to get a logger.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance
    """
    manager = LoggerManager()
    return manager.get_logger(name)


# Request ID helpers (used by API middleware)

def bind_request_id(request_id: Optional[str]) -> None:
    REQUEST_ID.set(request_id)


def clear_request_id() -> None:
    REQUEST_ID.set(None)


__all__ = [
    "LoggerManager",
    "get_logger",
    "bind_request_id",
    "clear_request_id",
]
