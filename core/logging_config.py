"""
Logging Configuration for the StreamHub policy engine.

Centralised logging for the theme, verification, moderation and translation
services. Development gets colored, human-readable console output; every other
environment gets one JSON object per line for log shippers. A request
correlation id travels through a `ContextVar` so that all records emitted while
handling one request can be grouped.

Key Components:
- `CorrelationFilter`: Copies the current correlation id onto each record.
- `JSONFormatter`: Structured output, including `extra=` fields.
- `ColoredConsoleFormatter`: Level-colored console output for development.
- `get_logging_config` / `setup_logging`: Build and apply the dictConfig.
- `log_function_call`: Decorator logging entry, exit, duration and failures of
  sync and async callables.
"""

import asyncio
import functools
import json
import logging
import logging.config
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import get_settings

# Context variable for request correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# LogRecord attributes that are not user supplied extras
_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "correlation_id",
    "message",
    "asctime",
}


class CorrelationFilter(logging.Filter):
    """Filter that adds correlation ID to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        corr_id = correlation_id.get()
        if corr_id:
            record.correlation_id = corr_id
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        corr_id = getattr(record, "correlation_id", None) or correlation_id.get()
        if corr_id:
            log_entry["correlation_id"] = corr_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        corr_id = getattr(record, "correlation_id", None)
        corr_part = f" [{corr_id}]" if corr_id else ""

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8} {record.name}{corr_part}: "
            f"{record.getMessage()}{self.RESET}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration based on environment"""
    settings = get_settings()
    environment = settings.environment.lower()
    log_level = settings.log_level

    handler_names = ["console"]

    def app_logger() -> Dict[str, Any]:
        return {"level": log_level, "handlers": list(handler_names), "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationFilter},
        },
        "formatters": {
            "json": {"()": JSONFormatter},
            "colored_console": {"()": ColoredConsoleFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "colored_console"
                if environment == "development"
                else "json",
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "api": app_logger(),
            "core": app_logger(),
            "services": app_logger(),
            "providers": app_logger(),
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "fastapi": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging():
    """Initialize logging configuration"""
    logging.config.dictConfig(get_logging_config())

    logger = logging.getLogger("core.logging")
    logger.info(f"Logging initialized for {get_settings().environment} environment")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)


def set_correlation_id(corr_id: str):
    """Set correlation ID for the current context"""
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from the current context"""
    return correlation_id.get()


def log_function_call(logger: logging.Logger):
    """Decorator to log function calls with execution time"""

    def decorator(func):
        def _completed(start_time: float):
            logger.debug(
                f"Completed {func.__name__}",
                extra={
                    "call": func.__name__,
                    "execution_time_ms": round((time.time() - start_time) * 1000, 2),
                    "success": True,
                },
            )

        def _failed(start_time: float, error: Exception):
            logger.error(
                f"Failed {func.__name__}: {error}",
                extra={
                    "call": func.__name__,
                    "execution_time_ms": round((time.time() - start_time) * 1000, 2),
                    "success": False,
                    "error_type": type(error).__name__,
                },
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(f"Calling {func.__name__}", extra={"call": func.__name__})
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _failed(start_time, e)
                raise
            _completed(start_time)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(f"Calling {func.__name__}", extra={"call": func.__name__})
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(start_time, e)
                raise
            _completed(start_time)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
