"""
Logging configuration for the Hotel Booking Platform.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

APP_LOGGER = "hotel_booking_platform"

_THIRD_PARTY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
    "fastapi": "INFO",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "redis": "WARNING",
    "celery": "INFO",
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
    environment: str = "development",
) -> None:
    """
    Configure the application's loggers, handlers and filters.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional rotating log file path
        enable_json_logging: Emit one JSON document per record
        environment: Deployment environment; production adds an error file
    """
    formatter = "json" if enable_json_logging else "detailed"
    handlers = ["console"]

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[%(request_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": f"{APP_LOGGER}.utils.logging_config.JSONFormatter",
            }
        },
        "filters": {
            "request_id": {
                "()": f"{APP_LOGGER}.utils.logging_config.RequestIDFilter"
            },
            "sensitive_data": {
                "()": f"{APP_LOGGER}.utils.logging_config.SensitiveDataFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": formatter,
                "stream": sys.stdout,
                "filters": ["request_id", "sensitive_data"]
            }
        },
        "loggers": {},
        "root": {
            "level": log_level,
            "handlers": handlers
        }
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": formatter,
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "filters": ["request_id", "sensitive_data"]
        }
        handlers.append("file")

    app_handlers = list(handlers)
    if environment == "production":
        error_file = log_file.replace(".log", "_errors.log") if log_file else "logs/errors.log"
        Path(error_file).parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": formatter,
            "filename": error_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 10,
            "filters": ["request_id", "sensitive_data"]
        }
        app_handlers.append("error_file")

    config["loggers"][APP_LOGGER] = {
        "level": log_level,
        "handlers": app_handlers,
        "propagate": False
    }
    for name, level in _THIRD_PARTY_LEVELS.items():
        config["loggers"][name] = {
            "level": level,
            "handlers": list(handlers),
            "propagate": False
        }

    logging.config.dictConfig(config)

    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logging.getLogger(f"{APP_LOGGER}.exceptions").error(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
            extra={"exception_type": exc_type.__name__}
        )

    sys.excepthook = handle_exception


class RequestIDFilter(logging.Filter):
    """Stamp each record with the id of the request being served."""

    def filter(self, record):
        if not getattr(record, "request_id", None):
            from ..middleware.logging import request_id_var
            record.request_id = request_id_var.get()
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask credentials and gateway secrets before records leave the process."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "passkey", "authorization",
        "cookie", "api_key", "access_token", "consumer_key",
        "consumer_secret", "id_number",
    }
    _LONG_TOKEN = re.compile(r"\b[A-Za-z0-9_\-]{32,}\b")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._LONG_TOKEN.sub("***MASKED***", record.msg)

        for key, value in list(record.__dict__.items()):
            if isinstance(value, dict):
                setattr(record, key, self._sanitize(value))

        return True

    def _sanitize(self, data):
        if isinstance(data, dict):
            return {
                key: "***MASKED***"
                if any(sensitive in str(key).lower() for sensitive in self.SENSITIVE_KEYS)
                else self._sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return type(data)(self._sanitize(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "exc_info", "exc_text",
        "stack_info", "request_id", "taskName", "message",
    }

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
            "request_id": getattr(record, "request_id", None),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Log a booking, payment or room event for later analysis."""
    logger = logging.getLogger(f"{APP_LOGGER}.business")
    logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "user_id": user_id,
            "event_details": details,
        }
    )


def log_security_event(event_type: str, details: Dict[str, Any], severity: str = "WARNING"):
    """Log failed logins, rejected cron calls and similar security events."""
    logger = logging.getLogger(f"{APP_LOGGER}.security")

    log_method = getattr(logger, severity.lower(), logger.warning)
    log_method(
        f"Security event: {event_type}",
        extra={
            "event_type": event_type,
            "security_event": True,
            "severity": severity,
            "event_details": details,
        }
    )
