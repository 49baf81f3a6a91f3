"""
Structured logging for the integration layer.

Provides JSON-formatted logs with timestamps and structured fields, and a
filter that keeps personal access tokens out of every record.
"""
import json
import logging
import re
import sys
from datetime import datetime
from typing import Any, Optional

REDACTED = "***"

SECRET_KEYS = {"pat", "token", "personal_access_token", "authorization", "x-pat"}

# Top-level packages whose module loggers the service factory configures.
PACKAGE_LOGGERS = ("core", "infrastructure")

_BASIC_AUTH = re.compile(r"(Basic\s+)[A-Za-z0-9+/=]{8,}")
_AUTH_HEADER = re.compile(r"(['\"]?Authorization['\"]?\s*[:=]\s*['\"]?)[^'\",}]+", re.IGNORECASE)


def redact(text: str) -> str:
    """Mask Basic credentials and Authorization header values in ``text``."""
    text = _AUTH_HEADER.sub(lambda m: m.group(1) + REDACTED, text)
    return _BASIC_AUTH.sub(lambda m: m.group(1) + REDACTED, text)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: (REDACTED if str(k).lower() in SECRET_KEYS else _scrub(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    if isinstance(value, str):
        return redact(value)
    return value


class RedactingFilter(logging.Filter):
    """Removes credentials from the message, args and extra fields of a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = _scrub(record.args)
            else:
                record.args = tuple(_scrub(a) for a in record.args)
        for key in list(record.__dict__):
            if key in StructuredFormatter.EXCLUDED_ATTRS:
                continue
            if key.lower() in SECRET_KEYS:
                record.__dict__[key] = REDACTED
            else:
                record.__dict__[key] = _scrub(record.__dict__[key])
        return True


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    EXCLUDED_ATTRS = {
        'name', 'msg', 'args', 'levelname', 'levelno',
        'pathname', 'filename', 'module', 'exc_info',
        'exc_text', 'stack_info', 'lineno', 'funcName',
        'created', 'msecs', 'relativeCreated', 'thread',
        'threadName', 'processName', 'process', 'message',
        'asctime', 'taskName'
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted string
        """
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "event": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = redact(self.formatException(record.exc_info))

        for key, value in record.__dict__.items():
            if key not in self.EXCLUDED_ATTRS:
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data)


def configure_logging(
    level: str = "INFO",
    fmt: str = "json",
    logger_name: Optional[str] = None,
    stream: Any = None
) -> logging.Logger:
    """Install a single redacting handler on the given (default: root) logger.

    Args:
        level: Logging level name
        fmt: ``json`` for structured output, ``text`` for plain lines
        logger_name: Logger to configure; None configures the root logger
        stream: Output stream, stdout by default

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers = []

    handler = logging.StreamHandler(stream or sys.stdout)
    if fmt == "text":
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
    else:
        handler.setFormatter(StructuredFormatter())
    handler.addFilter(RedactingFilter())
    logger.addHandler(handler)
    return logger
