"""
Logging configuration for the application.

One stdout handler with a consistent format. Records pass through
RedactingFilter so e-mail addresses and credential-like values never
reach the log stream.
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import Any

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

REDACTED = "[REDACTED]"
EMAIL_MASK = "[EMAIL]"
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "confirmpassword",
        "apikey",
        "api_key",
        "secret",
        "authorization",
        "token",
        "access_token",
        "refresh_token",
        "openrouter_api_key",
    }
)
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def mask_emails(text: str) -> str:
    return _EMAIL_RE.sub(EMAIL_MASK, text)


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive keys and e-mails masked."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item) for item in value)
    if isinstance(value, str):
        return mask_emails(value)
    return value


class RedactingFilter(logging.Filter):
    """Masks personal data in the message template and its arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_emails(record.msg)
        if record.args:
            if isinstance(record.args, Mapping):
                record.args = redact(record.args)
            else:
                record.args = tuple(redact(arg) for arg in record.args)
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactingFilter())

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
