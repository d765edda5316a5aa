"""
Structured logging setup.

Provides session ID tracking, sensitive-field redaction, and the structlog
configuration shared by every module.
"""
import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog

from tabledesk.config import get_settings

# Context variable for the active editing session
session_id: ContextVar[str] = ContextVar("session_id", default="")

# Sensitive fields to redact from logs
SENSITIVE_FIELDS = {
    "password", "token", "access_token", "auth_token",
    "authorization", "api_key", "secret", "signed_url",
}


def get_session_id() -> str:
    """Get the current editing session's ID."""
    return session_id.get()


def bind_session_id(value: str) -> None:
    """Set the session ID that is attached to every log entry."""
    session_id.set(value)


def redact_sensitive_data(data: dict, depth: int = 0) -> dict:
    """
    Recursively redact sensitive fields from a dictionary.

    Args:
        data: Dictionary to redact
        depth: Current recursion depth (to prevent infinite loops)

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if depth > 5 or not isinstance(data, dict):
        return data

    redacted = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_data(value, depth + 1)
        else:
            redacted[key] = value

    return redacted


def add_session_id_processor(
    logger: Any, method_name: str, event_dict: dict
) -> dict:
    """Structlog processor that adds the session ID to all log entries."""
    current = get_session_id()
    if current:
        event_dict.setdefault("session_id", current)
    return event_dict


def redact_sensitive_processor(
    logger: Any, method_name: str, event_dict: dict
) -> dict:
    """Structlog processor that redacts sensitive data from log entries."""
    return redact_sensitive_data(event_dict)


def configure_logging(level: str = None, json_output: bool = None) -> None:
    """
    Configure stdlib logging and structlog processors.

    Debug mode defaults to DEBUG level and human-readable console output.
    """
    settings = get_settings()
    level = (level or ("DEBUG" if settings.debug else settings.log_level)).upper()
    if json_output is None:
        json_output = settings.log_json and not settings.debug

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_session_id_processor,
            redact_sensitive_processor,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
