"""Logging utilities for accesscore.

This module provides:
- Logging configuration from AccessConfig
- Safe preview utilities for untrusted values (store error messages, ids)
- Secret redaction
- Structured logging with user/tenant decision context
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import AccessConfig, LogLevel


# Patterns for detecting secrets that may leak through store error messages
SECRET_PATTERNS = [
    r'(?i)(?:password|passwd|pwd|secret|token|key|api[_-]?key|auth[_-]?token)\s*[:=]\s*["\']?([^"\'\s]+)',
    r'(?i)(?:bearer|basic)\s+([a-zA-Z0-9+/=]+)',
    r'(?i)(?:redis|rediss|postgres|postgresql)://[^\s@]*:[^\s@]*@',
    r'[a-f0-9]{32,}',
]

# Decision context attached to records by AccessLoggerAdapter
CONTEXT_FIELDS = ("user_id", "tenant_id")

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", *CONTEXT_FIELDS,
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a single-line, length-bounded preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, set, frozenset, tuple)):
        try:
            s = json.dumps(value if isinstance(value, dict) else sorted(value, key=str), default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Redact credentials and key material from text.

    Args:
        text: The text to redact
        replacement: String to replace secrets with (default: "[REDACTED]")

    Returns:
        Text with secrets redacted
    """
    if not isinstance(text, str):
        return text

    result = text
    for pattern in SECRET_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE | re.DOTALL)

    return result


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    """Preview and optionally redact a value before it reaches a log record."""
    preview = safe_preview(value, limit=limit)
    if redact:
        preview = redact_secrets(preview)
    return preview


class AccessLogFormatter(logging.Formatter):
    """Formatter that renders decision context and supports JSON output.

    The formatter:
    - Extracts ``user_id`` and ``tenant_id`` from log records when present
    - Formats logs as JSON or plain text
    - Previews extra fields and redacts secrets
    """

    def __init__(
        self,
        include_context: bool = True,
        json_format: bool = True,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.include_context = include_context
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context: dict[str, str] = {}
        if self.include_context:
            for field_name in CONTEXT_FIELDS:
                value = getattr(record, field_name, None)
                if value:
                    context[field_name] = str(value)
        log_data.update(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        parts.extend(f"{k}={v}" for k, v in context.items())
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class AccessLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds user_id and tenant_id to log records.

    Usage:
        logger = get_access_logger(__name__, tenant_id="acme")
        logger.info("Recomputed permissions", user_id="u-1")
    """

    def __init__(
        self,
        logger: logging.Logger,
        user_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.user_id = user_id
        self.tenant_id = tenant_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        user_id = kwargs.pop("user_id", self.user_id)
        tenant_id = kwargs.pop("tenant_id", self.tenant_id)

        extra = dict(kwargs.get("extra") or {})
        if user_id:
            extra["user_id"] = user_id
        if tenant_id:
            extra["tenant_id"] = tenant_id
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[AccessConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure the root logger for a process embedding accesscore.

    Args:
        config: AccessConfig instance (if None, loads from environment)
        json_format: Force JSON (True) or plain text (False); defaults to ``config.log_json``
        redact_secrets: Whether to redact secrets (default: True)
    """
    if config is None:
        from .config import load_access_config_from_env
        config = load_access_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        AccessLogFormatter(
            include_context=True,
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )
    root_logger.addHandler(console_handler)

    if config.service_name:
        logging.getLogger(config.service_name).setLevel(log_level)


def get_access_logger(
    name: str,
    user_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
) -> AccessLoggerAdapter:
    """Get a logger adapter bound to a user and tenant.

    Example:
        logger = get_access_logger(__name__, user_id=user_id, tenant_id=tenant_id)
        logger.info("Invalidated cached permissions")
    """
    return AccessLoggerAdapter(logging.getLogger(name), user_id=user_id, tenant_id=tenant_id)


__all__ = [
    "safe_preview",
    "redact_secrets",
    "safe_log_value",
    "AccessLogFormatter",
    "AccessLoggerAdapter",
    "setup_logging",
    "get_access_logger",
]
