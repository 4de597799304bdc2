"""Logging utilities for the cloud function adapter.

Provides JSON logging configuration for the runtime log stream and
structured, sanitized request/response log entries.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

from pythonjsonlogger import json as jsonlogger

# Sensitive keys to filter (case-insensitive substring match)
SENSITIVE_KEYS = [
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "token",
    "password",
    "secret",
    "credential",
    "cookie",
]

SENSITIVE_HEADER_PREFIXES = [
    "x-api-key",
    "x-auth",
    "x-token",
    "x-secret",
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
]

# Context attributes worth logging, across runtimes
CONTEXT_ATTRIBUTES = [
    "request_id",
    "aws_request_id",
    "function_name",
    "function_version",
    "memory_limit_in_mb",
    "namespace",
]

_RESERVED_RECORD_KEYS = frozenset(
    (
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName",
        "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "asctime", "datefmt", "taskName",
    )
)


def configure_json_logging(level: str = "INFO", pretty: bool = False) -> None:
    """Configure the root logger to emit JSON.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        pretty: If True, use indented JSON (local development).
                If False, use compact one-line JSON (cloud runtime log stream).
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)

    if pretty:
        formatter: logging.Formatter = _PrettyJsonFormatter()
    else:
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            timestamp=True,
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


class _PrettyJsonFormatter(logging.Formatter):
    """Indented JSON formatter for the local emulator.

    Long strings are truncated so that large headers stay readable.
    """

    def __init__(self, max_string_length: int = 500):
        super().__init__()
        self.max_string_length = max_string_length

    def _truncate(self, value: Any) -> Any:
        if isinstance(value, str) and len(value) > self.max_string_length:
            return value[: self.max_string_length] + f"... (truncated, {len(value)} chars)"
        if isinstance(value, dict):
            return {k: self._truncate(v) for k, v in value.items()}
        return value

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = self._truncate(value)
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        try:
            return json.dumps(log_data, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return json.dumps({"message": str(record.getMessage())}, indent=2)


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(sensitive_key in key_lower for sensitive_key in SENSITIVE_KEYS)


def sanitize_dict(data: Any) -> Any:
    """Recursively replace values of sensitive keys with [REDACTED].

    Args:
        data: Data to sanitize (dict, list, or primitive)

    Returns:
        Sanitized data with same structure
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if _is_sensitive_key(str(key)):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_dict(value)
        return sanitized
    elif isinstance(data, list):
        return [sanitize_dict(item) for item in data]
    return data


def sanitize_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Redact credential-bearing HTTP headers.

    Args:
        headers: HTTP headers mapping (any case)

    Returns:
        Plain dictionary with sensitive values replaced
    """
    sanitized = {}
    for key, value in (headers or {}).items():
        key_lower = key.lower()
        if any(key_lower.startswith(prefix) for prefix in SENSITIVE_HEADER_PREFIXES) or _is_sensitive_key(key):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = value
    return sanitized


def describe_context(context: Any) -> Dict[str, Any]:
    """Summarize the runtime context object for logging.

    Dictionaries are sanitized and passed through; objects contribute the
    well-known attributes they expose.
    """
    if context is None:
        return {}
    if isinstance(context, dict):
        return sanitize_dict(context)

    summary = {}
    for attr in CONTEXT_ATTRIBUTES:
        value = getattr(context, attr, None)
        if isinstance(value, (str, int, float, bool)):
            summary[attr] = value
    return summary


def format_request_log(
    http_method: str,
    request_path: str,
    query_params: Optional[Mapping[str, str]],
    headers: Optional[Mapping[str, str]],
    context: Optional[Any] = None,
) -> Dict[str, Any]:
    """Format a structured request log entry.

    Args:
        http_method: HTTP method from the event
        request_path: Path from the event, before base path stripping
        query_params: Event query string parameters
        headers: Event headers
        context: Runtime context object or dictionary

    Returns:
        Dictionary with structured log data
    """
    return {
        "http_method": http_method,
        "request_path": request_path,
        "query_params": dict(query_params) if query_params else {},
        "request_headers": sanitize_headers(headers),
        "invocation_context": describe_context(context),
    }


def format_response_log(status_code: int, duration_ms: float) -> Dict[str, Any]:
    """Format a structured response log entry.

    Args:
        status_code: HTTP status code returned to the runtime
        duration_ms: Processing duration in milliseconds

    Returns:
        Dictionary with structured log data
    """
    return {
        "response_status": status_code,
        "duration_ms": round(duration_ms, 2),
    }
