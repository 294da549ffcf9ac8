"""
Inference Gateway - Structured JSON Logging

Structured logging with automatic context injection.

Features:
- JSON-formatted logs, one object per line
- Automatic correlation fields (request_id, trace_id, span_id)
- Sensitive data redaction (keys, authorization headers, credentials)

Usage:
    from gateway.observability.logging import setup_logging, get_logger

    setup_logging(level="INFO")

    logger = get_logger(__name__)
    logger.info("Model resolved", model="openai/gpt-4o")

Output:
    {"timestamp": "2024-01-15T10:30:00+00:00", "level": "INFO",
     "logger": "gateway.engine", "message": "Model resolved",
     "model": "openai/gpt-4o", "request_id": "req_xyz"}
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

_request_context: ContextVar[Optional["LogContext"]] = ContextVar("log_context", default=None)

# LogRecord attributes that are not user supplied fields
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
}


@dataclass
class LogContext:
    """
    Logging context with correlation IDs.

    Stored in a contextvar, so each request task sees its own copy.
    """
    request_id: str = ""
    trace_id: str = ""
    span_id: str = ""
    provider: str = ""
    model: str = ""
    endpoint: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        return _request_context.get()

    @classmethod
    def set_current(cls, ctx: "LogContext"):
        _request_context.set(ctx)

    @classmethod
    def clear(cls):
        _request_context.set(None)

    def update(self, **kwargs):
        """Update context fields."""
        for key, value in kwargs.items():
            if hasattr(self, key) and key != "extra":
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        if self.request_id:
            result["request_id"] = self.request_id
        if self.trace_id:
            result["trace_id"] = self.trace_id
        if self.span_id:
            result["span_id"] = self.span_id
        if self.provider:
            result["provider"] = self.provider
        if self.model:
            result["model"] = self.model
        if self.endpoint:
            result["endpoint"] = self.endpoint
        result.update(self.extra)
        return result


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with automatic context injection.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.123456+00:00",
        "level": "INFO",
        "logger": "module.name",
        "message": "Log message",
        "request_id": "req_abc123",
        ... additional fields
    }
    """

    SENSITIVE_FIELDS = {
        "password", "secret", "token", "api_key", "apikey",
        "authorization", "credential", "credentials", "private_key",
    }

    def __init__(
        self,
        include_location: bool = False,
        redact_sensitive: bool = True,
    ):
        super().__init__()
        self.include_location = include_location
        self.redact_sensitive = redact_sensitive

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            log_data["location"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        ctx = LogContext.get_current()
        if ctx:
            log_data.update(ctx.to_dict())

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if self.redact_sensitive and self._is_sensitive(key):
                value = "[REDACTED]"
            log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)

    def _is_sensitive(self, field_name: str) -> bool:
        """Match whole names or `_`-suffixes, so `prompt_tokens` stays visible."""
        lowered = field_name.lower()
        if lowered in self.SENSITIVE_FIELDS:
            return True
        return any(lowered.endswith(f"_{s}") for s in self.SENSITIVE_FIELDS)


class StructuredLogger:
    """
    Structured logger wrapper.

    Keyword arguments become structured fields on the record.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.pop("extra", {})

        for key in list(kwargs):
            if key not in {"exc_info", "stack_info", "stacklevel"}:
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log exception with traceback."""
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = True,
    include_location: bool = False,
    redact_sensitive: bool = True,
) -> None:
    """
    Setup structured logging on the root logger.

    Call once at application startup.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if json_output:
        formatter: logging.Formatter = JSONFormatter(
            include_location=include_location,
            redact_sensitive=redact_sensitive,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger (typically with __name__)."""
    return StructuredLogger(logging.getLogger(name))
