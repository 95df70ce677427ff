"""
=============================================================================
LOGGING SETUP
=============================================================================

Everything the server logs goes through stdlib ``logging``. Structured
fields ride along in ``extra={"context": {...}}`` and are rendered by one
of two formatters:

    TEXT (default, key=value):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ time=2026-10-18T12:00:00Z level=INFO msg="handling new request"     │
    │   remote=10.0.0.5:51234 method=GET path=/ user-agent="curl/8.5.0"  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"time": "...", "level": "INFO", "msg": "handling new request",     │
    │  "remote": "10.0.0.5:51234", "method": "GET", "path": "/", ...}     │
    └─────────────────────────────────────────────────────────────────────┘

Loggers used by the server:

    staticserver.access   one record per routed request
    staticserver.errors   one record per error outcome
    staticserver.server   lifecycle (startup, shutdown)
    staticserver.core.*   listener internals

=============================================================================
"""

import json
import logging
import sys
import time
from typing import Any, Dict, Optional

from .http.request import HTTPRequest


LOGGER_NAME = "staticserver"


def request_context(request: HTTPRequest) -> Dict[str, str]:
    """
    The request fields attached to every per-request log record.

    Proxy headers are only included when the client (or proxy) sent them.
    """
    context = {
        "remote": request.remote,
        "method": request.method,
        "path": request.path,
        "user-agent": request.user_agent,
    }

    if request.forwarded_for:
        context["x-forwarded-for"] = request.forwarded_for

    if request.real_ip:
        context["x-real-ip"] = request.real_ip

    return context


def _quote(value: Any) -> str:
    text = str(value)
    if text == "" or any(ch in text for ch in ' ="\t\n'):
        return json.dumps(text)
    return text


class KeyValueFormatter(logging.Formatter):
    """Renders records as a single ``key=value`` line."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created))
        parts = [
            f"time={timestamp}",
            f"level={record.levelname}",
            f"msg={_quote(record.getMessage())}",
        ]

        context = getattr(record, "context", None) or {}
        for key, value in context.items():
            parts.append(f"{key}={_quote(value)}")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JSONFormatter(logging.Formatter):
    """Renders records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(getattr(record, "context", None) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(
    level: str = "INFO",
    log_format: str = "text",
    stream: Optional[Any] = None,
) -> logging.Logger:
    """
    Install one stream handler on the ``staticserver`` logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.

    Args:
        level: Level name ("DEBUG", "INFO", ...).
        log_format: "text" or "json".
        stream: Where to write (stdout by default).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_staticserver", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if log_format == "json" else KeyValueFormatter())
    handler._staticserver = True
    logger.addHandler(handler)
    logger.propagate = False

    return logger
