"""
Structured Logging with Trace IDs
=================================

One JSON object per log line, carrying a trace id, so an access request can
be followed from the inbound HTTP call through the Telegram decision to the
router provisioning attempt.  Bot tokens and RouterOS credential words are
scrubbed from every line before it reaches a handler.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_current_trace: ContextVar[str | None] = ContextVar('hotspot_gate_trace_id', default=None)

_SECRET_PATTERNS = re.compile(
    r"(bot\d+:[A-Za-z0-9_-]+|\d{6,}:[A-Za-z0-9_-]{30,}|"
    r"=password=[^\s'\",\]]*|=response=[^\s'\",\]]*|Bearer\s+[A-Za-z0-9._~+/=-]+)",
    re.IGNORECASE,
)


def _redact_secrets(text: str) -> str:
    return _SECRET_PATTERNS.sub("[REDACTED]", text)


class StructuredLogger:
    """
    JSON logger for one component, optionally with fields bound to every line.

    Example output:
    {"ts": "2026-10-19T10:30:45.123456+00:00", "level": "INFO",
     "component": "ApprovalGateway", "trace_id": "3f9a1c2e",
     "event": "Request approved", "token": "9f1c...", "profile": "1h"}
    """

    def __init__(self, component: str, fields: dict[str, Any] | None = None) -> None:
        self.component = component
        self.fields = dict(fields or {})
        self._logger = logging.getLogger(component)

    def bind(self, **fields: Any) -> StructuredLogger:
        """Return a logger that adds ``fields`` to every line it writes."""
        return StructuredLogger(self.component, {**self.fields, **fields})

    def _render(self, level: int, event: str, fields: dict[str, Any]) -> str:
        entry: dict[str, Any] = {
            'ts': datetime.now(tz=UTC).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
        }
        trace_id = _current_trace.get()
        if trace_id:
            entry['trace_id'] = trace_id
        entry['event'] = event
        entry.update(self.fields)
        entry.update(fields)
        return _redact_secrets(json.dumps(entry, default=str, ensure_ascii=False))

    def log(self, level: int, event: str, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._render(level, event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        self.log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self.log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self.log(logging.WARNING, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log(logging.ERROR, event, **fields)


class TraceContext:
    """
    Scope a trace id over a block; nested scopes restore the outer id on exit.

    Usage:
        with TraceContext():
            logger.info("Access request created", mac=mac)
    """

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or uuid.uuid4().hex[:8]
        self._reset_token = None

    def __enter__(self) -> str:
        self._reset_token = _current_trace.set(self.trace_id)
        return self.trace_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _current_trace.reset(self._reset_token)


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter that scrubs secrets from every rendered record."""

    def format(self, record: logging.LogRecord) -> str:
        return _redact_secrets(super().format(record))


def get_logger(component: str) -> StructuredLogger:
    return StructuredLogger(component)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stderr handler on the root logger.

    ``json`` passes messages through untouched (StructuredLogger lines are
    already JSON); ``text`` prefixes a timestamp, level and logger name.
    """
    handler = logging.StreamHandler(sys.stderr)
    pattern = "%(asctime)s %(levelname)s %(name)s: %(message)s" if fmt == "text" else "%(message)s"
    handler.setFormatter(RedactingFormatter(pattern))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())
