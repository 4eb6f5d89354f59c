"""
Incident-scoped logging.

A pipeline run binds the incident id (and the run id) into a context
variable; every record emitted through a ``ContextualLogger`` during that run
carries those fields, including records emitted from awaited coroutines.
"""

import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

CONTEXT_FIELDS = ('run_id', 'incident_id', 'stage')

pipeline_context: contextvars.ContextVar[dict] = contextvars.ContextVar(
    'pipeline_context', default={}
)


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that injects the current pipeline context as ``extra``."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        ctx = pipeline_context.get({})
        extra = dict(kwargs.get('extra') or {})

        for key in CONTEXT_FIELDS:
            if ctx.get(key) is not None:
                extra.setdefault(key, ctx[key])

        kwargs['extra'] = extra

        prefix = ctx.get('incident_id')
        if prefix:
            msg = f"[{prefix[:8]}] {msg}"
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_logger(name: str) -> ContextualLogger:
    """Return a context-aware logger for ``name``."""
    return ContextualLogger(logging.getLogger(name), {})


def set_context(**kwargs: Any) -> contextvars.Token:
    """Merge values into the pipeline context and return a reset token."""
    current = pipeline_context.get({}).copy()
    current.update(kwargs)
    return pipeline_context.set(current)


def get_context() -> dict:
    """Get a copy of the current pipeline context."""
    return pipeline_context.get({}).copy()


def clear_context() -> None:
    """Clear the pipeline context."""
    pipeline_context.set({})


class LoggingContext:
    """
    Context manager binding pipeline context for the duration of a block.

    Usage:
        with LoggingContext(incident_id=incident.id):
            logger.info("Remediating")
    """

    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs
        self.token: Optional[contextvars.Token] = None

    def __enter__(self):
        self.token = set_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            pipeline_context.reset(self.token)
        return False
