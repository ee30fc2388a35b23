"""
Incident correlation fields for log records.

The consumer tags everything it logs for a pulled batch with ``batch_id``
and each message with ``message_id``; the workflow engine adds
``incident_id`` for the run and ``action`` around each gateway call. The
engine copies the context into the thread that makes the call, so gateway
logs carry the same fields as the engine's own.

``ContextFilter`` stamps the fields onto every record that reaches a handler
installed by ``setup_logging``; ``get_logger`` does the same for one logger
when the handlers are not ours (pytest's ``caplog``, an embedding app).
"""

import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

CONTEXT_FIELDS = ("batch_id", "incident_id", "message_id", "action")

workflow_context: contextvars.ContextVar[dict] = contextvars.ContextVar(
    'workflow_context', default={}
)


def _correlation(ctx: dict) -> str:
    """Render set fields as `` [incident_id=... action=...]``, or nothing."""
    pairs = [f"{key}={ctx[key]}" for key in CONTEXT_FIELDS if ctx.get(key) is not None]
    return f" [{' '.join(pairs)}]" if pairs else ""


class ContextFilter(logging.Filter):
    """Copies the current correlation fields onto each record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = workflow_context.get({})
        for key in CONTEXT_FIELDS:
            if ctx.get(key) is not None and not hasattr(record, key):
                setattr(record, key, ctx[key])
        record.correlation = _correlation({key: getattr(record, key, None) for key in CONTEXT_FIELDS})
        return True


class ContextualLogger(logging.LoggerAdapter):
    """
    Adapter that passes correlation fields as ``extra``.

    Usage:
        logger = get_logger(__name__)
        with LoggingContext(incident_id='inc-123'):
            logger.info("Creating branch")
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        ctx = workflow_context.get({})
        extra = dict(kwargs.get('extra') or {})

        for key in CONTEXT_FIELDS:
            if ctx.get(key) is not None:
                extra.setdefault(key, ctx[key])

        kwargs['extra'] = extra
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with whichever correlation fields are set."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key in CONTEXT_FIELDS:
            if getattr(record, key, None) is not None:
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_logger(name: str) -> ContextualLogger:
    return ContextualLogger(logging.getLogger(name), {})


def set_context(**kwargs: Any) -> contextvars.Token:
    """Merge fields into the current context; reset with the returned token."""
    current = workflow_context.get({}).copy()
    current.update(kwargs)
    return workflow_context.set(current)


def get_context() -> dict:
    return workflow_context.get({}).copy()


def clear_context() -> None:
    workflow_context.set({})


class LoggingContext:
    """
    Scope correlation fields to a with-block; nested blocks add to the outer one.

    Usage:
        with LoggingContext(batch_id='b-1'):
            with LoggingContext(incident_id='inc-7'):
                logger.info("Classified")  # batch_id and incident_id
    """

    def __init__(self, **kwargs: Any):
        self.kwargs = kwargs
        self.token: Optional[contextvars.Token] = None

    def __enter__(self):
        self.token = set_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token:
            workflow_context.reset(self.token)
        return False
