import contextvars
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

_trace_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("dbgateway_trace_id", default=None)

# Attributes every LogRecord carries; anything else was passed via ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "trace_id"}

TEXT_FORMAT = "%(asctime)s - [%(trace_id)s] - %(name)s - %(levelname)s - %(message)s"
QUIET_LOGGERS = ("sqlalchemy.pool", "sqlalchemy.engine")


class TraceContextFilter(logging.Filter):
    """Stamps each record with the trace id of the gateway call that emitted it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_ctx.get()
        return True


@contextmanager
def trace_context(trace_id: Optional[str] = None) -> Iterator[str]:
    """Binds a trace id to the current context for the duration of the block.

    A short random id is generated when none is given. Fan-out workers run in a
    copy of the caller's context, so their records carry the same id.
    """
    trace_id = trace_id or uuid.uuid4().hex[:12]
    token = _trace_id_ctx.set(trace_id)
    try:
        yield trace_id
    finally:
        _trace_id_ctx.reset(token)


def current_trace_id() -> Optional[str]:
    return _trace_id_ctx.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra=`` fields promoted to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        trace_id = getattr(record, "trace_id", None)
        if trace_id:
            entry["trace_id"] = trace_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Installs a single stream handler on the root logger.

    Args:
        level (str): The logging level name (default: INFO).
        json_format (bool): Emit JSON lines instead of text (default: False).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(TraceContextFilter())
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    # Pool and engine chatter only matters when debugging SQLAlchemy itself
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Gets a logger namespaced under ``dbgateway``.

    Args:
        name (str): Component name, e.g. ``"fanout"``.

    Returns:
        logging.Logger: The logger instance.
    """
    if name.startswith("dbgateway"):
        return logging.getLogger(name)
    return logging.getLogger(f"dbgateway.{name}")
