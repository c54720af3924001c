"""
JSON log lines for the campus service.

Each line carries the correlation id of the request or webhook delivery that
produced it. The same id is stored on the WebhookEvent row, so a failed
delivery can be traced from its audit row to its log lines. Journey and badge
code attach user_id / badge_slug, the gateway attaches event_id / source /
event_type; only those keys are copied from `extra`.
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

EXTRA_KEYS = ("user_id", "event_id", "source", "event_type", "badge_slug")

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def _context_fields(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in EXTRA_KEYS
        if getattr(record, key, None) is not None
    }


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, correlation_id, module, message."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
            **_context_fields(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Install the JSON formatter on the root logger. Called once by create_app()."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
