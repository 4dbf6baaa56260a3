"""
Event correlation ids.

Each inbound WebSocket event (and each timer firing) gets a short id that
is attached to every log line emitted while it is being processed.
"""

import uuid
from contextvars import ContextVar

# Context variable for the event being processed (task-local)
event_id_var: ContextVar[str] = ContextVar("event_id", default="")


def get_event_id() -> str:
    """Get the current event id."""
    return event_id_var.get()


def new_event_id() -> str:
    """Generate a fresh event id."""
    return uuid.uuid4().hex


class CorrelationIdFilter:
    """
    Logging filter that adds event_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.event_id = event_id_var.get() or "-"
        return True
