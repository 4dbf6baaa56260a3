"""
Infrastructure module: correlation ids for structured logging.
"""

from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    event_id_var,
    get_event_id,
    new_event_id,
)

__all__ = [
    "CorrelationIdFilter",
    "event_id_var",
    "get_event_id",
    "new_event_id",
]
