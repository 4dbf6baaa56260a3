"""
Event handling components.

Typed inbound messages, outbound event names, and the table event router.
"""

from ws_gateway.components.events.types import (
    ClientEvent,
    ServerEvent,
    ClientMessage,
    VALID_CLIENT_EVENTS,
    parse_frame,
)
from ws_gateway.components.events.router import TableEventRouter, Transport

__all__ = [
    # Event types
    "ClientEvent",
    "ServerEvent",
    "ClientMessage",
    "VALID_CLIENT_EVENTS",
    "parse_frame",
    # Event router
    "TableEventRouter",
    "Transport",
]
