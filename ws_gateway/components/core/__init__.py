"""
Core WebSocket Gateway components.

Close codes, heartbeat frames, and origin validation.
"""

from ws_gateway.components.core.constants import (
    WSCloseCode,
    DEFAULT_ALLOWED_ORIGINS,
    parse_allowed_origins,
    validate_websocket_origin,
)

__all__ = [
    "WSCloseCode",
    "DEFAULT_ALLOWED_ORIGINS",
    "parse_allowed_origins",
    "validate_websocket_origin",
]
