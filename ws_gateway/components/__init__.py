"""
WebSocket Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (close codes, heartbeat frames, origins)
- connection/ - Connection lifecycle (heartbeat)
- events/     - Event handling (typed messages, table event router)
- endpoints/  - WebSocket endpoints (base, mixins, handlers)

All public symbols are re-exported here. New code should import from
specific submodules for clarity.
"""

# =============================================================================
# Core Components
# =============================================================================
from ws_gateway.components.core.constants import (
    WSCloseCode,
    MSG_PING_PLAIN,
    MSG_PING_JSON,
    MSG_PONG_JSON,
    DEFAULT_ALLOWED_ORIGINS,
    parse_allowed_origins,
    validate_websocket_origin,
)

# =============================================================================
# Connection Management
# =============================================================================
from ws_gateway.components.connection.heartbeat import handle_heartbeat, is_heartbeat

# =============================================================================
# Events
# =============================================================================
from ws_gateway.components.events.types import (
    ClientEvent,
    ServerEvent,
    ClientMessage,
    VALID_CLIENT_EVENTS,
    parse_frame,
)
from ws_gateway.components.events.router import TableEventRouter, Transport

# =============================================================================
# Endpoints
# =============================================================================
from ws_gateway.components.endpoints.base import WebSocketEndpointBase
from ws_gateway.components.endpoints.mixins import (
    MessageValidationMixin,
    OriginValidationMixin,
    ConnectionLifecycleMixin,
)
from ws_gateway.components.endpoints.handlers import TableEndpoint

# =============================================================================
# Public API
# =============================================================================
__all__ = [
    # Core
    "WSCloseCode",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "parse_allowed_origins",
    "validate_websocket_origin",
    # Connection
    "handle_heartbeat",
    "is_heartbeat",
    # Events
    "ClientEvent",
    "ServerEvent",
    "ClientMessage",
    "VALID_CLIENT_EVENTS",
    "parse_frame",
    "TableEventRouter",
    "Transport",
    # Endpoints
    "WebSocketEndpointBase",
    "MessageValidationMixin",
    "OriginValidationMixin",
    "ConnectionLifecycleMixin",
    "TableEndpoint",
]
