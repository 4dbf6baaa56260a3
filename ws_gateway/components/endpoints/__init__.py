"""
WebSocket endpoint components.

Base class, mixins, and the concrete table endpoint.
"""

from ws_gateway.components.endpoints.base import WebSocketEndpointBase
from ws_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
    OriginValidationMixin,
)
from ws_gateway.components.endpoints.handlers import TableEndpoint

__all__ = [
    # Base class
    "WebSocketEndpointBase",
    # Mixins
    "MessageValidationMixin",
    "OriginValidationMixin",
    "ConnectionLifecycleMixin",
    # Handlers
    "TableEndpoint",
]
