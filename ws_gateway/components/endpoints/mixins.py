"""
WebSocket Endpoint Mixins.

Each mixin handles a single concern for WebSocket endpoints.

Mixins:
    MessageValidationMixin: Message size checks
    OriginValidationMixin: WebSocket origin header validation
    ConnectionLifecycleMixin: Connection audit logging

Usage:
    class MyEndpoint(OriginValidationMixin, WebSocketEndpointBase):
        ...
"""

from __future__ import annotations

from typing import Protocol

from fastapi import WebSocket

from shared.config.logging import audit_ws_connection, get_logger
from shared.config.settings import settings
from ws_gateway.components.core.constants import WSCloseCode, validate_websocket_origin

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    """Protocol for classes with websocket attribute."""

    websocket: WebSocket
    endpoint_name: str
    connection_id: str | None
    max_message_size: int

    def get_origin(self) -> str | None: ...


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for message size validation.

    Requires:
        - self.websocket: WebSocket
        - self.endpoint_name: str
        - self.connection_id: str | None
        - self.max_message_size: int
    """

    async def validate_message_size(self: HasWebSocket, data: str) -> bool:
        """
        Validate message size against configured limit.

        Returns:
            True if valid, False if too large (connection closed).
        """
        if len(data) > self.max_message_size:
            logger.warning(
                "Message size exceeded limit",
                endpoint=self.endpoint_name,
                connection_id=self.connection_id,
                size=len(data),
                max_size=self.max_message_size,
            )
            await self.websocket.close(
                code=WSCloseCode.MESSAGE_TOO_BIG,
                reason="Message too large",
            )
            return False
        return True


# =============================================================================
# OriginValidationMixin
# =============================================================================


class OriginValidationMixin:
    """
    Mixin for WebSocket origin header validation.

    Requires:
        - self.websocket: WebSocket
    """

    def get_origin(self: HasWebSocket) -> str | None:
        """Get origin header from websocket."""
        return self.websocket.headers.get("origin")

    def validate_origin(self: HasWebSocket) -> bool:
        """True if the Origin header is allowed by the gateway settings."""
        return validate_websocket_origin(self.get_origin(), settings)


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.endpoint_name: str
        - self.connection_id: str | None
    """

    def log_connect(self: HasWebSocket) -> None:
        logger.info("Guest device connected", endpoint=self.endpoint_name, connection_id=self.connection_id)
        audit_ws_connection(
            "CONNECT",
            self.connection_id or "unknown",
            origin=self.get_origin(),
        )

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        logger.info(
            "Guest device disconnected",
            endpoint=self.endpoint_name,
            connection_id=self.connection_id,
            reason=reason,
        )
        audit_ws_connection("DISCONNECT", self.connection_id or "unknown", reason=reason)

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            origin=self.get_origin(),
            reason=reason,
        )
        audit_ws_connection(
            "CONNECT_REJECTED",
            self.connection_id or "unknown",
            origin=self.get_origin(),
            reason=reason,
        )


__all__ = [
    "MessageValidationMixin",
    "OriginValidationMixin",
    "ConnectionLifecycleMixin",
    "HasWebSocket",
]
