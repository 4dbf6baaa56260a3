"""
WebSocket Endpoint Base Class.

Owns the connection lifecycle shared by every gateway endpoint: origin
check, registration with the ConnectionManager, the receive loop with
timeout, size limit and heartbeat, and unregistration on the way out.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.sanitize import sanitize_log_data
from ws_gateway.components.connection.heartbeat import handle_heartbeat
from ws_gateway.components.core.constants import WSCloseCode
from ws_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
    OriginValidationMixin,
)

if TYPE_CHECKING:
    from ws_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class WebSocketEndpointBase(
    OriginValidationMixin,
    MessageValidationMixin,
    ConnectionLifecycleMixin,
    ABC,
):
    """
    Base class for WebSocket endpoints.

    Encapsulates common patterns:
    - Origin validation (closed with FORBIDDEN when rejected)
    - Connection lifecycle (accept, message loop, disconnect)
    - Receive timeout and message size validation
    - Heartbeat handling

    Subclasses implement:
    - handle_message(): Process non-heartbeat messages

    Usage:
        endpoint = TableEndpoint(websocket, manager, router)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        receive_timeout: float | None = None,
        max_message_size: int | None = None,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Name for logging (e.g., "/ws/table").
            receive_timeout: Seconds of silence before the socket is closed.
            max_message_size: Largest accepted text frame, in characters.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.receive_timeout = (
            receive_timeout if receive_timeout is not None else settings.ws_receive_timeout
        )
        self.max_message_size = (
            max_message_size if max_message_size is not None else settings.ws_max_message_size
        )

        self.connection_id: str | None = None
        self._is_running = False

    @abstractmethod
    async def handle_message(self, data: str) -> None:
        """
        Handle a non-heartbeat message.

        Args:
            data: The raw text frame.
        """

    async def run(self) -> None:
        """
        Main entry point - run the WebSocket endpoint.

        Handles the complete lifecycle:
        1. Validate origin
        2. Register connection
        3. Message loop
        4. Unregister on disconnect
        """
        if not self.validate_origin():
            self.log_connect_rejected("invalid_origin")
            await self.websocket.close(
                code=WSCloseCode.FORBIDDEN,
                reason="Origin not allowed",
            )
            return

        try:
            self.connection_id = await self.manager.connect(self.websocket)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            await self.websocket.close(code=WSCloseCode.GOING_AWAY, reason=str(e))
            return

        self.log_connect()

        self._is_running = True
        try:
            await self._message_loop()
        except WebSocketDisconnect:
            self.log_disconnect("client_disconnect")
        except Exception as e:
            logger.error(
                "Unexpected error in message loop",
                endpoint=self.endpoint_name,
                connection_id=self.connection_id,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._is_running = False
            await self.manager.disconnect(self.connection_id)

    async def _message_loop(self) -> None:
        """
        Main message processing loop.

        Handles:
        - Receive with timeout
        - Message size validation
        - Heartbeat responses
        - Custom message handling
        """
        while self._is_running:
            data = await self._receive_with_timeout()
            if data is None:
                logger.info(
                    "Connection timed out (no messages)",
                    endpoint=self.endpoint_name,
                    connection_id=self.connection_id,
                    timeout=self.receive_timeout,
                )
                await self.websocket.close(
                    code=WSCloseCode.NORMAL,
                    reason="Connection timeout",
                )
                self.log_disconnect("timeout")
                break

            if not await self.validate_message_size(data):
                self.log_disconnect("message_too_big")
                break

            if await handle_heartbeat(self.websocket, data):
                continue

            logger.debug(
                "Message received",
                connection_id=self.connection_id,
                message=sanitize_log_data(data),
            )
            await self.handle_message(data)

    async def _receive_with_timeout(self) -> str | None:
        """
        Receive message with timeout.

        Returns:
            Message data, or None if timeout.
        """
        try:
            return await asyncio.wait_for(
                self.websocket.receive_text(),
                timeout=self.receive_timeout,
            )
        except asyncio.TimeoutError:
            return None
