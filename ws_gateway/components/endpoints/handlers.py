"""
Concrete WebSocket Endpoint Implementations.

One endpoint serves every guest device: frames are handed to the table
event router, and the router's disconnect hook on the ConnectionManager
marks the guest offline when the socket goes away.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket

from ws_gateway.components.endpoints.base import WebSocketEndpointBase

if TYPE_CHECKING:
    from ws_gateway.components.events.router import TableEventRouter
    from ws_gateway.connection_manager import ConnectionManager


class TableEndpoint(WebSocketEndpointBase):
    """
    WebSocket endpoint for guests at a table.

    Features:
    - No authentication: a guest is identified by the table code it joins
      and, on reconnect, the guest id it was given
    - Events are routed to the TableEventRouter, errors come back as
      unicast `error` events
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        router: "TableEventRouter",
    ):
        super().__init__(
            websocket=websocket,
            manager=manager,
            endpoint_name="/ws/table",
        )
        self.router = router

    async def handle_message(self, data: str) -> None:
        await self.router.handle_message(self.connection_id, data)
