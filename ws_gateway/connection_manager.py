"""
WebSocket Connection Manager.

Transport for the table gateway:
- assigns an opaque connection id to every accepted socket
- keeps room membership (one room per table id)
- `send` to one connection, `broadcast` to a room (optionally excluding
  the sender), both as `{"event": name, "data": payload}` frames
- runs disconnect hooks after a socket goes away

Sends to one connection are serialized, so every connection receives
frames in the order they were issued.
"""

from __future__ import annotations

import asyncio
import uuid
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

DisconnectHook = Callable[[str], Awaitable[Any]]

__all__ = ["ConnectionManager", "is_ws_connected"]


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Transitional states are not exposed by Starlette, so a socket may look
    connected briefly after the peer went away; the send then fails.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class ConnectionManager:
    """
    Connection registry and room multicast.

    Usage:
        connection_id = await manager.connect(websocket)
        manager.join_room(connection_id, "MESA-A7B3")
        await manager.broadcast("MESA-A7B3", "table:state", dto)
        await manager.disconnect(connection_id)
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._rooms: dict[str, set[str]] = {}
        self._connection_rooms: dict[str, set[str]] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}
        self._disconnect_hooks: list[DisconnectHook] = []
        self._shutting_down = False

        self._messages_sent = 0
        self._send_failures = 0
        self._total_connections = 0

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def connections(self) -> MappingProxyType[str, "WebSocket"]:
        return MappingProxyType(self._connections)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def room_members(self, room_id: str) -> frozenset[str]:
        return frozenset(self._rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> frozenset[str]:
        return frozenset(self._connection_rooms.get(connection_id, ()))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self, websocket: "WebSocket") -> str:
        """Accept the socket and register it under a fresh connection id."""
        if self._shutting_down:
            raise ConnectionError("Server is shutting down")

        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = websocket
        self._connection_rooms[connection_id] = set()
        self._send_locks[connection_id] = asyncio.Lock()
        self._total_connections += 1
        logger.debug("Connection registered", connection_id=connection_id)
        return connection_id

    def add_disconnect_hook(self, hook: DisconnectHook) -> None:
        self._disconnect_hooks.append(hook)

    async def disconnect(self, connection_id: str) -> None:
        """
        Forget a connection: leave every room, then run disconnect hooks.

        Hooks see the connection already out of its rooms, so broadcasts
        they issue never target the closed socket.
        """
        if self._connections.pop(connection_id, None) is None:
            return
        for room_id in self._connection_rooms.pop(connection_id, set()):
            self._discard_member(room_id, connection_id)
        self._send_locks.pop(connection_id, None)

        for hook in self._disconnect_hooks:
            try:
                await hook(connection_id)
            except Exception as e:
                logger.error(
                    "Disconnect hook failed",
                    connection_id=connection_id,
                    error=str(e),
                    exc_info=True,
                )
        logger.debug("Connection removed", connection_id=connection_id)

    # =========================================================================
    # Rooms
    # =========================================================================

    def join_room(self, connection_id: str, room_id: str) -> None:
        if connection_id not in self._connections:
            return
        self._rooms.setdefault(room_id, set()).add(connection_id)
        self._connection_rooms[connection_id].add(room_id)

    def leave_room(self, connection_id: str, room_id: str) -> None:
        self._discard_member(room_id, connection_id)
        rooms = self._connection_rooms.get(connection_id)
        if rooms is not None:
            rooms.discard(room_id)

    def _discard_member(self, room_id: str, connection_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        """Send one event to one connection. Returns False if it did not go out."""
        ws = self._connections.get(connection_id)
        lock = self._send_locks.get(connection_id)
        if ws is None or lock is None:
            return False

        async with lock:
            if not is_ws_connected(ws):
                self._send_failures += 1
                return False
            try:
                await ws.send_json({"event": event, "data": payload})
            except Exception as e:
                logger.debug("Send failed", connection_id=connection_id, error=str(e))
                self._send_failures += 1
                return False
        self._messages_sent += 1
        return True

    async def broadcast(
        self,
        room_id: str,
        event: str,
        payload: dict[str, Any],
        exclude: str | None = None,
    ) -> int:
        """Send one event to every member of a room. Returns the sent count."""
        targets = [cid for cid in self._rooms.get(room_id, ()) if cid != exclude]
        if not targets:
            return 0
        results = await asyncio.gather(*(self.send(cid, event, payload) for cid in targets))
        return sum(1 for ok in results if ok)

    # =========================================================================
    # Shutdown and stats
    # =========================================================================

    async def shutdown(self) -> int:
        """Close every socket with GOING_AWAY. Returns the number closed."""
        self._shutting_down = True

        async def close_one(ws: "WebSocket") -> bool:
            try:
                await ws.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down")
                return True
            except Exception:
                return False

        sockets = list(self._connections.values())
        results = await asyncio.gather(*(close_one(ws) for ws in sockets))
        closed = sum(1 for ok in results if ok)
        logger.info("Connections closed for shutdown", closed=closed, total=len(sockets))
        return closed

    def get_stats(self) -> dict[str, int]:
        return {
            "active_connections": len(self._connections),
            "total_connections": self._total_connections,
            "rooms": len(self._rooms),
            "messages_sent": self._messages_sent,
            "send_failures": self._send_failures,
        }
