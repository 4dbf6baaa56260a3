"""
Heartbeat handling for WebSocket connections.

Clients ping periodically with a plain `ping` or `{"type":"ping"}` frame;
the gateway answers `{"type":"pong"}` without routing the frame to the
table event router.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import MSG_PING_JSON, MSG_PING_PLAIN, MSG_PONG_JSON

if TYPE_CHECKING:
    from fastapi import WebSocket

_heartbeat_logger = get_logger(__name__)


def is_heartbeat(data: str) -> bool:
    return data.strip() in (MSG_PING_PLAIN, MSG_PING_JSON)


async def handle_heartbeat(ws: WebSocket, data: str) -> bool:
    """
    Respond to ping messages with pong.

    Args:
        ws: The WebSocket connection.
        data: The received message data.

    Returns:
        True if message was a heartbeat and was handled, False otherwise.
    """
    if not is_heartbeat(data):
        return False

    try:
        await ws.send_text(MSG_PONG_JSON)
    except (ConnectionError, RuntimeError, OSError):
        # Connection may have closed - the message loop will notice
        pass
    except Exception as e:
        _heartbeat_logger.warning(
            "Unexpected error sending heartbeat response",
            error=type(e).__name__,
            message=str(e),
        )
    return True
