"""
Connection management components.

Heartbeat handling for guest devices.
"""

from ws_gateway.components.connection.heartbeat import handle_heartbeat, is_heartbeat

__all__ = [
    "handle_heartbeat",
    "is_heartbeat",
]
