"""
WebSocket Gateway Constants.

Close codes, heartbeat frames and origin validation shared by the
endpoints and the HTTP app.
"""

from typing import Final

from shared.config.logging import get_logger

__all__ = [
    "WSCloseCode",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "parse_allowed_origins",
    "validate_websocket_origin",
]

logger = get_logger(__name__)


class WSCloseCode:
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific errors.
    """

    NORMAL: Final[int] = 1000  # Normal closure
    GOING_AWAY: Final[int] = 1001  # Server shutting down
    MESSAGE_TOO_BIG: Final[int] = 1009

    FORBIDDEN: Final[int] = 4003  # Origin not allowed


# Heartbeat protocol frames
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'


# Development origins used when ALLOWED_ORIGINS is empty
DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:4200",
    "http://localhost:5173",
    "http://127.0.0.1:4200",
    "http://127.0.0.1:5173",
)


def parse_allowed_origins(settings: object) -> list[str]:
    """Allowed origins from settings, or the development defaults."""
    allowed_origins_str = getattr(settings, "allowed_origins", None)
    if allowed_origins_str:
        return [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    return list(DEFAULT_ALLOWED_ORIGINS)


def validate_websocket_origin(origin: str | None, settings: object) -> bool:
    """
    Validate WebSocket origin header against allowed origins.

    A missing Origin header (non-browser client) is accepted in development
    only.

    Args:
        origin: The Origin header value, or None if not present.
        settings: Settings object with environment and allowed_origins attributes.

    Returns:
        True if origin is allowed, False otherwise.
    """
    allowed = parse_allowed_origins(settings)

    if not origin:
        is_dev = getattr(settings, "environment", "production") == "development"
        if is_dev:
            logger.debug("WebSocket connection without Origin header (dev mode)")
            return True
        logger.warning("WebSocket connection rejected: missing Origin header in production")
        return False

    if origin in allowed:
        return True

    logger.warning(
        "WebSocket connection rejected: origin not in allowed list",
        origin=origin,
        allowed_count=len(allowed),
    )
    return False
