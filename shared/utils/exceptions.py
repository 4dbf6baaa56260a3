"""
Centralized domain exceptions for consistent error reporting.

Every exception carries the ErrorCode that is sent back to the client in
the unicast `error` event. Exceptions log themselves on construction.

Usage:
    from shared.utils.exceptions import GuestNotFoundError, TableFullError

    raise TableFullError(table_id, max_guests=table.max_guests)
    raise GuestNotFoundError(connection_id=connection_id)
"""

from typing import Any

from shared.config.constants import ErrorCode
from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(Exception):
    """
    Base exception with automatic logging.

    All domain exceptions inherit from this class so the event router can
    turn them into an `error {code, message, details}` payload.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: list[str] | None = None,
        log_level: str = "warning",
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(message, code=code.value, **log_context)

        self.code = code
        self.message = message
        self.details = details or []
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Error payload sent to the client."""
        payload: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = list(self.details)
        return payload


# =============================================================================
# Routing Errors
# =============================================================================


class TableNotFoundError(AppException):
    """Table id missing or unknown."""

    def __init__(self, table_id: str | None = None, **log_context: Any):
        if table_id:
            message = f"Mesa {table_id} no encontrada"
        else:
            message = "ID de mesa no proporcionado"
        super().__init__(ErrorCode.TABLE_NOT_FOUND, message, table_id=table_id, **log_context)


class GuestNotFoundError(AppException):
    """Event arrived from a connection with no resolvable table/guest."""

    def __init__(self, message: str = "No estás en una mesa", **log_context: Any):
        super().__init__(ErrorCode.GUEST_NOT_FOUND, message, **log_context)


# =============================================================================
# Admission Errors
# =============================================================================


class TableFullError(AppException):
    """Table is at capacity."""

    def __init__(self, table_id: str, **log_context: Any):
        super().__init__(
            ErrorCode.TABLE_FULL,
            "La mesa está llena",
            table_id=table_id,
            **log_context,
        )


class AlreadyConnectedError(AppException):
    """
    Connection is already bound to a table.

    Reported with TABLE_FULL: both are admission failures for the client.
    """

    def __init__(self, connection_id: str, **log_context: Any):
        super().__init__(
            ErrorCode.TABLE_FULL,
            "Ya estás en una mesa",
            connection_id=connection_id,
            **log_context,
        )


# =============================================================================
# Validation Errors
# =============================================================================


class InvalidPaymentModeError(AppException):
    """Unknown mode, or mode-specific operation in the wrong mode."""

    def __init__(self, message: str = "Modo de pago inválido", **log_context: Any):
        super().__init__(ErrorCode.INVALID_PAYMENT_MODE, message, **log_context)


class InvalidPaymentInfoError(AppException):
    """Payment details failed format validation."""

    def __init__(self, errors: list[str], **log_context: Any):
        super().__init__(
            ErrorCode.INVALID_PAYMENT_INFO,
            ", ".join(errors) if errors else "Información de pago inválida",
            details=errors,
            **log_context,
        )


class ItemsNotAssignedError(AppException):
    """Custom split cannot complete while items have no payer."""

    def __init__(self, issues: list[str], **log_context: Any):
        super().__init__(
            ErrorCode.ITEMS_NOT_ASSIGNED,
            "Hay items sin asignar",
            details=issues,
            **log_context,
        )


class InvalidStateError(AppException):
    """Table is in a state that does not allow the operation."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        current_state: str | None = None,
        **log_context: Any,
    ):
        super().__init__(code, message, current_state=current_state, **log_context)


class InvalidMessageError(AppException):
    """Inbound frame is not JSON, names an unknown event, or has a bad payload."""

    def __init__(self, message: str = "Mensaje inválido", **log_context: Any):
        super().__init__(ErrorCode.UNKNOWN_ERROR, message, **log_context)
