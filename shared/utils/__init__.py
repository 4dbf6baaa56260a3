"""
Utilities module: Exceptions, log sanitizing.
"""

from shared.utils.exceptions import (
    AppException,
    TableNotFoundError,
    GuestNotFoundError,
    TableFullError,
    AlreadyConnectedError,
    InvalidPaymentModeError,
    InvalidPaymentInfoError,
    ItemsNotAssignedError,
    InvalidStateError,
    InvalidMessageError,
)
from shared.utils.sanitize import sanitize_log_data

__all__ = [
    # exceptions
    "AppException",
    "TableNotFoundError",
    "GuestNotFoundError",
    "TableFullError",
    "AlreadyConnectedError",
    "InvalidPaymentModeError",
    "InvalidPaymentInfoError",
    "ItemsNotAssignedError",
    "InvalidStateError",
    "InvalidMessageError",
    # sanitize
    "sanitize_log_data",
]
