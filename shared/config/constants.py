"""
Centralized constants for the table gateway.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import PaymentMode, TableStatus

    if table.table_status == TableStatus.SPLITTING:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Payment Modes
# =============================================================================


class PaymentMode(str, Enum):
    """The three bill-splitting strategies a table can vote for."""

    PAY_MY_PART = "pay_my_part"
    SPLIT_EQUALLY = "split_equally"
    CUSTOM_SPLIT = "custom_split"


# Display order used everywhere results are listed
PAYMENT_MODES: Final[tuple[PaymentMode, ...]] = (
    PaymentMode.PAY_MY_PART,
    PaymentMode.SPLIT_EQUALLY,
    PaymentMode.CUSTOM_SPLIT,
)

PAYMENT_MODE_NAMES: Final[dict[PaymentMode, str]] = {
    PaymentMode.PAY_MY_PART: "Pagar Mi Parte",
    PaymentMode.SPLIT_EQUALLY: "División Equitativa",
    PaymentMode.CUSTOM_SPLIT: "División Personalizada",
}


# =============================================================================
# Entity Status Constants
# =============================================================================


class PaymentStatus(str, Enum):
    """Per-guest payment status."""

    PENDING = "pending"
    READY = "ready"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"

    @classmethod
    def paid(cls) -> frozenset["PaymentStatus"]:
        """Statuses that count as paid for the all-paid check."""
        return frozenset({cls.SUBMITTED, cls.CONFIRMED})


class TableStatus(str, Enum):
    """
    Table state machine.

    viewing -> voting -> splitting -> paying -> waiting_payments -> completed
    reset() returns to viewing from any state.
    """

    VIEWING = "viewing"
    VOTING = "voting"
    SPLITTING = "splitting"
    PAYING = "paying"
    WAITING_PAYMENTS = "waiting_payments"
    COMPLETED = "completed"


class ItemCategory(str, Enum):
    """Menu item categories."""

    DRINK = "drink"
    DISH = "dish"
    DESSERT = "dessert"


# =============================================================================
# Error Codes (unicast `error` payload)
# =============================================================================


class ErrorCode(str, Enum):
    """Error codes reported to the originator of a failed event."""

    TABLE_FULL = "TABLE_FULL"
    TABLE_NOT_FOUND = "TABLE_NOT_FOUND"
    GUEST_NOT_FOUND = "GUEST_NOT_FOUND"
    ALREADY_IN_TABLE = "ALREADY_IN_TABLE"
    INVALID_PAYMENT_MODE = "INVALID_PAYMENT_MODE"
    INVALID_PAYMENT_INFO = "INVALID_PAYMENT_INFO"
    ITEMS_NOT_ASSIGNED = "ITEMS_NOT_ASSIGNED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# =============================================================================
# Payment Details Format
# =============================================================================


class PaymentFormat:
    """Format rules for submitted payment details (mobile payment)."""

    ID_TYPES: Final[frozenset[str]] = frozenset({"V", "E", "J", "P"})
    PHONE_CODES: Final[frozenset[str]] = frozenset({"0412", "0414", "0424", "0416", "0426"})
    MIN_ID_NUMBER_LENGTH: Final[int] = 6
    PHONE_NUMBER_LENGTH: Final[int] = 7


# =============================================================================
# Demo Data
# =============================================================================


class DemoData:
    """Bounds for randomly generated guest orders."""

    MIN_ITEMS_PER_GUEST: Final[int] = 1
    MAX_ITEMS_PER_GUEST: Final[int] = 3
    TABLE_ID_PREFIX: Final[str] = "MESA-"
    TABLE_ID_LENGTH: Final[int] = 4
    # No I, O, 0 or 1: codes are read aloud and typed by hand
    TABLE_ID_ALPHABET: Final[str] = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
