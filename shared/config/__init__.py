"""
Configuration module: Settings, logging, constants.
"""

from shared.config.settings import settings, get_settings
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import (
    PaymentMode,
    PaymentStatus,
    TableStatus,
    ItemCategory,
    ErrorCode,
    PAYMENT_MODES,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "PaymentMode",
    "PaymentStatus",
    "TableStatus",
    "ItemCategory",
    "ErrorCode",
    "PAYMENT_MODES",
]
