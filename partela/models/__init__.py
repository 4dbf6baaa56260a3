"""
In-memory models for the table state machine.

State lives for the process lifetime only. A Table owns its Guests and a
Guest owns its MenuItems; connections refer to guests by id.
"""

from partela.models.menu_item import MenuItem
from partela.models.payment_info import PaymentInfo
from partela.models.guest import Guest
from partela.models.table import Table

__all__ = [
    "MenuItem",
    "PaymentInfo",
    "Guest",
    "Table",
]
