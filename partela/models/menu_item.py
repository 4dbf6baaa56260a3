"""
MenuItem model.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.config.constants import ItemCategory


@dataclass
class MenuItem:
    """
    An item ordered by one guest.

    Only `quantity` may change once the item is assigned to a guest.
    Prices are fixed-point currency values (Decimal with two places).
    """

    id: str
    name: str
    category: ItemCategory
    price: Decimal
    quantity: int = 1
    description: str = ""
    emoji: str = ""
    image_url: str | None = None

    @property
    def line_total(self) -> Decimal:
        """price × quantity, unrounded."""
        return self.price * self.quantity
