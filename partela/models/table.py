"""
Table model: one shared bill-splitting session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from shared.config.constants import PAYMENT_MODES, PaymentMode, TableStatus
from partela.models.guest import Guest
from partela.models.menu_item import MenuItem


def _empty_votes() -> dict[PaymentMode, list[str]]:
    return {mode: [] for mode in PAYMENT_MODES}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Table:
    """
    Shared mutable state of one table.

    Invariants:
    - The three vote lists are pairwise disjoint and only hold current guest ids.
    - `item_assignments` is rebuilt from the guests' selections, never edited.
    - Money fields are derived and recomputed after every membership change.
    """

    id: str
    restaurant_name: str
    max_guests: int
    tax_rate: Decimal = Decimal("0.00")
    service_fee_rate: Decimal = Decimal("0.00")
    guests: list[Guest] = field(default_factory=list)

    # Derived totals
    subtotal: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    service_fee_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")

    # Voting
    voting_open: bool = False
    votes: dict[PaymentMode, list[str]] = field(default_factory=_empty_votes)
    winning_mode: PaymentMode | None = None

    # Custom split
    item_assignments: dict[str, list[str]] = field(default_factory=dict)
    all_items_assigned: bool = False
    remaining_balance: Decimal = Decimal("0.00")

    table_status: TableStatus = TableStatus.VIEWING
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # =========================================================================
    # Lookups
    # =========================================================================

    @property
    def guest_count(self) -> int:
        return len(self.guests)

    @property
    def is_full(self) -> bool:
        return len(self.guests) >= self.max_guests

    @property
    def is_empty(self) -> bool:
        return not self.guests

    def find_guest(self, guest_id: str | None) -> Guest | None:
        if not guest_id:
            return None
        return next((g for g in self.guests if g.id == guest_id), None)

    def all_items(self) -> list[MenuItem]:
        """Every item on the table, in guest order."""
        return [item for guest in self.guests for item in guest.items]

    def find_item(self, item_id: str) -> MenuItem | None:
        return next((i for i in self.all_items() if i.id == item_id), None)

    def payers_of(self, item_id: str) -> list[str]:
        return self.item_assignments.get(item_id, [])

    def touch(self) -> None:
        self.updated_at = _utcnow()
