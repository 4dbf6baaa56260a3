"""
Guest model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from shared.config.constants import PaymentMode, PaymentStatus
from partela.models.menu_item import MenuItem
from partela.models.payment_info import PaymentInfo


@dataclass
class Guest:
    """
    One participant (device) at a table.

    A guest goes offline on disconnect and is revived by a reconnect that
    presents its id; only an explicit leave removes it from the table.
    `connection_id` is internal routing state and never leaves the server.
    """

    id: str
    display_name: str
    connection_id: str | None = None
    items: list[MenuItem] = field(default_factory=list)
    voted_payment_mode: PaymentMode | None = None
    # Set semantics, kept in selection order
    selected_item_ids: list[str] = field(default_factory=list)
    payment_amount: Decimal = Decimal("0.00")
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_details: PaymentInfo | None = None
    is_online: bool = True
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def subtotal(self) -> Decimal:
        """Σ price × quantity over this guest's own items."""
        return sum((item.line_total for item in self.items), Decimal("0"))

    def has_selected(self, item_id: str) -> bool:
        return item_id in self.selected_item_ids

    def clear_progress(self) -> None:
        """Forget vote, selections and payment state. Items stay."""
        self.voted_payment_mode = None
        self.selected_item_ids = []
        self.payment_amount = Decimal("0.00")
        self.payment_status = PaymentStatus.PENDING
        self.payment_details = None
