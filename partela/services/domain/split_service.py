"""
Split Service - the three bill-splitting algorithms and custom-split state.

Modes:
- pay_my_part: own items plus a proportional share of tax and service fee
- split_equally: table total / guest count
- custom_split: each selected item's unit price divided among its payers,
  plus the proportional tax/service share

Amounts are rounded to cents and the last guest (table order) absorbs the
rounding remainder, so shares add up to the table total exactly. Under
custom split that absorption happens only once every item has a payer.

Usage:
    from partela.services.domain import SplitService

    service = SplitService(registry)
    service.calculate_payment_amounts(table)
    update = service.toggle_item_selection(table, guest.id, item_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from shared.config.constants import ErrorCode, PaymentMode, PaymentStatus, TableStatus
from shared.config.logging import get_logger
from shared.utils.exceptions import (
    GuestNotFoundError,
    InvalidPaymentModeError,
    InvalidStateError,
)
from partela.models import Guest, Table
from partela.services import money

if TYPE_CHECKING:
    from partela.services.domain.table_service import TableRegistry

logger = get_logger(__name__)

# Once payments begin the selections are frozen
_LOCKED_STATUSES = frozenset(
    {TableStatus.PAYING, TableStatus.WAITING_PAYMENTS, TableStatus.COMPLETED}
)


@dataclass(frozen=True)
class SplitUpdate:
    item_assignments: dict[str, list[str]]
    remaining_balance: Decimal
    all_assigned: bool


@dataclass(frozen=True)
class ConfirmResult:
    all_ready: bool
    completed: bool


@dataclass(frozen=True)
class SplitValidation:
    valid: bool
    issues: list[str]


@dataclass(frozen=True)
class ItemSplitInfo:
    payer_names: list[str]
    split_amount: Decimal


class SplitService:
    """
    Split engine.

    Business rules:
    - Amounts are computed in guest join order
    - pay_my_part and split_equally mark every guest `ready` and move the
      table to `paying`
    - custom_split leaves statuses alone; each guest confirms its own
      selection and the last confirmation (with every item assigned)
      moves the table to `paying`
    - item_assignments is always rebuilt from the selections
    """

    def __init__(self, registry: TableRegistry) -> None:
        self._registry = registry

    # =========================================================================
    # Payment amounts
    # =========================================================================

    def calculate_payment_amounts(self, table: Table) -> None:
        """Run the algorithm of the winning mode. No-op without a winner."""
        match table.winning_mode:
            case PaymentMode.PAY_MY_PART:
                self.calculate_pay_my_part(table)
            case PaymentMode.SPLIT_EQUALLY:
                self.calculate_split_equally(table)
            case PaymentMode.CUSTOM_SPLIT:
                self.calculate_custom_split(table)
            case None:
                return

        if table.winning_mode != PaymentMode.CUSTOM_SPLIT and table.guests:
            table.table_status = TableStatus.PAYING
        table.touch()
        logger.info(
            "Payment amounts calculated",
            table_id=table.id,
            mode=table.winning_mode.value,
            total=str(table.total),
        )

    def calculate_pay_my_part(self, table: Table) -> None:
        guest_count = table.guest_count
        accumulated = Decimal("0")

        for index, guest in enumerate(table.guests):
            guest_subtotal = guest.subtotal
            if table.subtotal > 0:
                proportion = guest_subtotal / table.subtotal
            else:
                proportion = Decimal(1) / guest_count
            amount = money.round_cents(
                guest_subtotal
                + table.tax_amount * proportion
                + table.service_fee_amount * proportion
            )
            if index == guest_count - 1:
                amount = money.round_cents(table.total - accumulated)

            guest.payment_amount = amount
            guest.payment_status = PaymentStatus.READY
            accumulated += amount

    def calculate_split_equally(self, table: Table) -> None:
        guest_count = table.guest_count
        if guest_count == 0:
            return

        base_amount = money.round_cents(table.total / guest_count)
        accumulated = Decimal("0")
        for index, guest in enumerate(table.guests):
            amount = base_amount
            if index == guest_count - 1:
                amount = money.round_cents(table.total - accumulated)

            guest.payment_amount = amount
            guest.payment_status = PaymentStatus.READY
            accumulated += amount

    def calculate_custom_split(self, table: Table) -> None:
        """
        Amounts from the current selections. Partial while items are
        unassigned: the shortfall shows up as remaining_balance.
        """
        guest_count = table.guest_count
        accumulated = Decimal("0")

        for index, guest in enumerate(table.guests):
            guest_total = self._selection_value(table, guest)

            tax_share = money.proportional_share(table.tax_amount, guest_total, table.subtotal)
            fee_share = money.proportional_share(
                table.service_fee_amount, guest_total, table.subtotal
            )
            amount = money.round_cents(guest_total + tax_share + fee_share)
            if index == guest_count - 1 and table.all_items_assigned:
                amount = money.round_cents(table.total - accumulated)

            guest.payment_amount = amount
            accumulated += amount

    @staticmethod
    def _selection_value(table: Table, guest: Guest) -> Decimal:
        """Unit price of each selected item divided among its payers. Unrounded."""
        value = Decimal("0")
        for item_id in guest.selected_item_ids:
            item = table.find_item(item_id)
            payers = len(table.payers_of(item_id))
            if item is None or payers == 0:
                continue
            value += item.price / payers
        return value

    # =========================================================================
    # After a departure
    # =========================================================================

    def settle_departure(self, table: Table) -> SplitUpdate | None:
        """
        Recompute amounts after a guest left a table whose mode is fixed.

        A custom split that lost the only payer of some item goes back to
        `splitting` with every guest `pending`, so the orphaned items can be
        claimed again. A custom split whose last unconfirmed guest left
        moves on to `paying`.

        Returns the custom-split state to announce, None for the other modes.
        """
        if table.winning_mode != PaymentMode.CUSTOM_SPLIT:
            self.calculate_payment_amounts(table)
            return None

        if table.table_status == TableStatus.PAYING and not table.all_items_assigned:
            table.table_status = TableStatus.SPLITTING
            for guest in table.guests:
                guest.payment_status = PaymentStatus.PENDING
            logger.info(
                "Custom split reopened",
                table_id=table.id,
                remaining_balance=str(table.remaining_balance),
            )
        elif (
            table.table_status == TableStatus.SPLITTING
            and table.guests
            and table.all_items_assigned
            and all(g.payment_status == PaymentStatus.READY for g in table.guests)
        ):
            table.table_status = TableStatus.PAYING

        self.calculate_custom_split(table)
        table.touch()
        return self._split_update(table)

    def rebalance_unpaid(self, table: Table) -> None:
        """
        Spread what is still owed over the guests who have not paid.

        Submitted and confirmed amounts are final. The outstanding balance
        is divided by own subtotal (pay_my_part), evenly (split_equally) or
        by the value of each selection (custom_split).
        """
        paid = PaymentStatus.paid()
        unpaid = [g for g in table.guests if g.payment_status not in paid]
        if not unpaid:
            return

        settled = sum(
            (g.payment_amount for g in table.guests if g.payment_status in paid),
            Decimal("0"),
        )
        outstanding = max(table.total - settled, Decimal("0"))
        match table.winning_mode:
            case PaymentMode.PAY_MY_PART:
                weights = [g.subtotal for g in unpaid]
            case PaymentMode.CUSTOM_SPLIT:
                weights = [self._selection_value(table, g) for g in unpaid]
            case _:
                weights = [Decimal("1")] * len(unpaid)

        for guest, amount in zip(unpaid, money.allocate(outstanding, weights)):
            guest.payment_amount = amount
        table.touch()
        logger.info(
            "Outstanding balance rebalanced",
            table_id=table.id,
            outstanding=str(outstanding),
            unpaid_guests=len(unpaid),
        )

    # =========================================================================
    # Custom split selections
    # =========================================================================

    def toggle_item_selection(self, table: Table, guest_id: str, item_id: str) -> SplitUpdate:
        """
        Add or remove an item from the guest's selection, then rebuild the
        assignment map and the remaining balance from scratch.

        Raises:
            GuestNotFoundError: Guest is not on this table.
            InvalidStateError: Payments already started.
        """
        guest = table.find_guest(guest_id)
        if guest is None:
            raise GuestNotFoundError(table_id=table.id, guest_id=guest_id)
        if table.table_status in _LOCKED_STATUSES:
            raise InvalidStateError(
                ErrorCode.INVALID_PAYMENT_MODE,
                "La división ya fue confirmada",
                current_state=table.table_status.value,
                table_id=table.id,
            )

        if guest.has_selected(item_id):
            guest.selected_item_ids.remove(item_id)
        else:
            guest.selected_item_ids.append(item_id)

        self._registry.rebuild_item_assignments(table)
        self._registry.refresh_remaining_balance(table)
        if table.winning_mode == PaymentMode.CUSTOM_SPLIT:
            self.calculate_custom_split(table)
        table.touch()

        logger.debug(
            "Item selection toggled",
            table_id=table.id,
            guest_id=guest.id,
            item_id=item_id,
            remaining_balance=str(table.remaining_balance),
        )
        return self._split_update(table)

    @staticmethod
    def _split_update(table: Table) -> SplitUpdate:
        return SplitUpdate(
            item_assignments={k: list(v) for k, v in table.item_assignments.items()},
            remaining_balance=table.remaining_balance,
            all_assigned=table.all_items_assigned,
        )

    def confirm_selection(self, table: Table, guest_id: str) -> ConfirmResult:
        """
        Mark the guest's selection as final.

        When every guest is ready and every item has a payer, runs the
        final custom-split pass (exact remainder absorption) and moves the
        table to `paying`.

        Raises:
            InvalidPaymentModeError: Winning mode is not custom_split.
            InvalidStateError: Selections were already settled.
        """
        guest = table.find_guest(guest_id)
        if guest is None:
            raise GuestNotFoundError(table_id=table.id, guest_id=guest_id)
        if table.winning_mode != PaymentMode.CUSTOM_SPLIT:
            raise InvalidPaymentModeError(
                "La división personalizada no está activa", table_id=table.id
            )
        if table.table_status in _LOCKED_STATUSES:
            raise InvalidStateError(
                ErrorCode.INVALID_PAYMENT_MODE,
                "La división ya fue confirmada",
                current_state=table.table_status.value,
                table_id=table.id,
            )

        guest.payment_status = PaymentStatus.READY
        table.touch()

        all_ready = all(g.payment_status == PaymentStatus.READY for g in table.guests)
        completed = all_ready and table.all_items_assigned
        if completed:
            self.calculate_custom_split(table)
            table.table_status = TableStatus.PAYING
            logger.info("Custom split confirmed by every guest", table_id=table.id)
        return ConfirmResult(all_ready=all_ready, completed=completed)

    def validate(self, table: Table) -> SplitValidation:
        """Items with no payer, by name. Valid iff there are none."""
        issues = [
            f"{item.name} no tiene a nadie asignado"
            for item in table.all_items()
            if not table.payers_of(item.id)
        ]
        return SplitValidation(valid=not issues, issues=issues)

    def item_split_info(self, table: Table, item_id: str) -> ItemSplitInfo | None:
        item = table.find_item(item_id)
        if item is None:
            return None

        payer_ids = table.payers_of(item_id)
        payer_names = []
        for payer_id in payer_ids:
            payer = table.find_guest(payer_id)
            payer_names.append(payer.display_name if payer else "Desconocido")

        if payer_ids:
            split_amount = money.round_cents(item.price / len(payer_ids))
        else:
            split_amount = item.price
        return ItemSplitInfo(payer_names=payer_names, split_amount=split_amount)
