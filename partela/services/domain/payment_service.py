"""
Payment Service - payment submission, confirmation and completion.

A guest submits mobile-payment details once the split is settled. The
details are format-checked, stored, and the guest becomes `submitted`; a
simulated gateway callback promotes it to `confirmed` after
`payment_confirmation_delay`. The table completes when every guest is
submitted or confirmed.

Usage:
    from partela.services.domain import PaymentService

    service = PaymentService(registry, scheduler, on_payment_confirmed=broadcast_state)
    receipt = service.submit_payment(table, guest.id, info)
    if receipt.all_paid:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from shared.config.constants import (
    ErrorCode,
    PaymentFormat,
    PaymentMode,
    PaymentStatus,
    TableStatus,
)
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import (
    GuestNotFoundError,
    InvalidPaymentInfoError,
    InvalidStateError,
)
from partela.models import Guest, PaymentInfo, Table
from partela.services import money
from partela.services.scheduler import TimerKey, TimerKind, TimerScheduler

if TYPE_CHECKING:
    from partela.services.domain.table_service import TableRegistry

logger = get_logger(__name__)

PaymentHook = Callable[[Table, Guest], Awaitable[Any]]

_PAYABLE_STATUSES = frozenset({TableStatus.PAYING, TableStatus.WAITING_PAYMENTS})


@dataclass(frozen=True)
class PaymentReceipt:
    guest: Guest
    all_paid: bool


@dataclass(frozen=True)
class BreakdownLine:
    description: str
    amount: Decimal


@dataclass(frozen=True)
class PaymentSummary:
    guest_name: str
    amount: Decimal
    item_count: int
    breakdown: list[BreakdownLine] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentStatusSummary:
    paid_count: int
    total_guests: int
    paid_guests: list[str]
    pending_guests: list[str]
    all_paid: bool


def validate_payment_info(info: PaymentInfo) -> list[str]:
    """Format errors of the submitted details, empty when valid."""
    errors = []

    if not info.bank or not info.bank.strip():
        errors.append("Banco es requerido")

    if info.id_type not in PaymentFormat.ID_TYPES:
        errors.append("Tipo de documento inválido")

    if not info.id_number or len(info.id_number) < PaymentFormat.MIN_ID_NUMBER_LENGTH:
        errors.append("Número de documento debe tener al menos 6 dígitos")

    if info.phone_code not in PaymentFormat.PHONE_CODES:
        errors.append("Código de teléfono inválido")

    if not info.phone_number or len(info.phone_number) != PaymentFormat.PHONE_NUMBER_LENGTH:
        errors.append("Número de teléfono debe tener 7 dígitos")

    return errors


class PaymentService:
    """
    Payment tracker.

    Business rules:
    - Payments are accepted while the table is `paying` or
      `waiting_payments`, once per guest
    - Invalid details are rejected without touching state
    - Confirmation still lands if the guest goes offline meanwhile
    - Details are stored but never logged
    """

    def __init__(
        self,
        registry: TableRegistry,
        scheduler: TimerScheduler | None = None,
        *,
        confirmation_delay: float | None = None,
        on_payment_confirmed: PaymentHook | None = None,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._confirmation_delay = (
            confirmation_delay
            if confirmation_delay is not None
            else settings.payment_confirmation_delay
        )
        self.on_payment_confirmed = on_payment_confirmed

    # =========================================================================
    # Commands
    # =========================================================================

    def submit_payment(self, table: Table, guest_id: str, info: PaymentInfo) -> PaymentReceipt:
        """
        Record a guest's payment.

        Raises:
            GuestNotFoundError: Guest is not on this table.
            InvalidStateError: Table not accepting payments, or guest already paid.
            InvalidPaymentInfoError: Details failed format validation.
        """
        guest = table.find_guest(guest_id)
        if guest is None:
            raise GuestNotFoundError(table_id=table.id, guest_id=guest_id)

        if table.table_status not in _PAYABLE_STATUSES:
            raise InvalidStateError(
                ErrorCode.INVALID_PAYMENT_INFO,
                "La mesa no está lista para pagar",
                current_state=table.table_status.value,
                table_id=table.id,
            )
        if guest.payment_status in PaymentStatus.paid():
            raise InvalidStateError(
                ErrorCode.INVALID_PAYMENT_INFO,
                "Ya registraste tu pago",
                current_state=guest.payment_status.value,
                table_id=table.id,
                guest_id=guest.id,
            )

        errors = validate_payment_info(info)
        if errors:
            raise InvalidPaymentInfoError(errors, table_id=table.id, guest_id=guest.id)

        guest.payment_details = info
        guest.payment_status = PaymentStatus.SUBMITTED
        table.table_status = TableStatus.WAITING_PAYMENTS
        table.touch()

        all_paid = self.refresh_completion(table)
        self._schedule_confirmation(table.id, guest.id)

        logger.info(
            "Payment received",
            table_id=table.id,
            guest_id=guest.id,
            amount=str(guest.payment_amount),
            all_paid=all_paid,
        )
        return PaymentReceipt(guest=guest, all_paid=all_paid)

    def confirm_payment(self, table: Table, guest_id: str) -> bool:
        """Promote a submitted payment to confirmed. False if not applicable."""
        guest = table.find_guest(guest_id)
        if guest is None or guest.payment_status != PaymentStatus.SUBMITTED:
            return False

        guest.payment_status = PaymentStatus.CONFIRMED
        table.touch()
        logger.info("Payment confirmed", table_id=table.id, guest_id=guest.id)
        return True

    def refresh_completion(self, table: Table) -> bool:
        """Move a table waiting on payments to `completed` once all paid."""
        if table.table_status == TableStatus.WAITING_PAYMENTS and self.all_paid(table):
            table.table_status = TableStatus.COMPLETED
            table.touch()
            logger.info("Table completed", table_id=table.id, total=str(table.total))
            return True
        return table.table_status == TableStatus.COMPLETED

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def all_paid(table: Table) -> bool:
        paid = PaymentStatus.paid()
        return bool(table.guests) and all(g.payment_status in paid for g in table.guests)

    def payment_summary(self, table: Table, guest_id: str) -> PaymentSummary | None:
        """Human-readable breakdown of a guest's amount under the winning mode."""
        guest = table.find_guest(guest_id)
        if guest is None:
            return None

        breakdown: list[BreakdownLine] = []
        match table.winning_mode:
            case PaymentMode.PAY_MY_PART:
                for item in guest.items:
                    breakdown.append(
                        BreakdownLine(f"{item.quantity}x {item.name}", money.round_cents(item.line_total))
                    )
            case PaymentMode.SPLIT_EQUALLY:
                breakdown.append(
                    BreakdownLine(
                        f"Total dividido entre {table.guest_count} personas",
                        guest.payment_amount,
                    )
                )
            case PaymentMode.CUSTOM_SPLIT:
                for item_id in guest.selected_item_ids:
                    item = table.find_item(item_id)
                    if item is None:
                        continue
                    payers = len(table.payers_of(item_id))
                    description = item.name
                    if payers > 1:
                        description = f"{item.name} (dividido entre {payers})"
                    breakdown.append(
                        BreakdownLine(description, money.round_cents(item.price / max(payers, 1)))
                    )
            case None:
                pass

        return PaymentSummary(
            guest_name=guest.display_name,
            amount=guest.payment_amount,
            item_count=len(breakdown),
            breakdown=breakdown,
        )

    def payment_status_summary(self, table: Table) -> PaymentStatusSummary:
        paid = PaymentStatus.paid()
        paid_guests = [g.display_name for g in table.guests if g.payment_status in paid]
        pending_guests = [g.display_name for g in table.guests if g.payment_status not in paid]
        return PaymentStatusSummary(
            paid_count=len(paid_guests),
            total_guests=table.guest_count,
            paid_guests=paid_guests,
            pending_guests=pending_guests,
            all_paid=self.all_paid(table),
        )

    # =========================================================================
    # Confirmation timer
    # =========================================================================

    def _schedule_confirmation(self, table_id: str, guest_id: str) -> None:
        if self._scheduler is None:
            return
        self._scheduler.schedule(
            TimerKey(table_id, TimerKind.PAYMENT_CONFIRMATION, guest_id),
            self._confirmation_delay,
            lambda: self._confirm_when_due(table_id, guest_id),
        )

    async def _confirm_when_due(self, table_id: str, guest_id: str) -> None:
        async with self._registry.lock(table_id):
            table = self._registry.get(table_id)
            if table is None or not self.confirm_payment(table, guest_id):
                logger.debug(
                    "Payment confirmation skipped: table or payment gone",
                    table_id=table_id,
                    guest_id=guest_id,
                )
                return

            guest = table.find_guest(guest_id)
            if self.on_payment_confirmed is not None and guest is not None:
                await self.on_payment_confirmed(table, guest)
