"""
Table Registry - authoritative in-memory store of tables.

Owns:
- tables: table_id -> Table
- reverse index: connection_id -> (table_id, guest_id), used to route
  inbound events to a guest
- one asyncio.Lock per table, shared by event handlers and timers
- table lifecycle: creation, guest admission/reconnect/disconnect/leave,
  reset, totals recomputation, eviction after the empty grace period

Usage:
    from partela.services.domain import TableRegistry

    registry = TableRegistry(scheduler=TimerScheduler())
    result = registry.add_or_reconnect_guest("MESA-A7B3", connection_id)
    table, guest = registry.resolve(connection_id)
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Callable

from shared.config.constants import PAYMENT_MODES, TableStatus
from shared.config.logging import table_logger as logger
from shared.config.settings import settings
from shared.utils.exceptions import (
    AlreadyConnectedError,
    GuestNotFoundError,
    TableFullError,
    TableNotFoundError,
)
from partela.models import Guest, MenuItem, Table
from partela.services import money
from partela.services.demo_data import generate_guest_items, generate_guest_name
from partela.services.scheduler import TimerKey, TimerKind, TimerScheduler

ItemFactory = Callable[[], list[MenuItem]]


@dataclass(frozen=True)
class JoinResult:
    table: Table
    guest: Guest
    reconnected: bool


class TableRegistry:
    """
    In-memory store of every live table.

    Business rules:
    - Reconnecting with a known guest id revives that guest and skips the
      capacity check
    - New guests are rejected when the table is full or the connection is
      already bound to a guest
    - Disconnect keeps the guest (offline); leave removes it
    - A table with no guests is evicted after the grace period unless
      someone joins first
    """

    def __init__(
        self,
        *,
        item_factory: ItemFactory = generate_guest_items,
        scheduler: TimerScheduler | None = None,
        restaurant_name: str | None = None,
        max_guests: int | None = None,
        tax_rate: Decimal | None = None,
        service_fee_rate: Decimal | None = None,
        empty_table_grace_period: float | None = None,
    ) -> None:
        self._item_factory = item_factory
        self.scheduler = scheduler
        self._restaurant_name = restaurant_name or settings.restaurant_name
        self._max_guests = max_guests if max_guests is not None else settings.max_guests_per_table
        self._tax_rate = tax_rate if tax_rate is not None else settings.default_tax_rate
        self._service_fee_rate = (
            service_fee_rate if service_fee_rate is not None else settings.default_service_fee_rate
        )
        self._grace_period = (
            empty_table_grace_period
            if empty_table_grace_period is not None
            else settings.empty_table_grace_period
        )

        self._tables: dict[str, Table] = {}
        self._bindings: dict[str, tuple[str, str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def tables(self) -> MappingProxyType[str, Table]:
        """Live tables (immutable view)."""
        return MappingProxyType(self._tables)

    def get(self, table_id: str | None) -> Table | None:
        if not table_id:
            return None
        return self._tables.get(table_id)

    def require(self, table_id: str | None) -> Table:
        table = self.get(table_id)
        if table is None:
            raise TableNotFoundError(table_id)
        return table

    def get_or_create(self, table_id: str) -> Table:
        """Existing table, or a fresh one in `viewing` with zeroed totals."""
        table = self._tables.get(table_id)
        if table is not None:
            return table

        table = Table(
            id=table_id,
            restaurant_name=self._restaurant_name,
            max_guests=self._max_guests,
            tax_rate=self._tax_rate,
            service_fee_rate=self._service_fee_rate,
        )
        self._tables[table_id] = table
        logger.info("Table created", table_id=table_id, max_guests=table.max_guests)
        return table

    def lock(self, table_id: str) -> asyncio.Lock:
        """Per-table lock. Never shared across tables."""
        lock = self._locks.get(table_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[table_id] = lock
        return lock

    def binding(self, connection_id: str) -> tuple[str, str] | None:
        """(table_id, guest_id) bound to a connection, if any."""
        return self._bindings.get(connection_id)

    def lookup(self, connection_id: str) -> tuple[Table, Guest] | None:
        binding = self._bindings.get(connection_id)
        if binding is None:
            return None
        table_id, guest_id = binding
        table = self._tables.get(table_id)
        if table is None:
            return None
        guest = table.find_guest(guest_id)
        if guest is None:
            return None
        return table, guest

    def resolve(self, connection_id: str) -> tuple[Table, Guest]:
        """Table and guest for an inbound event, or GuestNotFoundError."""
        found = self.lookup(connection_id)
        if found is None:
            raise GuestNotFoundError(connection_id=connection_id)
        return found

    # =========================================================================
    # Membership
    # =========================================================================

    def add_or_reconnect_guest(
        self,
        table_id: str,
        connection_id: str,
        existing_guest_id: str | None = None,
    ) -> JoinResult:
        """
        Bind a connection to a guest of the table.

        Raises:
            TableFullError: New guest and the table is at capacity.
            AlreadyConnectedError: Connection is bound to another guest.
        """
        table = self.get_or_create(table_id)
        try:
            guest = table.find_guest(existing_guest_id)
            if guest is not None:
                self._rebind(table, guest, connection_id)
                return JoinResult(table, guest, reconnected=True)
            guest = self._admit(table, connection_id)
            return JoinResult(table, guest, reconnected=False)
        finally:
            if table.is_empty:
                self._schedule_eviction(table.id)

    def _rebind(self, table: Table, guest: Guest, connection_id: str) -> None:
        current = self._bindings.get(connection_id)
        if current is not None and current != (table.id, guest.id):
            raise AlreadyConnectedError(connection_id, table_id=table.id)

        if guest.connection_id and guest.connection_id != connection_id:
            # A stale socket of the same guest must stop routing here
            self._bindings.pop(guest.connection_id, None)

        guest.connection_id = connection_id
        guest.is_online = True
        self._bindings[connection_id] = (table.id, guest.id)
        table.touch()
        logger.info(
            "Guest reconnected",
            table_id=table.id,
            guest_id=guest.id,
            display_name=guest.display_name,
        )

    def _admit(self, table: Table, connection_id: str) -> Guest:
        if table.is_full:
            raise TableFullError(table.id, max_guests=table.max_guests)
        if connection_id in self._bindings:
            raise AlreadyConnectedError(connection_id, table_id=table.id)

        guest = Guest(
            id=str(uuid.uuid4()),
            display_name=generate_guest_name(len(table.guests)),
            connection_id=connection_id,
            items=self._item_factory(),
        )
        table.guests.append(guest)
        self._bindings[connection_id] = (table.id, guest.id)

        self.recalculate_totals(table)
        self.refresh_remaining_balance(table)
        self._cancel_eviction(table.id)
        table.touch()

        logger.info(
            "Guest joined table",
            table_id=table.id,
            guest_id=guest.id,
            display_name=guest.display_name,
            item_count=len(guest.items),
            guest_count=table.guest_count,
        )
        return guest

    def disconnect(self, connection_id: str) -> tuple[Table, Guest] | None:
        """
        Mark the connection's guest offline.

        The guest keeps its slot, items, vote and amounts for a reconnect.
        """
        found = self.lookup(connection_id)
        self._bindings.pop(connection_id, None)
        if found is None:
            return None

        table, guest = found
        if guest.connection_id == connection_id:
            guest.connection_id = None
            guest.is_online = False
        table.touch()
        logger.info(
            "Guest disconnected",
            table_id=table.id,
            guest_id=guest.id,
            display_name=guest.display_name,
        )
        return table, guest

    def remove_guest(self, connection_id: str) -> tuple[Table, Guest] | None:
        """
        Permanently remove the connection's guest (explicit leave).

        Drops its vote and any selections of its items, renumbers the
        remaining guests and recomputes every derived value.
        """
        found = self.lookup(connection_id)
        if found is None:
            return None

        table, guest = found
        self._bindings.pop(connection_id, None)
        table.guests.remove(guest)

        for mode in PAYMENT_MODES:
            if guest.id in table.votes[mode]:
                table.votes[mode].remove(guest.id)

        remaining_item_ids = {item.id for item in table.all_items()}
        for index, other in enumerate(table.guests):
            other.display_name = generate_guest_name(index)
            other.selected_item_ids = [
                item_id for item_id in other.selected_item_ids if item_id in remaining_item_ids
            ]

        self.rebuild_item_assignments(table)
        self.recalculate_totals(table)
        self.refresh_remaining_balance(table)
        table.touch()

        if self.scheduler is not None:
            self.scheduler.cancel(
                TimerKey(table.id, TimerKind.PAYMENT_CONFIRMATION, guest.id)
            )
        if table.is_empty:
            self._schedule_eviction(table.id)

        logger.info(
            "Guest left table",
            table_id=table.id,
            guest_id=guest.id,
            guest_count=table.guest_count,
        )
        return table, guest

    def reset(self, table_id: str) -> Table | None:
        """
        Return the table to `viewing`.

        Clears voting, winning mode, assignments and every guest's vote,
        selections and payment state. Items and online status stay.
        Pending tie/payment timers of the table are cancelled.
        """
        table = self.get(table_id)
        if table is None:
            return None

        if self.scheduler is not None:
            for key in self.scheduler.pending_for(table_id):
                if key.kind != TimerKind.EVICTION:
                    self.scheduler.cancel(key)

        table.table_status = TableStatus.VIEWING
        table.voting_open = False
        table.votes = {mode: [] for mode in PAYMENT_MODES}
        table.winning_mode = None
        table.item_assignments = {}
        for guest in table.guests:
            guest.clear_progress()

        self.recalculate_totals(table)
        self.refresh_remaining_balance(table)
        table.touch()
        logger.info("Table reset", table_id=table_id)
        return table

    # =========================================================================
    # Derived values
    # =========================================================================

    @staticmethod
    def recalculate_totals(table: Table) -> None:
        totals = money.calculate_totals(
            table.all_items(), table.tax_rate, table.service_fee_rate
        )
        table.subtotal = totals.subtotal
        table.tax_amount = totals.tax_amount
        table.service_fee_amount = totals.service_fee_amount
        table.total = totals.total

    @staticmethod
    def rebuild_item_assignments(table: Table) -> None:
        """Project item -> payers from the guests' selections, from scratch."""
        table.item_assignments = {
            item.id: [g.id for g in table.guests if g.has_selected(item.id)]
            for item in table.all_items()
        }

    @staticmethod
    def refresh_remaining_balance(table: Table) -> None:
        table.remaining_balance, table.all_items_assigned = money.unassigned_balance(
            table.all_items(),
            table.item_assignments,
            table.subtotal,
            table.tax_amount,
            table.service_fee_amount,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _schedule_eviction(self, table_id: str) -> None:
        if self.scheduler is None:
            return
        self.scheduler.schedule(
            TimerKey(table_id, TimerKind.EVICTION),
            self._grace_period,
            lambda: self._evict_when_due(table_id),
        )

    def _cancel_eviction(self, table_id: str) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel(TimerKey(table_id, TimerKind.EVICTION))

    async def _evict_when_due(self, table_id: str) -> None:
        async with self.lock(table_id):
            self.evict_if_empty(table_id)

    def evict_if_empty(self, table_id: str) -> bool:
        """Delete the table if it has no guests. Cancels its timers."""
        table = self._tables.get(table_id)
        if table is None or not table.is_empty:
            return False

        del self._tables[table_id]
        self._locks.pop(table_id, None)
        if self.scheduler is not None:
            self.scheduler.cancel_table(table_id)
        logger.info("Empty table evicted", table_id=table_id)
        return True

    async def shutdown(self) -> None:
        """Cancel every pending timer and drop all state."""
        if self.scheduler is not None:
            await self.scheduler.shutdown()
        self._tables.clear()
        self._bindings.clear()
        self._locks.clear()

    def get_stats(self) -> dict[str, int]:
        guests = [g for t in self._tables.values() for g in t.guests]
        return {
            "tables": len(self._tables),
            "guests": len(guests),
            "online_guests": sum(1 for g in guests if g.is_online),
            "bound_connections": len(self._bindings),
        }
