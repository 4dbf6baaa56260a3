"""
Tests for the split engine.

Orders (see conftest): Comensal 1 has 12.50 + 3.00, Comensal 2 has 8.00,
Comensal 3 has 10.00 + 6.50.
"""

from decimal import Decimal

import pytest

from shared.config.constants import ErrorCode, PaymentMode, PaymentStatus, TableStatus
from shared.utils.exceptions import InvalidPaymentModeError, InvalidStateError
from partela.services.domain import SplitService, TableRegistry
from tests.conftest import FixedOrders, seat


def _decide(votes, table, mode):
    for guest in table.guests:
        votes.cast_vote(table, guest.id, mode)


class TestPayMyPart:

    def test_each_guest_pays_own_items(self, registry, votes, splits):
        table, (a, b) = seat(registry, "MESA-A7B3", 2)
        _decide(votes, table, PaymentMode.PAY_MY_PART)

        splits.calculate_payment_amounts(table)

        assert a.payment_amount == Decimal("15.50")
        assert b.payment_amount == Decimal("8.00")
        assert all(g.payment_status == PaymentStatus.READY for g in table.guests)
        assert table.table_status == TableStatus.PAYING

    def test_tax_is_proportional_and_last_guest_absorbs(self):
        registry = TableRegistry(item_factory=FixedOrders(), tax_rate=Decimal("0.16"))
        table, (a, b) = seat(registry, "MESA-TAX1", 2)
        table.winning_mode = PaymentMode.PAY_MY_PART

        SplitService(registry).calculate_payment_amounts(table)

        assert table.total == Decimal("27.26")
        assert a.payment_amount == Decimal("17.98")
        assert b.payment_amount == Decimal("9.28")
        assert a.payment_amount + b.payment_amount == table.total


class TestSplitEqually:

    def test_remainder_goes_to_last_guest(self, registry, votes, splits):
        table, guests = seat(registry, "MESA-A7B3", 3)
        _decide(votes, table, PaymentMode.SPLIT_EQUALLY)

        splits.calculate_payment_amounts(table)

        assert table.total == Decimal("40.00")
        assert [g.payment_amount for g in guests] == [
            Decimal("13.33"),
            Decimal("13.33"),
            Decimal("13.34"),
        ]
        assert table.table_status == TableStatus.PAYING

    def test_no_winner_is_noop(self, registry, splits):
        table, (a,) = seat(registry, "MESA-A7B3", 1)

        splits.calculate_payment_amounts(table)

        assert a.payment_amount == Decimal("0.00")
        assert table.table_status == TableStatus.VIEWING


class TestCustomSplit:

    @pytest.fixture
    def custom_table(self, registry, votes):
        table, guests = seat(registry, "MESA-A7B3", 2)
        _decide(votes, table, PaymentMode.CUSTOM_SPLIT)
        return table, guests

    def test_toggle_twice_restores_assignments(self, custom_table, splits):
        table, (a, _) = custom_table
        item_id = a.items[0].id
        before_assignments = dict(table.item_assignments)
        before_balance = table.remaining_balance

        splits.toggle_item_selection(table, a.id, item_id)
        update = splits.toggle_item_selection(table, a.id, item_id)

        assert update.item_assignments[item_id] == before_assignments.get(item_id, [])
        assert table.remaining_balance == before_balance

    def test_shared_item_is_divided(self, custom_table, splits):
        table, (a, b) = custom_table
        shared, drink = a.items
        splits.toggle_item_selection(table, a.id, shared.id)
        splits.toggle_item_selection(table, a.id, drink.id)
        splits.toggle_item_selection(table, b.id, shared.id)
        update = splits.toggle_item_selection(table, b.id, b.items[0].id)

        assert update.all_assigned is True
        assert update.remaining_balance == Decimal("0.00")
        assert update.item_assignments[shared.id] == [a.id, b.id]
        assert a.payment_amount == Decimal("9.25")
        assert b.payment_amount == Decimal("14.25")

    def test_partial_selection_leaves_balance(self, custom_table, splits):
        table, (a, _) = custom_table

        update = splits.toggle_item_selection(table, a.id, a.items[0].id)

        assert update.all_assigned is False
        assert update.remaining_balance == Decimal("11.00")
        assert a.payment_amount == Decimal("12.50")

    def test_confirm_by_everyone_moves_to_paying(self, custom_table, splits):
        table, (a, b) = custom_table
        for item in a.items:
            splits.toggle_item_selection(table, a.id, item.id)
        splits.toggle_item_selection(table, b.id, b.items[0].id)

        first = splits.confirm_selection(table, a.id)
        second = splits.confirm_selection(table, b.id)

        assert first.all_ready is False
        assert first.completed is False
        assert second.completed is True
        assert table.table_status == TableStatus.PAYING
        assert a.payment_amount + b.payment_amount == table.total

    def test_confirm_with_unassigned_items(self, custom_table, splits):
        table, (a, b) = custom_table
        splits.toggle_item_selection(table, a.id, a.items[0].id)

        splits.confirm_selection(table, a.id)
        result = splits.confirm_selection(table, b.id)

        assert result.all_ready is True
        assert result.completed is False
        assert table.table_status == TableStatus.SPLITTING
        validation = splits.validate(table)
        assert validation.valid is False
        assert validation.issues == [
            "Papelón con Limón no tiene a nadie asignado",
            "Arepa Reina Pepiada no tiene a nadie asignado",
        ]

    def test_selections_locked_once_paying(self, custom_table, splits):
        table, (a, b) = custom_table
        for item in a.items + b.items:
            splits.toggle_item_selection(table, a.id, item.id)
        splits.confirm_selection(table, a.id)
        splits.confirm_selection(table, b.id)

        with pytest.raises(InvalidStateError) as exc_info:
            splits.toggle_item_selection(table, b.id, b.items[0].id)
        assert exc_info.value.code == ErrorCode.INVALID_PAYMENT_MODE

        with pytest.raises(InvalidStateError):
            splits.confirm_selection(table, a.id)

    def test_item_split_info(self, custom_table, splits):
        table, (a, b) = custom_table
        shared = a.items[0]
        splits.toggle_item_selection(table, a.id, shared.id)
        splits.toggle_item_selection(table, b.id, shared.id)

        info = splits.item_split_info(table, shared.id)
        unassigned = splits.item_split_info(table, b.items[0].id)

        assert info.payer_names == ["Comensal 1", "Comensal 2"]
        assert info.split_amount == Decimal("6.25")
        assert unassigned.payer_names == []
        assert unassigned.split_amount == Decimal("8.00")
        assert splits.item_split_info(table, "missing") is None


class TestConfirmOutsideCustomSplit:

    def test_rejected(self, registry, votes, splits):
        table, (a,) = seat(registry, "MESA-A7B3", 1)
        _decide(votes, table, PaymentMode.SPLIT_EQUALLY)

        with pytest.raises(InvalidPaymentModeError):
            splits.confirm_selection(table, a.id)


class TestAfterDeparture:
    """Amounts are settled again when a guest leaves mid-split."""

    def test_orphaned_items_reopen_custom_split(self, registry, votes, splits):
        table, (a, b) = seat(registry, "MESA-A7B3", 2)
        _decide(votes, table, PaymentMode.CUSTOM_SPLIT)
        for item in a.items + b.items:
            splits.toggle_item_selection(table, a.id, item.id)
        splits.confirm_selection(table, a.id)
        splits.confirm_selection(table, b.id)
        assert table.table_status == TableStatus.PAYING

        registry.remove_guest("conn-1")
        update = splits.settle_departure(table)

        assert table.table_status == TableStatus.SPLITTING
        assert b.payment_status == PaymentStatus.PENDING
        assert update.all_assigned is False
        assert update.remaining_balance == Decimal("8.00")
        assert b.payment_amount == Decimal("0.00")

        splits.toggle_item_selection(table, b.id, b.items[0].id)
        assert splits.confirm_selection(table, b.id).completed is True
        assert b.payment_amount == table.total == Decimal("8.00")

    def test_last_unconfirmed_guest_leaving_moves_to_paying(self, registry, votes, splits):
        table, (a, b) = seat(registry, "MESA-A7B3", 2)
        _decide(votes, table, PaymentMode.CUSTOM_SPLIT)
        for item in a.items:
            splits.toggle_item_selection(table, a.id, item.id)
        splits.confirm_selection(table, a.id)

        registry.remove_guest("conn-2")
        update = splits.settle_departure(table)

        assert update.all_assigned is True
        assert table.table_status == TableStatus.PAYING
        assert a.payment_amount == table.total == Decimal("15.50")

    def test_other_modes_are_recalculated(self, registry, votes, splits):
        table, (a, b, c) = seat(registry, "MESA-A7B3", 3)
        _decide(votes, table, PaymentMode.SPLIT_EQUALLY)
        splits.calculate_payment_amounts(table)

        registry.remove_guest("conn-3")

        assert splits.settle_departure(table) is None
        assert a.payment_amount + b.payment_amount == table.total == Decimal("23.50")

    def test_unpaid_guests_absorb_outstanding_balance(self, registry, votes, splits):
        table, (a, b, c) = seat(registry, "MESA-A7B3", 3)
        _decide(votes, table, PaymentMode.SPLIT_EQUALLY)
        splits.calculate_payment_amounts(table)
        assert [g.payment_amount for g in table.guests] == [
            Decimal("13.33"),
            Decimal("13.33"),
            Decimal("13.34"),
        ]
        a.payment_status = PaymentStatus.SUBMITTED
        table.table_status = TableStatus.WAITING_PAYMENTS

        registry.remove_guest("conn-3")
        splits.rebalance_unpaid(table)

        assert a.payment_amount == Decimal("13.33")
        assert b.payment_amount == Decimal("10.17")
        assert a.payment_amount + b.payment_amount == table.total

    def test_rebalance_without_unpaid_guests_is_noop(self, registry, votes, splits):
        table, (a,) = seat(registry, "MESA-A7B3", 1)
        _decide(votes, table, PaymentMode.PAY_MY_PART)
        splits.calculate_payment_amounts(table)
        a.payment_status = PaymentStatus.CONFIRMED

        splits.rebalance_unpaid(table)

        assert a.payment_amount == Decimal("15.50")
