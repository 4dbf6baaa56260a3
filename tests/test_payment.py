"""
Tests for payment submission, validation and completion.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from shared.config.constants import ErrorCode, PaymentMode, PaymentStatus, TableStatus
from shared.utils.exceptions import InvalidPaymentInfoError, InvalidStateError
from partela.models import PaymentInfo
from partela.services.domain import validate_payment_info
from tests.conftest import seat


@pytest.fixture
def paying_table(registry, votes, splits):
    table, guests = seat(registry, "MESA-A7B3", 2)
    for guest in guests:
        votes.cast_vote(table, guest.id, PaymentMode.SPLIT_EQUALLY)
    splits.calculate_payment_amounts(table)
    return table, guests


class TestValidatePaymentInfo:

    def test_valid_details(self, valid_payment):
        assert validate_payment_info(valid_payment) == []

    def test_every_failing_rule_is_reported(self):
        errors = validate_payment_info(
            PaymentInfo(bank=" ", id_type="X", id_number="123", phone_code="0000", phone_number="12")
        )

        assert errors == [
            "Banco es requerido",
            "Tipo de documento inválido",
            "Número de documento debe tener al menos 6 dígitos",
            "Código de teléfono inválido",
            "Número de teléfono debe tener 7 dígitos",
        ]

    @pytest.mark.parametrize("id_type", ["V", "E", "J", "P"])
    def test_accepted_id_types(self, valid_payment, id_type):
        assert validate_payment_info(replace(valid_payment, id_type=id_type)) == []

    def test_phone_number_must_be_exactly_seven(self, valid_payment):
        errors = validate_payment_info(replace(valid_payment, phone_number="12345678"))
        assert errors == ["Número de teléfono debe tener 7 dígitos"]


class TestSubmitPayment:

    def test_submit_moves_to_waiting(self, paying_table, payments, valid_payment):
        table, (a, _) = paying_table

        receipt = payments.submit_payment(table, a.id, valid_payment)

        assert receipt.all_paid is False
        assert a.payment_status == PaymentStatus.SUBMITTED
        assert a.payment_details == valid_payment
        assert table.table_status == TableStatus.WAITING_PAYMENTS

    def test_last_payment_completes_table(self, paying_table, payments, valid_payment):
        table, (a, b) = paying_table

        payments.submit_payment(table, a.id, valid_payment)
        receipt = payments.submit_payment(table, b.id, valid_payment)

        assert receipt.all_paid is True
        assert table.table_status == TableStatus.COMPLETED

    def test_invalid_details_do_not_mutate(self, paying_table, payments, valid_payment):
        table, (a, _) = paying_table

        with pytest.raises(InvalidPaymentInfoError) as exc_info:
            payments.submit_payment(table, a.id, replace(valid_payment, bank=""))

        assert exc_info.value.code == ErrorCode.INVALID_PAYMENT_INFO
        assert exc_info.value.details == ["Banco es requerido"]
        assert a.payment_status == PaymentStatus.READY
        assert a.payment_details is None
        assert table.table_status == TableStatus.PAYING

    def test_rejected_before_split_is_settled(self, registry, payments, valid_payment):
        table, (a,) = seat(registry, "MESA-A7B3", 1)

        with pytest.raises(InvalidStateError) as exc_info:
            payments.submit_payment(table, a.id, valid_payment)

        assert exc_info.value.code == ErrorCode.INVALID_PAYMENT_INFO
        assert a.payment_status == PaymentStatus.PENDING

    def test_second_submission_rejected(self, paying_table, payments, valid_payment):
        table, (a, _) = paying_table
        payments.submit_payment(table, a.id, valid_payment)

        with pytest.raises(InvalidStateError):
            payments.submit_payment(table, a.id, valid_payment)

    def test_confirm_payment(self, paying_table, payments, valid_payment):
        table, (a, b) = paying_table
        payments.submit_payment(table, a.id, valid_payment)

        assert payments.confirm_payment(table, a.id) is True
        assert a.payment_status == PaymentStatus.CONFIRMED
        assert payments.confirm_payment(table, b.id) is False


class TestAllPaid:

    def test_empty_table_is_not_paid(self, registry, payments):
        table = registry.get_or_create("MESA-EMPTY")
        assert payments.all_paid(table) is False

    def test_leave_of_last_unpaid_guest_completes(
        self, paying_table, registry, payments, valid_payment
    ):
        table, (a, _) = paying_table
        payments.submit_payment(table, a.id, valid_payment)

        registry.remove_guest("conn-2")

        assert payments.refresh_completion(table) is True
        assert table.table_status == TableStatus.COMPLETED


class TestSummaries:

    def test_payment_status_summary(self, paying_table, payments, valid_payment):
        table, (a, _) = paying_table
        payments.submit_payment(table, a.id, valid_payment)

        summary = payments.payment_status_summary(table)

        assert summary.paid_count == 1
        assert summary.total_guests == 2
        assert summary.paid_guests == ["Comensal 1"]
        assert summary.pending_guests == ["Comensal 2"]
        assert summary.all_paid is False

    def test_split_equally_breakdown(self, paying_table, payments):
        table, (a, _) = paying_table

        summary = payments.payment_summary(table, a.id)

        assert summary.amount == Decimal("11.75")
        assert [line.description for line in summary.breakdown] == [
            "Total dividido entre 2 personas"
        ]

    def test_pay_my_part_breakdown(self, registry, votes, splits, payments):
        table, (a,) = seat(registry, "MESA-A7B3", 1)
        votes.cast_vote(table, a.id, PaymentMode.PAY_MY_PART)
        splits.calculate_payment_amounts(table)

        summary = payments.payment_summary(table, a.id)

        assert summary.guest_name == "Comensal 1"
        assert summary.item_count == 2
        assert summary.breakdown[0].description == "1x Pabellón Criollo"
        assert summary.breakdown[0].amount == Decimal("12.50")

    def test_unknown_guest(self, paying_table, payments):
        table, _ = paying_table
        assert payments.payment_summary(table, "ghost") is None
