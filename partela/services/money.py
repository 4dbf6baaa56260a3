"""
Money arithmetic.

All amounts are Decimal. Rounding is always to cents with ROUND_HALF_UP
(half away from zero for the non-negative values handled here). Callers
that split a total across guests give the rounding remainder to the last
guest so shares reconcile with the total exactly.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from partela.models import MenuItem

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert to Decimal without inheriting binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_cents(value: Decimal | int | float | str) -> Decimal:
    """Round to two decimals, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def items_subtotal(items: Iterable[MenuItem]) -> Decimal:
    """Σ price × quantity, unrounded."""
    return sum((item.line_total for item in items), Decimal("0"))


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    service_fee_amount: Decimal
    total: Decimal


def calculate_totals(
    items: Iterable[MenuItem],
    tax_rate: Decimal,
    service_fee_rate: Decimal,
) -> Totals:
    """
    Compute table totals from a flat list of items.

    Subtotal, tax and service fee are each rounded to cents on their own.
    The total is the sum of those rounded parts, so
    total == subtotal + tax_amount + service_fee_amount holds exactly.
    """
    raw_subtotal = items_subtotal(items)
    subtotal = round_cents(raw_subtotal)
    tax_amount = round_cents(raw_subtotal * tax_rate)
    service_fee_amount = round_cents(raw_subtotal * service_fee_rate)
    return Totals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        service_fee_amount=service_fee_amount,
        total=subtotal + tax_amount + service_fee_amount,
    )


def proportional_share(
    amount: Decimal,
    part: Decimal,
    whole: Decimal,
) -> Decimal:
    """amount × part / whole, or zero when whole is zero. Unrounded."""
    if whole == 0:
        return Decimal("0")
    return amount * part / whole


def unassigned_balance(
    items: Iterable[MenuItem],
    assignments: dict[str, list[str]],
    subtotal: Decimal,
    tax_amount: Decimal,
    service_fee_amount: Decimal,
) -> tuple[Decimal, bool]:
    """
    Balance not yet claimed by any payer under custom split.

    Returns (remaining_balance, all_assigned). The balance is the line
    total of every item with zero payers plus that amount's proportional
    share of tax and service fee.
    """
    unassigned = Decimal("0")
    all_assigned = True
    for item in items:
        if not assignments.get(item.id):
            unassigned += item.line_total
            all_assigned = False

    remaining = unassigned + proportional_share(
        tax_amount + service_fee_amount, unassigned, subtotal
    )
    return round_cents(remaining), all_assigned


def to_float(value: Decimal) -> float:
    """Wire representation of a money value."""
    return float(round_cents(value))


def allocate(amount: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """
    Split `amount` by weight, rounded to cents.

    The last share absorbs the rounding remainder so the shares add up to
    `amount` exactly. Every weight zero means equal shares.
    """
    if not weights:
        return []
    whole = sum(weights, Decimal("0"))
    if whole == 0:
        weights = [Decimal("1")] * len(weights)
        whole = Decimal(len(weights))

    shares: list[Decimal] = []
    accumulated = Decimal("0")
    for index, weight in enumerate(weights):
        if index == len(weights) - 1:
            share = round_cents(amount - accumulated)
        else:
            share = round_cents(amount * weight / whole)
        shares.append(share)
        accumulated += share
    return shares
