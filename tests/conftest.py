"""
Pytest configuration and fixtures for the table gateway tests.

Guests get a fixed order from `FixedOrders` instead of the random demo
menu, so every amount in the tests is known in advance.
"""

import itertools
from decimal import Decimal

import pytest

from shared.config.constants import ItemCategory
from partela.models import MenuItem, PaymentInfo
from partela.services.domain import (
    PaymentService,
    SplitService,
    TableRegistry,
    VoteService,
)


_item_ids = itertools.count(1)


def make_item(
    name: str,
    price: str,
    category: ItemCategory = ItemCategory.DISH,
    quantity: int = 1,
) -> MenuItem:
    return MenuItem(
        id=f"item-{next(_item_ids)}",
        name=name,
        category=category,
        price=Decimal(price),
        quantity=quantity,
    )


# One order per join, in join order
DEFAULT_ORDERS = [
    [("Pabellón Criollo", "12.50"), ("Papelón con Limón", "3.00")],
    [("Arepa Reina Pepiada", "8.00")],
    [("Cachapa con Queso", "10.00"), ("Tequeños", "6.50")],
    [("Hallaca", "9.99")],
]


class FixedOrders:
    """Deterministic item factory: hands out DEFAULT_ORDERS in turn."""

    def __init__(self, orders=None):
        self._orders = list(orders if orders is not None else DEFAULT_ORDERS)
        self._next = 0

    def __call__(self) -> list[MenuItem]:
        order = self._orders[self._next % len(self._orders)]
        self._next += 1
        return [make_item(name, price) for name, price in order]


class FakeTransport:
    """In-memory transport recording every frame the router emits."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []
        self.broadcasts: list[tuple[str, str, dict, str | None]] = []
        self.rooms: dict[str, set[str]] = {}

    async def send(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))
        return True

    async def broadcast(self, room_id, event, payload, exclude=None):
        self.broadcasts.append((room_id, event, payload, exclude))
        return len(self.rooms.get(room_id, set()) - {exclude})

    def join_room(self, connection_id, room_id):
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def leave_room(self, connection_id, room_id):
        self.rooms.get(room_id, set()).discard(connection_id)

    def events(self) -> list[str]:
        return [event for _, event, _, _ in self.broadcasts]

    def last(self, event: str) -> dict:
        return next(p for _, e, p, _ in reversed(self.broadcasts) if e == event)

    def errors_for(self, connection_id: str) -> list[dict]:
        return [p for cid, e, p in self.sent if cid == connection_id and e == "error"]

    def clear(self):
        self.sent.clear()
        self.broadcasts.clear()


@pytest.fixture
def item_factory():
    return FixedOrders()


@pytest.fixture
def registry(item_factory):
    """Registry without timers; timer behaviour is tested separately."""
    return TableRegistry(
        item_factory=item_factory,
        restaurant_name="UPTOWN",
        max_guests=4,
        tax_rate=Decimal("0.00"),
        service_fee_rate=Decimal("0.00"),
    )


@pytest.fixture
def votes(registry):
    return VoteService(registry)


@pytest.fixture
def splits(registry):
    return SplitService(registry)


@pytest.fixture
def payments(registry):
    return PaymentService(registry)


@pytest.fixture
def valid_payment():
    return PaymentInfo(
        bank="Banesco",
        id_type="V",
        id_number="12345678",
        phone_code="0414",
        phone_number="1234567",
    )


def seat(registry: TableRegistry, table_id: str, count: int):
    """Join `count` new guests on conn-1..conn-N. Returns (table, guests)."""
    guests = []
    for n in range(1, count + 1):
        result = registry.add_or_reconnect_guest(table_id, f"conn-{n}")
        guests.append(result.guest)
    return registry.require(table_id), guests
