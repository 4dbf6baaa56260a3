"""
Client-facing Pydantic schemas.

Everything sent over the wire is a projection of the in-memory models:
camelCase keys, money as JSON numbers with two decimals, and never a
guest's connection id or payment details.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from shared.config.constants import (
    ItemCategory,
    PaymentMode,
    PaymentStatus,
    TableStatus,
)
from partela.models import Guest, MenuItem, PaymentInfo, Table
from partela.services.money import to_float


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Table snapshot
# =============================================================================


class MenuItemDTO(CamelModel):
    id: str
    name: str
    description: str
    category: ItemCategory
    price: float
    quantity: int
    emoji: str
    image_url: str | None = None

    @classmethod
    def from_item(cls, item: MenuItem) -> "MenuItemDTO":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            price=to_float(item.price),
            quantity=item.quantity,
            emoji=item.emoji,
            image_url=item.image_url,
        )


class GuestDTO(CamelModel):
    """Guest as seen by the other guests: no connection id, no payment details."""

    id: str
    display_name: str
    items: list[MenuItemDTO]
    voted_payment_mode: PaymentMode | None
    selected_item_ids: list[str]
    payment_amount: float
    payment_status: PaymentStatus
    is_online: bool
    joined_at: datetime

    @classmethod
    def from_guest(cls, guest: Guest) -> "GuestDTO":
        return cls(
            id=guest.id,
            display_name=guest.display_name,
            items=[MenuItemDTO.from_item(i) for i in guest.items],
            voted_payment_mode=guest.voted_payment_mode,
            selected_item_ids=list(guest.selected_item_ids),
            payment_amount=to_float(guest.payment_amount),
            payment_status=guest.payment_status,
            is_online=guest.is_online,
            joined_at=guest.joined_at,
        )


class TableDTO(CamelModel):
    """Full table snapshot broadcast as `table:state`."""

    id: str
    restaurant_name: str
    guests: list[GuestDTO]
    max_guests: int
    subtotal: float
    tax_rate: float
    tax_amount: float
    service_fee_rate: float
    service_fee_amount: float
    total: float
    voting_open: bool
    votes: dict[str, list[str]]
    winning_mode: PaymentMode | None
    item_assignments: dict[str, list[str]]
    all_items_assigned: bool
    remaining_balance: float
    table_status: TableStatus

    @classmethod
    def from_table(cls, table: Table) -> "TableDTO":
        return cls(
            id=table.id,
            restaurant_name=table.restaurant_name,
            guests=[GuestDTO.from_guest(g) for g in table.guests],
            max_guests=table.max_guests,
            subtotal=to_float(table.subtotal),
            tax_rate=float(table.tax_rate),
            tax_amount=to_float(table.tax_amount),
            service_fee_rate=float(table.service_fee_rate),
            service_fee_amount=to_float(table.service_fee_amount),
            total=to_float(table.total),
            voting_open=table.voting_open,
            votes={mode.value: list(ids) for mode, ids in table.votes.items()},
            winning_mode=table.winning_mode,
            item_assignments={k: list(v) for k, v in table.item_assignments.items()},
            all_items_assigned=table.all_items_assigned,
            remaining_balance=to_float(table.remaining_balance),
            table_status=table.table_status,
        )


# =============================================================================
# Event payloads
# =============================================================================


class GuestJoinedPayload(CamelModel):
    guest: GuestDTO
    guest_count: int


class GuestLeftPayload(CamelModel):
    guest_id: str
    display_name: str
    guest_count: int


class VoteResultOutput(CamelModel):
    mode: PaymentMode
    votes: int
    percentage: float
    is_winner: bool
    voters: list[str] = Field(default_factory=list)


class VoteUpdatedPayload(CamelModel):
    votes: list[VoteResultOutput]
    total_votes: int
    total_guests: int


class VoteTiePayload(CamelModel):
    tied_modes: list[PaymentMode]
    message: str


class VoteCompletedPayload(CamelModel):
    winning_mode: PaymentMode
    message: str


class SplitUpdatedPayload(CamelModel):
    item_assignments: dict[str, list[str]]
    remaining_balance: float
    all_assigned: bool


class SplitValidatedPayload(CamelModel):
    valid: bool
    issues: list[str] = Field(default_factory=list)


class PaymentReceivedPayload(CamelModel):
    guest_id: str
    display_name: str


class ErrorPayload(CamelModel):
    code: str
    message: str
    details: list[str] | None = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# =============================================================================
# Inbound payloads
# =============================================================================


class PaymentInfoInput(CamelModel):
    """
    Payment details as sent by the client.

    Format rules are checked by the payment service, which reports every
    failing rule. Numeric ids and phone numbers are accepted as strings.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "coerce_numbers_to_str": True,
    }

    bank: str = ""
    id_type: str = ""
    id_number: str = ""
    phone_code: str = ""
    phone_number: str = ""

    def to_model(self) -> PaymentInfo:
        return PaymentInfo(
            bank=self.bank,
            id_type=self.id_type,
            id_number=self.id_number,
            phone_code=self.phone_code,
            phone_number=self.phone_number,
        )


# =============================================================================
# HTTP responses
# =============================================================================


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    environment: str


class CreateTableResponse(CamelModel):
    table_id: str
    join_url: str
    message: str
