"""
Event types for the table gateway.

Inbound frames are parsed into a closed set of typed messages, one class
per client event, so the router can dispatch them with a single match.

Wire format (both directions):
    {"event": "vote:cast", "data": {"mode": "split_equally"}}
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter, ValidationError

from shared.config.logging import get_logger
from shared.utils.exceptions import InvalidMessageError, InvalidPaymentInfoError
from shared.utils.sanitize import sanitize_log_data
from partela.schemas import CamelModel, PaymentInfoInput

logger = get_logger(__name__)


class ClientEvent(str, Enum):
    """Events a guest's device can send."""

    TABLE_JOIN = "table:join"
    TABLE_LEAVE = "table:leave"
    TABLE_RESET = "table:reset"
    VOTE_CAST = "vote:cast"
    SPLIT_TOGGLE_ITEM = "split:toggle_item"
    SPLIT_CONFIRM = "split:confirm"
    PAYMENT_SUBMIT = "payment:submit"


class ServerEvent(str, Enum):
    """Events the gateway emits. `error` is unicast, the rest go to the table room."""

    TABLE_STATE = "table:state"
    TABLE_GUEST_JOINED = "table:guest_joined"
    TABLE_GUEST_LEFT = "table:guest_left"
    TABLE_COMPLETED = "table:completed"
    VOTE_UPDATED = "vote:updated"
    VOTE_TIE = "vote:tie"
    VOTE_COMPLETED = "vote:completed"
    SPLIT_UPDATED = "split:updated"
    SPLIT_VALIDATED = "split:validated"
    PAYMENT_RECEIVED = "payment:received"
    ERROR = "error"


VALID_CLIENT_EVENTS: frozenset[str] = frozenset(e.value for e in ClientEvent)


# =============================================================================
# Inbound messages
# =============================================================================


class InboundMessage(CamelModel):
    model_config = {"frozen": True}


class JoinTable(InboundMessage):
    event: Literal["table:join"]
    table_id: str | None = None
    guest_id: str | None = None


class LeaveTable(InboundMessage):
    event: Literal["table:leave"]


class ResetTable(InboundMessage):
    event: Literal["table:reset"]


class CastVote(InboundMessage):
    event: Literal["vote:cast"]
    mode: str | None = None


class ToggleItem(InboundMessage):
    event: Literal["split:toggle_item"]
    item_id: str


class ConfirmSplit(InboundMessage):
    event: Literal["split:confirm"]


class SubmitPayment(PaymentInfoInput):
    model_config = {"frozen": True}

    event: Literal["payment:submit"]


ClientMessage = Annotated[
    Union[
        JoinTable,
        LeaveTable,
        ResetTable,
        CastVote,
        ToggleItem,
        ConfirmSplit,
        SubmitPayment,
    ],
    Field(discriminator="event"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_frame(raw: str) -> ClientMessage:
    """
    Parse one inbound text frame.

    Raises:
        InvalidMessageError: Not JSON, not an object, or unknown event.
        InvalidPaymentInfoError: `payment:submit` payload of the wrong shape.
    """
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise InvalidMessageError(
            "Formato de mensaje inválido", frame=sanitize_log_data(raw)
        ) from None

    if not isinstance(frame, dict):
        raise InvalidMessageError("Formato de mensaje inválido", frame=sanitize_log_data(raw))

    event = frame.get("event")
    if event not in VALID_CLIENT_EVENTS:
        raise InvalidMessageError(
            "Evento desconocido", event=sanitize_log_data(str(event))
        )

    data = frame.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidMessageError("Datos del evento inválidos", event=event)

    fields: dict[str, Any] = {**data, "event": event}
    try:
        return _client_message_adapter.validate_python(fields)
    except ValidationError as e:
        if event == ClientEvent.PAYMENT_SUBMIT.value:
            raise InvalidPaymentInfoError(["Información de pago inválida"]) from None
        raise InvalidMessageError(
            "Datos del evento inválidos", event=event, errors=e.error_count()
        ) from None
