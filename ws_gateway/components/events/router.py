"""
Table Event Router - maps inbound guest events to the domain services.

Every inbound frame is parsed into a typed message and dispatched through
one match. Each handler resolves the sender's table and guest, runs the
domain call and the resulting broadcasts while holding that table's lock,
and ends by broadcasting the authoritative `table:state`.

Errors never escape a handler: domain exceptions are unicast to the sender
as `error {code, message, details?}`, anything else is logged and unicast
as UNKNOWN_ERROR.

Usage:
    router = TableEventRouter(manager, registry, votes, splits, payments)
    await router.handle_message(connection_id, raw_text)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from shared.config.constants import ErrorCode, TableStatus
from shared.config.logging import audit_ws_connection, get_logger
from shared.infrastructure.correlation import event_id_var, new_event_id
from shared.utils.exceptions import (
    AppException,
    ItemsNotAssignedError,
    InvalidMessageError,
    TableNotFoundError,
)
from shared.utils.sanitize import sanitize_log_data
from partela.models import Guest, PaymentInfo, Table
from partela.schemas import (
    ErrorPayload,
    GuestDTO,
    GuestJoinedPayload,
    GuestLeftPayload,
    PaymentReceivedPayload,
    SplitUpdatedPayload,
    SplitValidatedPayload,
    TableDTO,
    VoteCompletedPayload,
    VoteResultOutput,
    VoteTiePayload,
    VoteUpdatedPayload,
)
from partela.services.domain import (
    TIE_MESSAGE,
    PaymentService,
    SplitService,
    SplitUpdate,
    TableRegistry,
    VoteOutcome,
    VoteService,
)
from partela.services.money import to_float
from ws_gateway.components.events.types import (
    CastVote,
    ClientMessage,
    ConfirmSplit,
    JoinTable,
    LeaveTable,
    ResetTable,
    ServerEvent,
    SubmitPayment,
    ToggleItem,
    parse_frame,
)

logger = get_logger(__name__)


class Transport(Protocol):
    """What the router needs from the connection layer."""

    async def send(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool: ...

    async def broadcast(
        self,
        room_id: str,
        event: str,
        payload: dict[str, Any],
        exclude: str | None = None,
    ) -> int: ...

    def join_room(self, connection_id: str, room_id: str) -> None: ...

    def leave_room(self, connection_id: str, room_id: str) -> None: ...


class TableEventRouter:
    """
    Orchestrator between the transport and the domain services.

    No lock is shared across tables; timer callbacks of the vote and
    payment services take the same per-table lock before calling back in.
    """

    def __init__(
        self,
        transport: Transport,
        registry: TableRegistry,
        votes: VoteService,
        splits: SplitService,
        payments: PaymentService,
    ):
        self._transport = transport
        self._registry = registry
        self._votes = votes
        self._splits = splits
        self._payments = payments

        # Timer callbacks run with the table lock already held
        self._votes.on_votes_reset = self._on_votes_reset
        self._payments.on_payment_confirmed = self._on_payment_confirmed

    # =========================================================================
    # Entry points
    # =========================================================================

    async def handle_message(self, connection_id: str, raw: str) -> None:
        """Parse and handle one inbound frame. Never raises."""
        token = event_id_var.set(new_event_id())
        try:
            message = parse_frame(raw)
            await self.dispatch(connection_id, message)
        except AppException as e:
            await self._send_error(connection_id, e.to_payload())
        except Exception as e:
            logger.error(
                "Unexpected error handling event",
                connection_id=connection_id,
                error=str(e),
                exc_info=True,
            )
            await self._send_error(
                connection_id,
                {"code": ErrorCode.UNKNOWN_ERROR.value, "message": "Error inesperado"},
            )
        finally:
            event_id_var.reset(token)

    async def dispatch(self, connection_id: str, message: ClientMessage) -> None:
        match message:
            case JoinTable(table_id=table_id, guest_id=guest_id):
                await self._join(connection_id, table_id, guest_id)
            case LeaveTable():
                await self._leave(connection_id)
            case ResetTable():
                await self._reset(connection_id)
            case CastVote(mode=mode):
                await self._cast_vote(connection_id, mode)
            case ToggleItem(item_id=item_id):
                await self._toggle_item(connection_id, item_id)
            case ConfirmSplit():
                await self._confirm_split(connection_id)
            case SubmitPayment():
                await self._submit_payment(connection_id, message.to_model())
            case _:
                raise InvalidMessageError("Evento desconocido")

    async def handle_disconnect(self, connection_id: str) -> None:
        """Transport hook: the guest goes offline but keeps its seat."""
        binding = self._registry.binding(connection_id)
        if binding is None:
            return

        token = event_id_var.set(new_event_id())
        try:
            table_id, guest_id = binding
            async with self._registry.lock(table_id):
                found = self._registry.disconnect(connection_id)
                if found is None:
                    return
                table, guest = found
                audit_ws_connection(
                    "GUEST_OFFLINE",
                    connection_id,
                    table_id=table.id,
                    guest_id=guest.id,
                )
                await self._broadcast_state(table)
        finally:
            event_id_var.reset(token)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _join(self, connection_id: str, table_id: str | None, guest_id: str | None) -> None:
        table_id = (table_id or "").strip()
        if not table_id:
            raise TableNotFoundError(connection_id=connection_id)

        async with self._registry.lock(table_id):
            result = self._registry.add_or_reconnect_guest(table_id, connection_id, guest_id)
            table, guest = result.table, result.guest
            self._transport.join_room(connection_id, table.id)

            audit_ws_connection(
                "GUEST_RECONNECTED" if result.reconnected else "GUEST_JOINED",
                connection_id,
                table_id=table.id,
                guest_id=guest.id,
            )
            await self._transport.broadcast(
                table.id,
                ServerEvent.TABLE_GUEST_JOINED.value,
                GuestJoinedPayload(
                    guest=GuestDTO.from_guest(guest), guest_count=table.guest_count
                ).to_wire(),
                exclude=connection_id,
            )
            await self._broadcast_state(table)

    async def _leave(self, connection_id: str) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            self._registry.remove_guest(connection_id)
            self._transport.leave_room(connection_id, table.id)
            audit_ws_connection("GUEST_LEFT", connection_id, table_id=table.id, guest_id=guest.id)

            await self._transport.broadcast(
                table.id,
                ServerEvent.TABLE_GUEST_LEFT.value,
                GuestLeftPayload(
                    guest_id=guest.id,
                    display_name=guest.display_name,
                    guest_count=table.guest_count,
                ).to_wire(),
            )
            if table.guests:
                await self._settle_after_departure(table)
            await self._broadcast_state(table)

    async def _reset(self, connection_id: str) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            logger.info("Reset requested", table_id=table.id, guest_id=guest.id)
            self._registry.reset(table.id)
            await self._broadcast_state(table)

    async def _cast_vote(self, connection_id: str, mode: str | None) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            outcome = self._votes.cast_vote(table, guest.id, mode)
            await self._announce_vote(table, outcome)
            await self._broadcast_state(table)

    async def _toggle_item(self, connection_id: str, item_id: str) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            update = self._splits.toggle_item_selection(table, guest.id, item_id)
            await self._announce_split(table, update)
            await self._broadcast_state(table)

    async def _confirm_split(self, connection_id: str) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            result = self._splits.confirm_selection(table, guest.id)
            missing: list[str] = []
            if result.all_ready:
                validation = self._splits.validate(table)
                missing = validation.issues
                await self._transport.broadcast(
                    table.id,
                    ServerEvent.SPLIT_VALIDATED.value,
                    SplitValidatedPayload(
                        valid=validation.valid, issues=validation.issues
                    ).to_wire(),
                )
            await self._broadcast_state(table)

        if missing:
            raise ItemsNotAssignedError(missing, table_id=table.id)

    async def _submit_payment(self, connection_id: str, info: PaymentInfo) -> None:
        async with self._locked_guest(connection_id) as (table, guest):
            receipt = self._payments.submit_payment(table, guest.id, info)
            await self._transport.broadcast(
                table.id,
                ServerEvent.PAYMENT_RECEIVED.value,
                PaymentReceivedPayload(
                    guest_id=guest.id, display_name=guest.display_name
                ).to_wire(),
            )
            if receipt.all_paid:
                await self._transport.broadcast(table.id, ServerEvent.TABLE_COMPLETED.value, {})
            await self._broadcast_state(table)

    # =========================================================================
    # Follow-ups
    # =========================================================================

    async def _announce_vote(self, table: Table, outcome: VoteOutcome) -> None:
        """vote:updated, then vote:tie or vote:completed (running the split)."""
        await self._transport.broadcast(
            table.id,
            ServerEvent.VOTE_UPDATED.value,
            VoteUpdatedPayload(
                votes=[
                    VoteResultOutput(
                        mode=r.mode,
                        votes=r.votes,
                        percentage=r.percentage,
                        is_winner=r.is_winner,
                        voters=list(r.voters),
                    )
                    for r in outcome.results
                ],
                total_votes=outcome.total_votes,
                total_guests=table.guest_count,
            ).to_wire(),
        )
        if not outcome.all_voted:
            return

        if outcome.is_tie:
            await self._transport.broadcast(
                table.id,
                ServerEvent.VOTE_TIE.value,
                VoteTiePayload(tied_modes=outcome.tied_modes, message=TIE_MESSAGE).to_wire(),
            )
        elif outcome.winner is not None:
            message = self._votes.winner_message(
                outcome.winner, outcome.votes_for(outcome.winner), table.guest_count
            )
            await self._transport.broadcast(
                table.id,
                ServerEvent.VOTE_COMPLETED.value,
                VoteCompletedPayload(winning_mode=outcome.winner, message=message).to_wire(),
            )
            self._splits.calculate_payment_amounts(table)

    async def _settle_after_departure(self, table: Table) -> None:
        """Re-evaluate aggregate conditions a departed guest may have unblocked."""
        if table.voting_open and table.winning_mode is None:
            outcome = self._votes.resolve(table)
            await self._announce_vote(table, outcome)
        elif table.winning_mode is not None and table.table_status in (
            TableStatus.SPLITTING,
            TableStatus.PAYING,
        ):
            update = self._splits.settle_departure(table)
            if update is not None:
                await self._announce_split(table, update)
        elif table.table_status == TableStatus.WAITING_PAYMENTS:
            self._splits.rebalance_unpaid(table)
            if self._payments.refresh_completion(table):
                await self._transport.broadcast(table.id, ServerEvent.TABLE_COMPLETED.value, {})

    async def _announce_split(self, table: Table, update: SplitUpdate) -> None:
        await self._transport.broadcast(
            table.id,
            ServerEvent.SPLIT_UPDATED.value,
            SplitUpdatedPayload(
                item_assignments=update.item_assignments,
                remaining_balance=to_float(update.remaining_balance),
                all_assigned=update.all_assigned,
            ).to_wire(),
        )

    async def _on_votes_reset(self, table: Table) -> None:
        await self._broadcast_state(table)
        await self._transport.broadcast(
            table.id,
            ServerEvent.VOTE_UPDATED.value,
            VoteUpdatedPayload(votes=[], total_votes=0, total_guests=table.guest_count).to_wire(),
        )

    async def _on_payment_confirmed(self, table: Table, guest: Guest) -> None:
        await self._broadcast_state(table)

    # =========================================================================
    # Helpers
    # =========================================================================

    @asynccontextmanager
    async def _locked_guest(self, connection_id: str) -> AsyncIterator[tuple[Table, Guest]]:
        """Hold the sender's table lock; the guest is re-resolved under it."""
        table, _ = self._registry.resolve(connection_id)
        async with self._registry.lock(table.id):
            yield self._registry.resolve(connection_id)

    async def _broadcast_state(self, table: Table) -> None:
        await self._transport.broadcast(
            table.id,
            ServerEvent.TABLE_STATE.value,
            TableDTO.from_table(table).to_wire(),
        )

    async def _send_error(self, connection_id: str, payload: dict[str, Any]) -> None:
        error = ErrorPayload(**payload)
        logger.debug(
            "Error sent to guest",
            connection_id=connection_id,
            code=error.code,
            message=sanitize_log_data(error.message),
        )
        await self._transport.send(connection_id, ServerEvent.ERROR.value, error.to_wire())
