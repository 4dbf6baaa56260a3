"""
Vote Service - payment-mode voting with tie-break re-voting.

Per table: no votes -> partial votes -> all voted. When everybody has
voted, a single mode at the maximum wins (voting closes, the table moves
to `splitting`); two or more modes at the maximum are a tie, and after
`vote_tie_reset_delay` every vote is cleared so the table votes again.

Usage:
    from partela.services.domain import VoteService

    service = VoteService(registry, scheduler, on_votes_reset=broadcast_state)
    outcome = service.cast_vote(table, guest.id, "split_equally")
    if outcome.winner:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from shared.config.constants import PAYMENT_MODE_NAMES, PAYMENT_MODES, PaymentMode, TableStatus
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import GuestNotFoundError, InvalidPaymentModeError
from partela.models import Table
from partela.services.scheduler import TimerKey, TimerKind, TimerScheduler

if TYPE_CHECKING:
    from partela.services.domain.table_service import TableRegistry

logger = get_logger(__name__)

TIE_MESSAGE = "¡Hubo un empate! Vuelvan a votar para desempatar."

TableHook = Callable[[Table], Awaitable[Any]]


@dataclass(frozen=True)
class VoteResult:
    mode: PaymentMode
    votes: int
    percentage: float
    is_winner: bool
    voters: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VoteOutcome:
    all_voted: bool
    is_tie: bool
    winner: PaymentMode | None
    tied_modes: list[PaymentMode]
    results: list[VoteResult]

    @property
    def total_votes(self) -> int:
        return sum(r.votes for r in self.results)

    def votes_for(self, mode: PaymentMode) -> int:
        return next((r.votes for r in self.results if r.mode == mode), 0)


@dataclass(frozen=True)
class VotingStatus:
    results: list[VoteResult]
    total_votes: int
    total_guests: int
    outcome: VoteOutcome


class VoteService:
    """
    Voting engine.

    Business rules:
    - A guest holds at most one vote; re-voting moves it
    - The first vote on a table opens voting
    - Votes are refused once a winner is fixed
    - A tie clears all votes after a delay; the timer re-checks that the
      tie still stands before clearing
    """

    def __init__(
        self,
        registry: TableRegistry,
        scheduler: TimerScheduler | None = None,
        *,
        tie_reset_delay: float | None = None,
        on_votes_reset: TableHook | None = None,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._tie_reset_delay = (
            tie_reset_delay if tie_reset_delay is not None else settings.vote_tie_reset_delay
        )
        self.on_votes_reset = on_votes_reset

    # =========================================================================
    # Commands
    # =========================================================================

    def open_voting(self, table: Table) -> None:
        table.voting_open = True
        if table.table_status == TableStatus.VIEWING:
            table.table_status = TableStatus.VOTING
        table.touch()
        logger.info("Voting opened", table_id=table.id)

    def cast_vote(self, table: Table, guest_id: str, mode: PaymentMode | str) -> VoteOutcome:
        """
        Record (or move) a guest's vote and resolve the outcome.

        Raises:
            InvalidPaymentModeError: Unknown mode, or voting already decided.
            GuestNotFoundError: Guest is not on this table.
        """
        mode = self._coerce_mode(mode)
        guest = table.find_guest(guest_id)
        if guest is None:
            raise GuestNotFoundError(table_id=table.id, guest_id=guest_id)
        if table.winning_mode is not None:
            raise InvalidPaymentModeError(
                "La votación ya terminó",
                table_id=table.id,
                winning_mode=table.winning_mode.value,
            )

        if not table.voting_open:
            self.open_voting(table)

        if guest.voted_payment_mode is not None:
            previous = table.votes[guest.voted_payment_mode]
            if guest.id in previous:
                previous.remove(guest.id)

        guest.voted_payment_mode = mode
        table.votes[mode].append(guest.id)
        table.touch()
        logger.info("Vote cast", table_id=table.id, guest_id=guest.id, mode=mode.value)

        return self.resolve(table)

    def resolve(self, table: Table) -> VoteOutcome:
        """
        Apply the current outcome: fix a winner or start the tie timer.

        Also used after a guest leaves mid-vote, since the remaining votes
        may now be complete.
        """
        outcome = self.compute_outcome(table)
        if not outcome.all_voted:
            return outcome

        if outcome.is_tie:
            self._schedule_tie_reset(table.id)
            logger.info(
                "Vote tie",
                table_id=table.id,
                tied_modes=[m.value for m in outcome.tied_modes],
            )
        elif outcome.winner is not None:
            table.winning_mode = outcome.winner
            table.voting_open = False
            table.table_status = TableStatus.SPLITTING
            table.touch()
            self._cancel_tie_reset(table.id)
            logger.info("Vote completed", table_id=table.id, winning_mode=outcome.winner.value)
        return outcome

    def reset_votes(self, table: Table) -> None:
        """Clear every vote and reopen voting."""
        for guest in table.guests:
            guest.voted_payment_mode = None
        table.votes = {mode: [] for mode in PAYMENT_MODES}
        table.winning_mode = None
        table.voting_open = True
        table.touch()
        logger.info("Votes reset", table_id=table.id)

    # =========================================================================
    # Queries
    # =========================================================================

    def calculate_results(self, table: Table) -> list[VoteResult]:
        """Per-mode count, share of guests and voter names, in display order."""
        total_guests = table.guest_count
        max_votes = max(len(table.votes[mode]) for mode in PAYMENT_MODES)

        results = []
        for mode in PAYMENT_MODES:
            voter_ids = table.votes[mode]
            voters = []
            for voter_id in voter_ids:
                voter = table.find_guest(voter_id)
                voters.append(voter.display_name if voter else "Desconocido")
            results.append(
                VoteResult(
                    mode=mode,
                    votes=len(voter_ids),
                    percentage=(len(voter_ids) / total_guests * 100) if total_guests else 0.0,
                    is_winner=max_votes > 0 and len(voter_ids) == max_votes,
                    voters=voters,
                )
            )
        return results

    def compute_outcome(self, table: Table) -> VoteOutcome:
        results = self.calculate_results(table)
        total_votes = sum(r.votes for r in results)

        if table.guest_count == 0 or total_votes < table.guest_count:
            return VoteOutcome(
                all_voted=False, is_tie=False, winner=None, tied_modes=[], results=results
            )

        max_votes = max(r.votes for r in results)
        top_modes = [r.mode for r in results if r.votes == max_votes and r.votes > 0]

        if len(top_modes) > 1:
            return VoteOutcome(
                all_voted=True, is_tie=True, winner=None, tied_modes=top_modes, results=results
            )
        return VoteOutcome(
            all_voted=True, is_tie=False, winner=top_modes[0], tied_modes=[], results=results
        )

    def voting_status(self, table: Table) -> VotingStatus:
        outcome = self.compute_outcome(table)
        return VotingStatus(
            results=outcome.results,
            total_votes=outcome.total_votes,
            total_guests=table.guest_count,
            outcome=outcome,
        )

    @staticmethod
    def winner_message(mode: PaymentMode, votes: int, total: int) -> str:
        mode_name = PAYMENT_MODE_NAMES[mode]
        if votes == total:
            return f"¡Todos eligieron {mode_name}!"
        return f"La mayoría eligió {mode_name} ({votes}/{total})"

    # =========================================================================
    # Tie timer
    # =========================================================================

    def _schedule_tie_reset(self, table_id: str) -> None:
        if self._scheduler is None:
            return
        self._scheduler.schedule(
            TimerKey(table_id, TimerKind.TIE_RESET),
            self._tie_reset_delay,
            lambda: self._reset_after_tie(table_id),
        )

    def _cancel_tie_reset(self, table_id: str) -> None:
        if self._scheduler is not None:
            self._scheduler.cancel(TimerKey(table_id, TimerKind.TIE_RESET))

    async def _reset_after_tie(self, table_id: str) -> None:
        async with self._registry.lock(table_id):
            table = self._registry.get(table_id)
            if table is None or table.winning_mode is not None:
                logger.debug("Tie reset skipped: table gone or decided", table_id=table_id)
                return
            if not self.compute_outcome(table).is_tie:
                logger.debug("Tie reset skipped: tie no longer stands", table_id=table_id)
                return

            self.reset_votes(table)
            if self.on_votes_reset is not None:
                await self.on_votes_reset(table)

    @staticmethod
    def _coerce_mode(mode: PaymentMode | str) -> PaymentMode:
        try:
            return PaymentMode(mode)
        except ValueError:
            raise InvalidPaymentModeError(mode=str(mode)[:50]) from None
