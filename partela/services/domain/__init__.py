"""
Domain services for the table state machine.

Usage:
    from partela.services.domain import (
        TableRegistry, VoteService, SplitService, PaymentService,
    )

    registry = TableRegistry(scheduler=scheduler)
    votes = VoteService(registry, scheduler)
    splits = SplitService(registry)
    payments = PaymentService(registry, scheduler)
"""

from partela.services.domain.table_service import JoinResult, TableRegistry
from partela.services.domain.vote_service import (
    TIE_MESSAGE,
    VoteOutcome,
    VoteResult,
    VoteService,
    VotingStatus,
)
from partela.services.domain.split_service import (
    ConfirmResult,
    ItemSplitInfo,
    SplitService,
    SplitUpdate,
    SplitValidation,
)
from partela.services.domain.payment_service import (
    BreakdownLine,
    PaymentReceipt,
    PaymentService,
    PaymentStatusSummary,
    PaymentSummary,
    validate_payment_info,
)

__all__ = [
    # Registry
    "TableRegistry",
    "JoinResult",
    # Voting
    "VoteService",
    "VoteOutcome",
    "VoteResult",
    "VotingStatus",
    "TIE_MESSAGE",
    # Split
    "SplitService",
    "SplitUpdate",
    "ConfirmResult",
    "SplitValidation",
    "ItemSplitInfo",
    # Payment
    "PaymentService",
    "PaymentReceipt",
    "PaymentSummary",
    "PaymentStatusSummary",
    "BreakdownLine",
    "validate_payment_info",
]
