"""Credit lifecycle state machine"""

from datetime import datetime, timedelta
from typing import Mapping, FrozenSet

from mipago_gateway.domain.exceptions import InvalidStateError
from mipago_gateway.domain.models import CreditStatus, Quote

_S = CreditStatus

# Monotonic forward transitions; anything else requires an admin override
ALLOWED_TRANSITIONS: Mapping[CreditStatus, FrozenSet[CreditStatus]] = {
    _S.PRE_APPROVED: frozenset({_S.IN_PROGRESS, _S.CANCELED}),
    _S.APPROVED: frozenset({_S.IN_PROGRESS, _S.CANCELED}),
    _S.DISBURSED: frozenset({_S.IN_PROGRESS}),
    _S.IN_PROGRESS: frozenset({_S.PAID, _S.DEFAULT, _S.CANCELED}),
    _S.DEFAULT: frozenset({_S.PAID}),
    _S.PAID: frozenset(),
    _S.CANCELED: frozenset(),
}

# Only approve-and-disburse may move these to in_progress
AWAITING_DISBURSEMENT = frozenset({_S.PRE_APPROVED, _S.APPROVED})


def can_transition(current: CreditStatus, target: CreditStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: CreditStatus, target: CreditStatus, admin_override: bool = False) -> None:
    """
    Validate a credit status change.

    Raises:
        InvalidStateError: target not reachable from current without an override
    """
    if current == target:
        raise InvalidStateError(
            f"Credit is already {current.value}",
            context={"current_status": current.value, "target_status": target.value},
        )
    if admin_override:
        return
    if target == CreditStatus.IN_PROGRESS and current in AWAITING_DISBURSEMENT:
        raise InvalidStateError(
            "Credit must be moved to in_progress through approve-and-disburse",
            context={"current_status": current.value, "target_status": target.value},
        )
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move credit from {current.value} to {target.value}",
            context={"current_status": current.value, "target_status": target.value},
        )


def ensure_disbursable(current: CreditStatus) -> None:
    if current != CreditStatus.PRE_APPROVED:
        raise InvalidStateError(
            f"Credit cannot be disbursed from status {current.value}",
            context={"current_status": current.value},
        )


def due_at_for(quote: Quote, issued_at: datetime) -> datetime:
    """Final due date of a credit issued now"""
    return issued_at + timedelta(days=quote.term_days)
