"""
Subscription Status State Machine

Enumerates the legal status transitions and the status predicates callers
use for access, billing and lifecycle decisions. Validation is a pure
set-membership test; it never depends on a subscription's history.
"""

from typing import Dict, FrozenSet, Optional

from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import SubscriptionStatus
from subscription_engine.services.base.errors import InvalidTransition
from subscription_engine.services.base.result import Failure, Result, Success

S = SubscriptionStatus

# Source status -> allowed target statuses
TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    S.PENDING: frozenset({S.ACTIVE, S.TRIAL, S.SUSPENDED, S.PAYMENT_FAILED, S.TERMINATED}),
    S.ACTIVE: frozenset({
        S.CANCELLED, S.SUSPENDED, S.PAUSED, S.PAYMENT_FAILED,
        S.UPGRADE_PENDING, S.DOWNGRADE_PENDING, S.EXPIRED,
    }),
    S.TRIAL: frozenset({S.ACTIVE, S.CANCELLED, S.SUSPENDED, S.PAYMENT_FAILED, S.EXPIRED}),
    S.EXPIRED: frozenset({S.ACTIVE, S.SUSPENDED, S.TERMINATED}),
    S.SUSPENDED: frozenset({S.ACTIVE, S.TERMINATED}),
    S.PAYMENT_FAILED: frozenset({S.ACTIVE, S.SUSPENDED, S.TERMINATED}),
    # ACTIVE is the reactivation window
    S.CANCELLED: frozenset({S.TERMINATED, S.ACTIVE}),
    S.PAUSED: frozenset({S.ACTIVE, S.CANCELLED, S.TERMINATED}),
    S.UPGRADE_PENDING: frozenset({S.ACTIVE, S.SUSPENDED}),
    S.DOWNGRADE_PENDING: frozenset({S.ACTIVE, S.SUSPENDED}),
    S.TERMINATED: frozenset(),
}

# EXPIRED and CANCELLED keep access through grace/notice periods
HAS_ACCESS = frozenset({S.ACTIVE, S.TRIAL, S.EXPIRED, S.CANCELLED})
BILLABLE = frozenset({S.ACTIVE, S.EXPIRED, S.CANCELLED})
CAN_UPGRADE = frozenset({S.ACTIVE, S.TRIAL})
CAN_DOWNGRADE = frozenset({S.ACTIVE})
CAN_CANCEL = frozenset({S.ACTIVE, S.TRIAL, S.PAUSED})
CAN_REACTIVATE = frozenset({S.SUSPENDED, S.PAUSED, S.EXPIRED, S.PAYMENT_FAILED})
REQUIRES_PAYMENT = frozenset({S.PENDING, S.SUSPENDED, S.EXPIRED, S.PAYMENT_FAILED})
FINAL_STATES = frozenset({S.TERMINATED})


def can_transition_to(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    return target in TRANSITIONS[current]


def allowed_transitions(current: SubscriptionStatus) -> FrozenSet[SubscriptionStatus]:
    return TRANSITIONS[current]


def has_access(status: SubscriptionStatus) -> bool:
    return status in HAS_ACCESS


def is_billable(status: SubscriptionStatus) -> bool:
    return status in BILLABLE


def can_upgrade(status: SubscriptionStatus) -> bool:
    return status in CAN_UPGRADE


def can_downgrade(status: SubscriptionStatus) -> bool:
    return status in CAN_DOWNGRADE


def can_cancel(status: SubscriptionStatus) -> bool:
    return status in CAN_CANCEL


def can_reactivate(status: SubscriptionStatus) -> bool:
    return status in CAN_REACTIVATE


def requires_payment(status: SubscriptionStatus) -> bool:
    return status in REQUIRES_PAYMENT


def is_final_state(status: SubscriptionStatus) -> bool:
    return status in FINAL_STATES


class StatusMachine:
    """
    Validates proposed status transitions.

    Rejected transitions are logged and returned as
    ``Failure(InvalidTransition)``; nothing is ever silently allowed.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = get_logger(logger_name or self.__class__.__name__)

    def evaluate_transition(
        self,
        current: SubscriptionStatus,
        target: SubscriptionStatus,
    ) -> Result[None, InvalidTransition]:
        """
        Check whether ``current -> target`` is a legal transition.

        Returns:
            Success(None), or Failure(InvalidTransition) naming both statuses
        """
        if can_transition_to(current, target):
            return Success(None)

        self._logger.warning(
            "Rejected subscription status transition",
            extra={"from_status": current.value, "to_status": target.value},
        )
        return Failure(InvalidTransition(from_status=current, to_status=target))


__all__ = [
    "TRANSITIONS",
    "StatusMachine",
    "can_transition_to",
    "allowed_transitions",
    "has_access",
    "is_billable",
    "can_upgrade",
    "can_downgrade",
    "can_cancel",
    "can_reactivate",
    "requires_payment",
    "is_final_state",
]
