"""
History Projection

Builds ``SubscriptionHistory`` records from two subscription snapshots and
classifies them (upgrade, downgrade, cycle change, price change,
cancellation, reactivation). The projection is derived, not authoritative.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from subscription_engine.config.tier_catalog import TierCatalog
from subscription_engine.core.clock import Clock
from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import (
    ChangeInitiator,
    SubscriptionChangeType,
    SubscriptionStatus,
)
from subscription_engine.schemas.subscription.history import SubscriptionHistory
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.services.base.errors import AmbiguousChange, EngineError
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.services.subscription.status_machine import has_access
from subscription_engine.utils.money import ZERO

CT = SubscriptionChangeType
S = SubscriptionStatus

BILLING_CHANGE_TYPES = frozenset({
    CT.UPGRADED,
    CT.DOWNGRADED,
    CT.BILLING_CYCLE_CHANGED,
    CT.PRICE_CHANGED,
    CT.PROMOTION_APPLIED,
    CT.PROMOTION_REMOVED,
})

# Target status -> change type, when the target alone decides it
STATUS_CHANGE_TYPES = {
    S.TRIAL: CT.TRIAL_STARTED,
    S.SUSPENDED: CT.SUSPENDED,
    S.PAYMENT_FAILED: CT.PAYMENT_FAILED,
    S.CANCELLED: CT.CANCELLED,
    S.PAUSED: CT.PAUSED,
    S.TERMINATED: CT.TERMINATED,
}

# Source status -> change type for a move into ACTIVE
ACTIVATION_CHANGE_TYPES = {
    S.PENDING: CT.ACTIVATED,
    S.TRIAL: CT.ACTIVATED,
    S.PAUSED: CT.RESUMED,
    S.UPGRADE_PENDING: CT.UPGRADED,
    S.DOWNGRADE_PENDING: CT.DOWNGRADED,
}

# Pending status -> change type when no pending tier says otherwise
PENDING_TIER_CHANGE_TYPES = {
    S.UPGRADE_PENDING: CT.UPGRADED,
    S.DOWNGRADE_PENDING: CT.DOWNGRADED,
}


# -------------------------------------------------------------------------
# Classification
# -------------------------------------------------------------------------

def is_upgrade(history: SubscriptionHistory) -> bool:
    return history.change_type == CT.UPGRADED or (
        history.old_tier is not None
        and history.new_tier is not None
        and history.old_tier < history.new_tier
    )


def is_downgrade(history: SubscriptionHistory) -> bool:
    return history.change_type == CT.DOWNGRADED or (
        history.old_tier is not None
        and history.new_tier is not None
        and history.old_tier > history.new_tier
    )


def is_billing_cycle_change(history: SubscriptionHistory) -> bool:
    return history.change_type == CT.BILLING_CYCLE_CHANGED or (
        history.old_billing_cycle is not None
        and history.new_billing_cycle is not None
        and history.old_billing_cycle != history.new_billing_cycle
    )


def is_price_change(history: SubscriptionHistory) -> bool:
    return history.change_type == CT.PRICE_CHANGED or (
        history.old_billing_amount is not None
        and history.new_billing_amount is not None
        and history.old_billing_amount.compare(history.new_billing_amount) != 0
    )


def revenue_impact(history: SubscriptionHistory) -> Decimal:
    """New billing amount minus old; zero if either is absent."""
    if history.old_billing_amount is None or history.new_billing_amount is None:
        return ZERO
    return history.new_billing_amount - history.old_billing_amount


def affects_billing(history: SubscriptionHistory) -> bool:
    return history.change_type in BILLING_CHANGE_TYPES


def is_cancellation(history: SubscriptionHistory) -> bool:
    return history.change_type in (CT.CANCELLED, CT.TERMINATED) or (
        history.new_status in (S.CANCELLED, S.TERMINATED)
    )


def is_reactivation(history: SubscriptionHistory) -> bool:
    return history.change_type in (CT.REACTIVATED, CT.RESUMED) or (
        history.old_status is not None
        and history.new_status is not None
        and not has_access(history.old_status)
        and has_access(history.new_status)
    )


def _pending_direction(new: Subscription) -> SubscriptionChangeType:
    if new.pending_tier is not None and new.pending_tier != new.tier:
        return CT.UPGRADED if new.tier < new.pending_tier else CT.DOWNGRADED
    return PENDING_TIER_CHANGE_TYPES[new.status]


def _target_tier(new: Subscription):
    """The tier a change moves to; a requested tier change records its pending tier."""
    if new.status in PENDING_TIER_CHANGE_TYPES and new.pending_tier is not None:
        return new.pending_tier
    return new.tier


def infer_change_type(
    old: Optional[Subscription],
    new: Subscription,
) -> Result[SubscriptionChangeType, AmbiguousChange]:
    """
    Infer what kind of change turned ``old`` into ``new``.

    Tier direction wins, then the status move (a requested tier change
    counts by the direction of its pending tier), then cycle, promotion,
    auto-renewal, billing amount and billing outcome. Nothing matching is
    an ``AmbiguousChange``; the caller must name the change type.
    """
    if old is None:
        return Success(CT.CREATED)

    if old.tier != new.tier:
        return Success(CT.UPGRADED if old.tier < new.tier else CT.DOWNGRADED)

    if old.status != new.status:
        if new.status == S.ACTIVE:
            return Success(ACTIVATION_CHANGE_TYPES.get(old.status, CT.REACTIVATED))
        if new.status in PENDING_TIER_CHANGE_TYPES:
            return Success(_pending_direction(new))
        if new.status == S.EXPIRED:
            return Success(CT.TRIAL_ENDED if old.status == S.TRIAL else CT.EXPIRED)
        if new.status in STATUS_CHANGE_TYPES:
            return Success(STATUS_CHANGE_TYPES[new.status])

    if old.billing_cycle != new.billing_cycle:
        return Success(CT.BILLING_CYCLE_CHANGED)

    if old.promotion_discount == 0 and new.promotion_discount > 0:
        return Success(CT.PROMOTION_APPLIED)
    if old.promotion_discount > 0 and new.promotion_discount == 0:
        return Success(CT.PROMOTION_REMOVED)

    if old.auto_renewal != new.auto_renewal:
        return Success(CT.AUTO_RENEWAL_ENABLED if new.auto_renewal else CT.AUTO_RENEWAL_DISABLED)

    if old.billing_amount != new.billing_amount:
        return Success(CT.PRICE_CHANGED)

    if new.last_billed_date is not None and old.last_billed_date != new.last_billed_date:
        return Success(CT.PAYMENT_SUCCEEDED)

    if new.failed_billing_attempts > old.failed_billing_attempts:
        return Success(CT.PAYMENT_FAILED)

    return Failure(AmbiguousChange(old_status=old.status, new_status=new.status))


class HistoryProjection:
    """Builds and describes audit records."""

    def __init__(self, catalog: TierCatalog, clock: Clock):
        self.catalog = catalog
        self.clock = clock
        self._logger = get_logger(self.__class__.__name__)

    def classify_change(
        self,
        old: Optional[Subscription],
        new: Subscription,
        change_type: Optional[SubscriptionChangeType] = None,
        reason: Optional[str] = None,
        initiated_by: ChangeInitiator = ChangeInitiator.SYSTEM,
        changed_by_user_id: Optional[UUID] = None,
    ) -> Result[SubscriptionHistory, EngineError]:
        """
        Project the change from ``old`` to ``new`` into an audit record.

        Args:
            old: Snapshot before the change (None for a new subscription)
            new: Snapshot after the change
            change_type: Explicit change type; inferred when omitted
            reason: Free-text reason appended to the description
            initiated_by: Who or what made the change
            changed_by_user_id: Acting user, if any

        Returns:
            Result with the history record, or AmbiguousChange
        """
        kind: Result[SubscriptionChangeType, AmbiguousChange] = (
            Success(change_type) if change_type is not None else infer_change_type(old, new)
        )
        return kind.map(lambda ct: SubscriptionHistory(
            subscription_id=new.id,
            user_id=new.user_id,
            change_type=ct,
            old_tier=old.tier if old else None,
            new_tier=_target_tier(new),
            old_status=old.status if old else None,
            new_status=new.status,
            old_billing_cycle=old.billing_cycle if old else None,
            new_billing_cycle=new.billing_cycle,
            old_monthly_price=old.monthly_price if old else None,
            new_monthly_price=new.monthly_price,
            old_billing_amount=old.billing_amount if old else None,
            new_billing_amount=new.billing_amount,
            change_reason=reason,
            initiated_by=initiated_by,
            changed_by_user_id=changed_by_user_id,
            effective_date=self.clock.now(),
        )).on_failure(self._log_unclassified)

    def _log_unclassified(self, error) -> None:
        if isinstance(error, AmbiguousChange):
            self._logger.warning(
                "Could not classify subscription change",
                extra={"from_status": error.old_status.value, "to_status": error.new_status.value},
            )

    def change_description(self, history: SubscriptionHistory) -> str:
        """Human-readable description, with the reason appended when present."""
        ct = history.change_type
        if ct in (CT.UPGRADED, CT.DOWNGRADED):
            verb = "Upgraded" if ct == CT.UPGRADED else "Downgraded"
            description = (
                f"{verb} from {self._tier_label(history.old_tier)} "
                f"to {self._tier_label(history.new_tier)}"
            )
        elif ct == CT.BILLING_CYCLE_CHANGED:
            description = (
                f"Changed billing cycle from {self._cycle_label(history.old_billing_cycle)} "
                f"to {self._cycle_label(history.new_billing_cycle)}"
            )
        else:
            description = ct.display_name

        if history.change_reason and history.change_reason.strip():
            description += f" - {history.change_reason}"
        return description

    def _tier_label(self, tier) -> str:
        return self.catalog.display_name(tier) if tier is not None else "Unknown"

    @staticmethod
    def _cycle_label(cycle) -> str:
        return cycle.display_name if cycle is not None else "Unknown"


__all__ = [
    "BILLING_CHANGE_TYPES",
    "HistoryProjection",
    "infer_change_type",
    "is_upgrade",
    "is_downgrade",
    "is_billing_cycle_change",
    "is_price_change",
    "revenue_impact",
    "affects_billing",
    "is_cancellation",
    "is_reactivation",
]
