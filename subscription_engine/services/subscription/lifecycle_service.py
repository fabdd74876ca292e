"""
Subscription Lifecycle Service

Lifecycle operations over ``Subscription`` snapshots: activation, trials,
cancellation, suspension, pause/resume, tier and billing-cycle changes,
promotions, and billing outcomes.

Every operation validates against the status state machine, returns
``Result[Subscription, EngineError]`` and leaves its input untouched.
``billing_amount`` is re-derived whenever a pricing input changes.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
from uuid import UUID

from subscription_engine.config.settings import Settings
from subscription_engine.config.tier_catalog import TierCatalog
from subscription_engine.core.clock import Clock
from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import (
    BillingCycle,
    SubscriptionStatus,
    SubscriptionTier,
)
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.services.base.errors import (
    EngineError,
    InvalidTierChange,
    InvalidTransition,
)
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.services.subscription.billing_calculator import (
    BillingCalculator,
    months_in,
    next_billing_date,
)
from subscription_engine.services.subscription.status_machine import (
    StatusMachine,
    can_cancel,
    can_downgrade,
    can_reactivate,
    can_transition_to,
    can_upgrade,
    has_access,
    is_billable,
    is_final_state,
)
from subscription_engine.utils.datetime_utils import DateTimeHelper
from subscription_engine.utils.money import CENT, ZERO

S = SubscriptionStatus

# Statuses a successful charge brings back to ACTIVE
RECOVERED_BY_PAYMENT = frozenset({S.SUSPENDED, S.EXPIRED, S.PAYMENT_FAILED})


class SubscriptionLifecycleService:
    """
    Lifecycle transitions for subscriptions.

    Args:
        catalog: Tier catalog
        clock: Source of "now" for every timestamp
        settings: Business-rule settings (trial length, grace period,
            failed-billing threshold, promotional discount, currency)
    """

    def __init__(
        self,
        catalog: TierCatalog,
        clock: Clock,
        settings: Settings,
        calculator: Optional[BillingCalculator] = None,
        status_machine: Optional[StatusMachine] = None,
    ):
        self.catalog = catalog
        self.clock = clock
        self.settings = settings
        self.calculator = calculator or BillingCalculator(catalog, settings.PROMOTIONAL_DISCOUNT_PERCENT)
        self.status_machine = status_machine or StatusMachine()
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _updated(self, subscription: Subscription, **changes: Any) -> Subscription:
        changes["updated_at"] = self.clock.now()
        return subscription.model_copy(update=changes)

    def _transition(
        self,
        subscription: Subscription,
        target: SubscriptionStatus,
        **changes: Any,
    ) -> Result[Subscription, EngineError]:
        return self.status_machine.evaluate_transition(subscription.status, target).map(
            lambda _: self._log_transition(
                subscription, self._updated(subscription, status=target, **changes)
            )
        )

    def _log_transition(self, old: Subscription, new: Subscription) -> Subscription:
        self._logger.info(
            "Subscription status changed",
            extra={
                "subscription_ref": str(new.id),
                "from_status": old.status.value,
                "to_status": new.status.value,
            },
        )
        return new

    def _require_not_final(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        if is_final_state(subscription.status):
            return Failure(InvalidTransition(
                from_status=subscription.status, to_status=subscription.status,
            ))
        return Success(subscription)

    def _reprice(self, subscription: Subscription, **pricing: Any) -> Result[Subscription, EngineError]:
        return self.calculator.price_subscription(subscription, **pricing).map(
            lambda priced: self._updated(priced)
        )

    # -------------------------------------------------------------------------
    # Creation and activation
    # -------------------------------------------------------------------------

    def new_subscription(
        self,
        user_id: UUID,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        promotion_code: Optional[str] = None,
        promotion_discount: Decimal = Decimal("0"),
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Result[Subscription, EngineError]:
        """A priced subscription in PENDING."""
        now = self.clock.now()
        draft = Subscription(
            user_id=user_id,
            tier=tier,
            status=S.PENDING,
            billing_cycle=billing_cycle,
            currency=self.catalog.currency,
            promotion_code=promotion_code,
            promotion_discount=promotion_discount,
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )
        return self.calculator.price_subscription(draft)

    def activate(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        """
        Move to ACTIVE.

        From TRIAL only the activation date is stamped; from any other legal
        source the subscription also (re)starts now with a clean billing record.
        """
        now = self.clock.now()
        if subscription.status == S.TRIAL:
            changes = {"activated_date": now}
        else:
            changes = {"start_date": now, "activated_date": now, "failed_billing_attempts": 0}
        if subscription.next_billing_date is None:
            changes["next_billing_date"] = next_billing_date(subscription.billing_cycle, now)
        return self._transition(subscription, S.ACTIVE, **changes)

    def start_trial(
        self,
        subscription: Subscription,
        trial_days: Optional[int] = None,
    ) -> Result[Subscription, EngineError]:
        now = self.clock.now()
        days = trial_days if trial_days is not None else self.settings.TRIAL_DAYS
        trial_end = DateTimeHelper.add_days(now, days)
        return self._transition(
            subscription,
            S.TRIAL,
            start_date=now,
            trial_end_date=trial_end,
            next_billing_date=trial_end,
        )

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------

    def cancel(self, subscription: Subscription, reason: Optional[str] = None) -> Result[Subscription, EngineError]:
        """Cancel; auto-renewal is switched off."""
        if not can_cancel(subscription.status):
            return Failure(InvalidTransition(from_status=subscription.status, to_status=S.CANCELLED))
        return self._transition(
            subscription,
            S.CANCELLED,
            cancellation_reason=reason,
            cancelled_at=self.clock.now(),
            auto_renewal=False,
        )

    def suspend(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        return self._transition(subscription, S.SUSPENDED)

    def pause(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        return self._transition(subscription, S.PAUSED)

    def resume(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        """Reactivate a suspended, paused, expired or payment-failed subscription."""
        if not can_reactivate(subscription.status):
            return Failure(InvalidTransition(from_status=subscription.status, to_status=S.ACTIVE))
        return self._transition(subscription, S.ACTIVE)

    def expire(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        return self._transition(subscription, S.EXPIRED)

    def terminate(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        return self._transition(
            subscription, S.TERMINATED, end_date=self.clock.now(), auto_renewal=False,
        )

    # -------------------------------------------------------------------------
    # Tier and billing-cycle changes
    # -------------------------------------------------------------------------

    def request_tier_change(
        self,
        subscription: Subscription,
        target_tier: SubscriptionTier,
    ) -> Result[Subscription, EngineError]:
        """
        Request an upgrade or downgrade.

        An ACTIVE subscription moves to UPGRADE_PENDING/DOWNGRADE_PENDING
        with ``pending_tier`` set. During a trial an upgrade takes effect
        immediately and the subscription stays in TRIAL.
        """
        current = subscription.tier
        if target_tier == current:
            return Failure(InvalidTierChange(
                current_tier=current, target_tier=target_tier, reason="already on this tier",
            ))

        if current.can_upgrade_to(target_tier):
            if not can_upgrade(subscription.status):
                return Failure(InvalidTierChange(
                    current_tier=current,
                    target_tier=target_tier,
                    reason=f"cannot upgrade while {subscription.status.value}",
                ))
            if subscription.status == S.TRIAL:
                return self._reprice(subscription, tier=target_tier).map(
                    lambda priced: priced.model_copy(update={"upgraded_date": self.clock.now()})
                )
            return self._transition(subscription, S.UPGRADE_PENDING, pending_tier=target_tier)

        if not can_downgrade(subscription.status):
            return Failure(InvalidTierChange(
                current_tier=current,
                target_tier=target_tier,
                reason=f"cannot downgrade while {subscription.status.value}",
            ))
        return self._transition(subscription, S.DOWNGRADE_PENDING, pending_tier=target_tier)

    def complete_tier_change(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        """Apply the pending tier, reprice, and return to ACTIVE."""
        if subscription.status not in (S.UPGRADE_PENDING, S.DOWNGRADE_PENDING):
            return Failure(InvalidTransition(from_status=subscription.status, to_status=S.ACTIVE))
        if subscription.pending_tier is None:
            return Failure(InvalidTierChange(
                current_tier=subscription.tier, target_tier=None, reason="no pending tier change",
            ))

        target = subscription.pending_tier
        changes: Dict[str, Any] = {"pending_tier": None}
        if subscription.tier.can_upgrade_to(target):
            changes["upgraded_date"] = self.clock.now()

        return (
            self._transition(subscription, S.ACTIVE, **changes)
            .flat_map(lambda active: self._reprice(active, tier=target))
        )

    def change_billing_cycle(
        self,
        subscription: Subscription,
        billing_cycle: BillingCycle,
    ) -> Result[Subscription, EngineError]:
        if billing_cycle == subscription.billing_cycle:
            return Success(subscription)
        return self._require_not_final(subscription).flat_map(
            lambda sub: self._reprice(sub, cycle=billing_cycle)
        )

    # -------------------------------------------------------------------------
    # Promotions and renewal
    # -------------------------------------------------------------------------

    def apply_promotion(
        self,
        subscription: Subscription,
        promotion_code: str,
        discount: Optional[Decimal] = None,
    ) -> Result[Subscription, EngineError]:
        """Apply a promotion (defaults to the configured promotional discount)."""
        discount = discount if discount is not None else self.settings.PROMOTIONAL_DISCOUNT_PERCENT
        return self._require_not_final(subscription).flat_map(
            lambda sub: self._reprice(
                sub.model_copy(update={"promotion_code": promotion_code}),
                promotion_discount=discount,
            )
        )

    def remove_promotion(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        return self._require_not_final(subscription).flat_map(
            lambda sub: self._reprice(
                sub.model_copy(update={"promotion_code": None}),
                promotion_discount=Decimal("0"),
            )
        )

    def set_auto_renewal(self, subscription: Subscription, enabled: bool) -> Result[Subscription, EngineError]:
        return self._require_not_final(subscription).map(
            lambda sub: self._updated(sub, auto_renewal=enabled)
        )

    # -------------------------------------------------------------------------
    # Billing outcomes
    # -------------------------------------------------------------------------

    def record_successful_billing(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        """
        Stamp the charge, clear failures and advance the next billing date.

        A suspended, expired or payment-failed subscription returns to ACTIVE.
        """
        now = self.clock.now()
        anchor = subscription.next_billing_date or subscription.start_date or now
        changes = {
            "last_billed_date": now,
            "failed_billing_attempts": 0,
            "next_billing_date": next_billing_date(subscription.billing_cycle, anchor),
        }
        if subscription.status in RECOVERED_BY_PAYMENT:
            return self._transition(subscription, S.ACTIVE, **changes)
        return self._require_not_final(subscription).map(
            lambda sub: self._updated(sub, **changes)
        )

    def record_failed_billing(self, subscription: Subscription) -> Result[Subscription, EngineError]:
        """
        Count a failed charge.

        At the configured maximum the subscription is suspended; below it
        an ACTIVE or TRIAL subscription moves to PAYMENT_FAILED.
        """
        attempts = subscription.failed_billing_attempts + 1
        target = (
            S.SUSPENDED if attempts >= self.settings.MAX_FAILED_BILLING_ATTEMPTS
            else S.PAYMENT_FAILED
        )
        if can_transition_to(subscription.status, target):
            if target == S.SUSPENDED:
                self._logger.warning(
                    "Suspending subscription after repeated billing failures",
                    extra={"subscription_ref": str(subscription.id), "attempts": attempts},
                )
            return self._transition(subscription, target, failed_billing_attempts=attempts)
        return self._require_not_final(subscription).map(
            lambda sub: self._updated(sub, failed_billing_attempts=attempts)
        )

    # -------------------------------------------------------------------------
    # Read-only predicates
    # -------------------------------------------------------------------------

    def is_active(self, subscription: Subscription) -> bool:
        return has_access(subscription.status) and (
            subscription.end_date is None or subscription.end_date > self.clock.now()
        )

    def is_in_trial(self, subscription: Subscription) -> bool:
        return (
            subscription.status == S.TRIAL
            and subscription.trial_end_date is not None
            and subscription.trial_end_date > self.clock.now()
        )

    def is_expired(self, subscription: Subscription) -> bool:
        return subscription.end_date is not None and subscription.end_date < self.clock.now()

    def can_be_billed(self, subscription: Subscription) -> bool:
        return (
            is_billable(subscription.status)
            and subscription.auto_renewal
            and subscription.next_billing_date is not None
        )

    def is_due_for_billing(self, subscription: Subscription) -> bool:
        return self.can_be_billed(subscription) and subscription.next_billing_date < self.clock.now()

    def is_in_grace_period(self, subscription: Subscription) -> bool:
        if subscription.status != S.EXPIRED or subscription.next_billing_date is None:
            return False
        grace_end = DateTimeHelper.add_days(
            subscription.next_billing_date, self.settings.GRACE_PERIOD_DAYS
        )
        return grace_end > self.clock.now()

    def days_remaining_in_cycle(self, subscription: Subscription) -> int:
        return DateTimeHelper.whole_days_between(self.clock.now(), subscription.next_billing_date)

    @staticmethod
    def monthly_savings(subscription: Subscription) -> Decimal:
        """List monthly price minus the effective monthly charge; zero for MONTHLY."""
        if subscription.billing_cycle == BillingCycle.MONTHLY:
            return ZERO
        effective = (subscription.billing_amount / months_in(subscription.billing_cycle)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        return subscription.monthly_price - effective


__all__ = ["SubscriptionLifecycleService", "RECOVERED_BY_PAYMENT"]
