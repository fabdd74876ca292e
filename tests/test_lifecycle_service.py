"""
Tests for subscription lifecycle operations.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionStatus, SubscriptionTier
from subscription_engine.services.base.errors import (
    ArithmeticInconsistency,
    InvalidTierChange,
    InvalidTransition,
)

from tests.conftest import NOW

S = SubscriptionStatus

def _with(subscription, **changes):
    return subscription.model_copy(update=changes)

class TestCreationAndActivation:
    """Test new_subscription, activate and start_trial."""

    def test_new_subscription_is_pending_and_priced(self, lifecycle, user_id):
        sub = lifecycle.new_subscription(user_id, SubscriptionTier.AI_PREMIUM, BillingCycle.QUARTERLY).unwrap()

        assert sub.status is S.PENDING
        assert sub.user_id == user_id
        assert sub.currency == "USD"
        assert sub.monthly_price == Decimal("99.99")
        assert sub.billing_amount == Decimal("269.99")
        assert sub.created_at == NOW
        assert sub.version == 0

    def test_new_subscription_with_promotion(self, lifecycle, user_id):
        sub = lifecycle.new_subscription(
            user_id, SubscriptionTier.PRO, promotion_code="WELCOME", promotion_discount=Decimal("0.20"),
        ).unwrap()

        assert sub.has_promotion
        assert sub.billing_amount == Decimal("23.99")

    def test_activate_from_pending(self, lifecycle, pro_subscription):
        active = lifecycle.activate(pro_subscription).unwrap()

        assert active.status is S.ACTIVE
        assert active.start_date == NOW
        assert active.activated_date == NOW
        assert active.next_billing_date == datetime(2024, 4, 15, 12, 0, tzinfo=timezone.utc)
        assert pro_subscription.status is S.PENDING

    def test_trial_then_activate_keeps_trial_dates(self, lifecycle, pro_subscription, clock):
        trial = lifecycle.start_trial(pro_subscription).unwrap()

        assert trial.status is S.TRIAL
        assert trial.trial_end_date == NOW + timedelta(days=14)
        assert trial.next_billing_date == trial.trial_end_date
        assert lifecycle.is_in_trial(trial)

        clock.advance(days=14, seconds=1)
        assert not lifecycle.is_in_trial(trial)

        active = lifecycle.activate(trial).unwrap()
        assert active.status is S.ACTIVE
        assert active.start_date == NOW
        assert active.next_billing_date == NOW + timedelta(days=14)
        assert active.activated_date == NOW + timedelta(days=14, seconds=1)

    def test_custom_trial_length(self, lifecycle, pro_subscription):
        trial = lifecycle.start_trial(pro_subscription, trial_days=7).unwrap()
        assert trial.trial_end_date == NOW + timedelta(days=7)

    def test_activate_twice_is_rejected(self, lifecycle, active_subscription):
        error = lifecycle.activate(active_subscription).unwrap_error()

        assert isinstance(error, InvalidTransition)
        assert error.from_status is S.ACTIVE
        assert error.to_status is S.ACTIVE

class TestStatusChanges:
    """Test cancel, suspend, pause, resume, expire and terminate."""

    def test_cancel(self, lifecycle, active_subscription):
        cancelled = lifecycle.cancel(active_subscription, reason="Too expensive").unwrap()

        assert cancelled.status is S.CANCELLED
        assert cancelled.cancellation_reason == "Too expensive"
        assert cancelled.cancelled_at == NOW
        assert cancelled.auto_renewal is False
        assert active_subscription.status is S.ACTIVE

    @pytest.mark.parametrize("status", [S.PENDING, S.SUSPENDED, S.CANCELLED, S.TERMINATED])
    def test_cancel_requires_cancellable_status(self, lifecycle, active_subscription, status):
        error = lifecycle.cancel(_with(active_subscription, status=status)).unwrap_error()

        assert isinstance(error, InvalidTransition)
        assert error.from_status is status
        assert error.to_status is S.CANCELLED

    def test_pause_and_resume(self, lifecycle, active_subscription):
        paused = lifecycle.pause(active_subscription).unwrap()
        resumed = lifecycle.resume(paused).unwrap()

        assert paused.status is S.PAUSED
        assert resumed.status is S.ACTIVE

    def test_resume_requires_reactivatable_status(self, lifecycle, active_subscription):
        error = lifecycle.resume(active_subscription).unwrap_error()
        assert isinstance(error, InvalidTransition)

    def test_suspend_then_terminate(self, lifecycle, active_subscription, clock):
        suspended = lifecycle.suspend(active_subscription).unwrap()
        later = clock.advance(days=10)
        terminated = lifecycle.terminate(suspended).unwrap()

        assert terminated.status is S.TERMINATED
        assert terminated.end_date == later
        assert terminated.auto_renewal is False

    def test_active_cannot_terminate_directly(self, lifecycle, active_subscription):
        assert isinstance(lifecycle.terminate(active_subscription).unwrap_error(), InvalidTransition)

    def test_expire(self, lifecycle, active_subscription):
        assert lifecycle.expire(active_subscription).unwrap().status is S.EXPIRED

    def test_terminated_accepts_nothing(self, lifecycle, active_subscription):
        terminated = _with(active_subscription, status=S.TERMINATED)

        for operation in (lifecycle.activate, lifecycle.suspend, lifecycle.pause, lifecycle.resume, lifecycle.expire):
            assert operation(terminated).is_failure
        assert lifecycle.apply_promotion(terminated, "LATE").is_failure
        assert lifecycle.set_auto_renewal(terminated, True).is_failure
        assert lifecycle.change_billing_cycle(terminated, BillingCycle.ANNUAL).is_failure
        assert lifecycle.record_successful_billing(terminated).is_failure
        assert lifecycle.record_failed_billing(terminated).is_failure

class TestTierChanges:
    """Test requesting and completing tier changes."""

    def test_upgrade_from_active_goes_pending(self, lifecycle, active_subscription):
        pending = lifecycle.request_tier_change(active_subscription, SubscriptionTier.AI_PREMIUM).unwrap()

        assert pending.status is S.UPGRADE_PENDING
        assert pending.pending_tier is SubscriptionTier.AI_PREMIUM
        assert pending.tier is SubscriptionTier.PRO
        assert pending.billing_amount == Decimal("29.99")

    def test_complete_upgrade_reprices(self, lifecycle, active_subscription, clock):
        pending = lifecycle.request_tier_change(active_subscription, SubscriptionTier.AI_PREMIUM).unwrap()
        later = clock.advance(hours=2)
        upgraded = lifecycle.complete_tier_change(pending).unwrap()

        assert upgraded.status is S.ACTIVE
        assert upgraded.tier is SubscriptionTier.AI_PREMIUM
        assert upgraded.pending_tier is None
        assert upgraded.monthly_price == Decimal("99.99")
        assert upgraded.billing_amount == Decimal("99.99")
        assert upgraded.upgraded_date == later

    def test_downgrade_round_trip(self, lifecycle, active_subscription):
        pending = lifecycle.request_tier_change(active_subscription, SubscriptionTier.FREE).unwrap()
        downgraded = lifecycle.complete_tier_change(pending).unwrap()

        assert pending.status is S.DOWNGRADE_PENDING
        assert downgraded.status is S.ACTIVE
        assert downgraded.tier is SubscriptionTier.FREE
        assert downgraded.billing_amount == Decimal("0.00")
        assert downgraded.upgraded_date is None

    def test_trial_upgrade_is_immediate(self, lifecycle, pro_subscription):
        trial = lifecycle.start_trial(pro_subscription).unwrap()
        upgraded = lifecycle.request_tier_change(trial, SubscriptionTier.AI_PREMIUM).unwrap()

        assert upgraded.status is S.TRIAL
        assert upgraded.tier is SubscriptionTier.AI_PREMIUM
        assert upgraded.billing_amount == Decimal("99.99")
        assert upgraded.upgraded_date == NOW

    def test_same_tier_is_rejected(self, lifecycle, active_subscription):
        error = lifecycle.request_tier_change(active_subscription, SubscriptionTier.PRO).unwrap_error()

        assert isinstance(error, InvalidTierChange)
        assert error.current_tier is SubscriptionTier.PRO
        assert error.target_tier is SubscriptionTier.PRO

    def test_upgrade_requires_active_or_trial(self, lifecycle, pro_subscription):
        error = lifecycle.request_tier_change(pro_subscription, SubscriptionTier.AI_PREMIUM).unwrap_error()
        assert isinstance(error, InvalidTierChange)

    def test_downgrade_requires_active(self, lifecycle, pro_subscription):
        trial = lifecycle.start_trial(pro_subscription).unwrap()
        assert isinstance(
            lifecycle.request_tier_change(trial, SubscriptionTier.FREE).unwrap_error(), InvalidTierChange
        )

    def test_complete_without_pending_change(self, lifecycle, active_subscription):
        error = lifecycle.complete_tier_change(active_subscription).unwrap_error()

        assert isinstance(error, InvalidTransition)
        assert error.to_status is S.ACTIVE

    def test_complete_with_missing_pending_tier(self, lifecycle, active_subscription):
        broken = _with(active_subscription, status=S.UPGRADE_PENDING, pending_tier=None)
        assert isinstance(lifecycle.complete_tier_change(broken).unwrap_error(), InvalidTierChange)

class TestPricingChanges:
    """Test billing cycle, promotion and auto-renewal changes."""

    def test_change_billing_cycle_reprices(self, lifecycle, active_subscription):
        annual = lifecycle.change_billing_cycle(active_subscription, BillingCycle.ANNUAL).unwrap()

        assert annual.billing_cycle is BillingCycle.ANNUAL
        assert annual.billing_amount == Decimal("299.99")
        assert annual.status is S.ACTIVE

    def test_same_billing_cycle_is_a_no_op(self, lifecycle, active_subscription):
        assert lifecycle.change_billing_cycle(active_subscription, BillingCycle.MONTHLY).unwrap() is active_subscription

    def test_apply_and_remove_promotion(self, lifecycle, active_subscription):
        promoted = lifecycle.apply_promotion(active_subscription, "SPRING24").unwrap()
        removed = lifecycle.remove_promotion(promoted).unwrap()

        assert promoted.promotion_code == "SPRING24"
        assert promoted.promotion_discount == Decimal("0.20")
        assert promoted.billing_amount == Decimal("23.99")
        assert removed.promotion_code is None
        assert removed.promotion_discount == Decimal("0")
        assert removed.billing_amount == Decimal("29.99")

    def test_promotion_with_explicit_discount(self, lifecycle, active_subscription):
        promoted = lifecycle.apply_promotion(active_subscription, "HALF", Decimal("0.50")).unwrap()
        assert promoted.billing_amount == Decimal("15.00")

    @pytest.mark.parametrize("discount", [Decimal("-0.5"), Decimal("1.01"), Decimal("NaN")])
    def test_promotion_outside_unit_range_is_rejected(self, lifecycle, active_subscription, discount):
        result = lifecycle.apply_promotion(active_subscription, "NEG", discount=discount)

        error = result.unwrap_error()
        assert isinstance(error, ArithmeticInconsistency)
        assert error.operation == "promotion_discount"
        assert active_subscription.promotion_code is None

    def test_full_discount_is_allowed(self, lifecycle, active_subscription):
        promoted = lifecycle.apply_promotion(active_subscription, "COMP", Decimal("1")).unwrap()
        assert promoted.billing_amount == Decimal("0.00")

    def test_promotion_survives_cycle_change(self, lifecycle, active_subscription):
        promoted = lifecycle.apply_promotion(active_subscription, "SPRING24").unwrap()
        annual = lifecycle.change_billing_cycle(promoted, BillingCycle.ANNUAL).unwrap()
        assert annual.billing_amount == Decimal("239.99")

    def test_set_auto_renewal(self, lifecycle, active_subscription):
        off = lifecycle.set_auto_renewal(active_subscription, False).unwrap()

        assert off.auto_renewal is False
        assert not lifecycle.can_be_billed(off)

class TestBillingOutcomes:
    """Test recording successful and failed charges."""

    def test_successful_billing_advances_cycle(self, lifecycle, active_subscription):
        billed = lifecycle.record_successful_billing(active_subscription).unwrap()

        assert billed.status is S.ACTIVE
        assert billed.last_billed_date == NOW
        assert billed.failed_billing_attempts == 0
        assert billed.next_billing_date == datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

    def test_failures_escalate_to_suspension(self, lifecycle, active_subscription):
        first = lifecycle.record_failed_billing(active_subscription).unwrap()
        second = lifecycle.record_failed_billing(first).unwrap()
        third = lifecycle.record_failed_billing(second).unwrap()

        assert (first.status, first.failed_billing_attempts) == (S.PAYMENT_FAILED, 1)
        assert (second.status, second.failed_billing_attempts) == (S.PAYMENT_FAILED, 2)
        assert (third.status, third.failed_billing_attempts) == (S.SUSPENDED, 3)

    def test_successful_billing_recovers(self, lifecycle, active_subscription):
        failed = lifecycle.record_failed_billing(active_subscription).unwrap()
        recovered = lifecycle.record_successful_billing(failed).unwrap()

        assert recovered.status is S.ACTIVE
        assert recovered.failed_billing_attempts == 0

    def test_suspended_recovers_on_payment(self, lifecycle, active_subscription):
        suspended = lifecycle.suspend(active_subscription).unwrap()
        assert lifecycle.record_successful_billing(suspended).unwrap().status is S.ACTIVE

class TestPredicates:
    """Test read-only lifecycle predicates."""

    def test_active_subscription(self, lifecycle, active_subscription):
        assert lifecycle.is_active(active_subscription)
        assert not lifecycle.is_expired(active_subscription)
        assert lifecycle.can_be_billed(active_subscription)
        assert not lifecycle.is_due_for_billing(active_subscription)
        assert lifecycle.days_remaining_in_cycle(active_subscription) == 31

    def test_due_for_billing_after_cycle(self, lifecycle, active_subscription, clock):
        clock.advance(days=32)

        assert lifecycle.is_due_for_billing(active_subscription)
        assert lifecycle.days_remaining_in_cycle(active_subscription) == -1

    def test_pending_is_not_billable(self, lifecycle, pro_subscription):
        assert not lifecycle.can_be_billed(pro_subscription)
        assert lifecycle.days_remaining_in_cycle(pro_subscription) == 0

    def test_ended_subscription_is_not_active(self, lifecycle, active_subscription):
        ended = _with(active_subscription, end_date=NOW - timedelta(days=1))

        assert not lifecycle.is_active(ended)
        assert lifecycle.is_expired(ended)

    def test_grace_period(self, lifecycle, active_subscription, clock):
        expired = lifecycle.expire(active_subscription).unwrap()

        clock.set(datetime(2024, 4, 17, 12, 0, tzinfo=timezone.utc))
        assert lifecycle.is_in_grace_period(expired)
        clock.set(datetime(2024, 4, 18, 12, 0, tzinfo=timezone.utc))
        assert not lifecycle.is_in_grace_period(expired)
        assert not lifecycle.is_in_grace_period(active_subscription)

    def test_monthly_savings(self, lifecycle, active_subscription):
        annual = lifecycle.change_billing_cycle(active_subscription, BillingCycle.ANNUAL).unwrap()

        assert lifecycle.monthly_savings(active_subscription) == Decimal("0.00")
        assert lifecycle.monthly_savings(annual) == Decimal("4.99")
