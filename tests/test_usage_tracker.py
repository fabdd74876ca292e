"""
Tests for usage counting and limit enforcement.
"""

from datetime import datetime, timedelta, timezone

import pytest

from subscription_engine.core.constants import UNLIMITED, UNLIMITED_REMAINING
from subscription_engine.schemas.common.enums import SubscriptionTier, UsageWarningLevel
from subscription_engine.services.base.errors import (
    ArithmeticInconsistency,
    DuplicateUsagePeriod,
    LimitMisconfigured,
    UnsupportedFeature,
)
from subscription_engine.services.subscription.usage_tracker import is_known_feature, is_valid_limit

from tests.conftest import NOW


@pytest.fixture
def tracker(engine):
    return engine.usage


class TestIncrementUsage:
    """Test increment_usage verdicts and breach bookkeeping."""

    def test_landing_on_limit_is_within(self, tracker, make_usage):
        updated, within = tracker.increment_usage(make_usage(count=99, limit=100)).unwrap()

        assert within is True
        assert updated.usage_count == 100
        assert updated.limit_exceeded is False
        assert updated.exceeded_count == 0

    def test_crossing_limit_records_breach(self, tracker, make_usage, clock):
        at_limit, _ = tracker.increment_usage(make_usage(count=99, limit=100)).unwrap()
        clock.advance(minutes=5)
        over, within = tracker.increment_usage(at_limit).unwrap()

        assert within is False
        assert over.usage_count == 101
        assert over.limit_exceeded is True
        assert over.exceeded_count == 1
        assert over.first_exceeded_at == NOW + timedelta(minutes=5)
        assert over.last_used_date == NOW + timedelta(minutes=5)

    def test_first_exceeded_at_is_not_restamped(self, tracker, make_usage, clock):
        usage = make_usage(count=100, limit=100)
        first, _ = tracker.increment_usage(usage).unwrap()
        clock.advance(hours=1)
        second, within = tracker.increment_usage(first).unwrap()

        assert within is False
        assert second.exceeded_count == 2
        assert second.first_exceeded_at == NOW
        assert second.last_used_date == NOW + timedelta(hours=1)

    def test_count_never_decreases(self, tracker, make_usage):
        usage = make_usage(count=0, limit=3)
        counts = []
        for amount in (1, 0, 2, 5):
            usage, _ = tracker.increment_usage(usage, amount).unwrap()
            counts.append(usage.usage_count)

        assert counts == [1, 1, 3, 8]
        assert counts == sorted(counts)

    def test_unlimited_is_always_within(self, tracker, make_usage):
        updated, within = tracker.increment_usage(make_usage(count=10 ** 9, limit=UNLIMITED), 1000).unwrap()

        assert within is True
        assert updated.usage_count == 10 ** 9 + 1000
        assert updated.limit_exceeded is False

    def test_input_is_not_mutated(self, tracker, make_usage):
        usage = make_usage(count=5, limit=10)
        tracker.increment_usage(usage, 3).unwrap()

        assert usage.usage_count == 5
        assert usage.last_used_date is None

    def test_negative_amount_is_rejected(self, tracker, make_usage):
        error = tracker.increment_usage(make_usage(), -1).unwrap_error()
        assert isinstance(error, ArithmeticInconsistency)

    @pytest.mark.parametrize("limit", [0, -2])
    def test_misconfigured_limit(self, tracker, make_usage, limit):
        error = tracker.increment_usage(make_usage(limit=limit)).unwrap_error()

        assert isinstance(error, LimitMisconfigured)
        assert error.limit == limit

    def test_unknown_feature(self, tracker, make_usage):
        error = tracker.increment_usage(make_usage(feature="teleports")).unwrap_error()

        assert isinstance(error, UnsupportedFeature)
        assert error.name == "teleports"


class TestCheckUsage:
    """Test warning levels and the read-only verdict."""

    @pytest.mark.parametrize("count,expected", [
        (0, UsageWarningLevel.NONE),
        (599, UsageWarningLevel.NONE),
        (600, UsageWarningLevel.LOW),
        (799, UsageWarningLevel.LOW),
        (800, UsageWarningLevel.MEDIUM),
        (899, UsageWarningLevel.MEDIUM),
        (900, UsageWarningLevel.HIGH),
        (999, UsageWarningLevel.HIGH),
        (1000, UsageWarningLevel.CRITICAL),
        (1500, UsageWarningLevel.CRITICAL),
    ])
    def test_warning_levels_use_inclusive_thresholds(self, tracker, make_usage, count, expected):
        verdict = tracker.check_usage(make_usage(count=count, limit=1000)).unwrap()
        assert verdict.warning_level is expected

    def test_convenience_predicates_are_strict(self, tracker, make_usage):
        at_80 = tracker.check_usage(make_usage(count=800, limit=1000)).unwrap()
        past_80 = tracker.check_usage(make_usage(count=801, limit=1000)).unwrap()
        at_90 = tracker.check_usage(make_usage(count=900, limit=1000)).unwrap()
        past_90 = tracker.check_usage(make_usage(count=901, limit=1000)).unwrap()

        assert at_80.warning_level is UsageWarningLevel.MEDIUM
        assert at_80.approaching_limit is False
        assert past_80.approaching_limit is True
        assert at_90.warning_level is UsageWarningLevel.HIGH
        assert at_90.at_soft_limit is False
        assert past_90.at_soft_limit is True

    def test_verdict_fields(self, tracker, make_usage):
        verdict = tracker.check_usage(make_usage(count=30, limit=120)).unwrap()

        assert verdict.feature == "watchlists"
        assert verdict.within_limit is True
        assert verdict.remaining == 90
        assert verdict.percentage == 25.0
        assert verdict.unlimited is False

    def test_over_limit_verdict(self, tracker, make_usage):
        verdict = tracker.check_usage(make_usage(count=150, limit=100)).unwrap()

        assert verdict.within_limit is False
        assert verdict.remaining == 0
        assert verdict.percentage == 100.0

    def test_unlimited_verdict(self, tracker, make_usage):
        verdict = tracker.check_usage(make_usage(count=5000, limit=UNLIMITED)).unwrap()

        assert verdict.unlimited is True
        assert verdict.within_limit is True
        assert verdict.remaining == UNLIMITED_REMAINING
        assert verdict.percentage == 0.0
        assert verdict.warning_level is UsageWarningLevel.NONE

    def test_period_predicates(self, make_usage):
        usage = make_usage()

        assert usage.is_period_active(NOW) is False
        assert usage.is_period_active(NOW + timedelta(days=1)) is True
        assert usage.needs_reset(NOW + timedelta(days=30)) is False
        assert usage.needs_reset(NOW + timedelta(days=30, seconds=1)) is True


class TestResetAndLimits:
    """Test reset_usage and update_limit."""

    def test_reset_clears_counters_and_starts_new_period(self, tracker, make_usage, clock):
        usage = make_usage(
            count=150, limit=100, limit_exceeded=True, exceeded_count=4, first_exceeded_at=NOW,
        )
        later = clock.advance(days=31)
        reset = tracker.reset_usage(usage)

        assert reset.usage_count == 0
        assert reset.limit_exceeded is False
        assert reset.exceeded_count == 0
        assert reset.first_exceeded_at is None
        assert reset.period_start == later
        assert reset.period_end == later + timedelta(days=30)
        assert reset.reset_date == reset.period_end
        assert reset.usage_limit == 100
        assert reset.id == usage.id

    def test_reset_is_idempotent(self, tracker, make_usage):
        once = tracker.reset_usage(make_usage(count=42))
        twice = tracker.reset_usage(once)
        assert once == twice

    def test_unlimited_clears_exceeded_and_keeps_count(self, tracker, make_usage):
        usage = make_usage(count=120, limit=100, limit_exceeded=True, exceeded_count=20)
        updated = tracker.update_limit(usage, UNLIMITED).unwrap()

        assert updated.usage_limit == UNLIMITED
        assert updated.limit_exceeded is False
        assert updated.usage_count == 120

    def test_lower_limit_flips_exceeded(self, tracker, make_usage):
        updated = tracker.update_limit(make_usage(count=50, limit=100), 40).unwrap()

        assert updated.limit_exceeded is True
        assert updated.usage_count == 50

    def test_raised_limit_clears_exceeded(self, tracker, make_usage):
        usage = make_usage(count=120, limit=100, limit_exceeded=True)
        assert tracker.update_limit(usage, 200).unwrap().limit_exceeded is False

    @pytest.mark.parametrize("limit", [0, -5])
    def test_invalid_new_limit(self, tracker, make_usage, limit):
        assert isinstance(tracker.update_limit(make_usage(), limit).unwrap_error(), LimitMisconfigured)


class TestDefaultUsage:
    """Test creating fresh usage rows from the tier catalog."""

    def test_anchored_to_first_of_month(self, tracker, user_id):
        usage = tracker.default_usage(user_id, user_id, SubscriptionTier.PRO, "Watchlists").unwrap()

        assert usage.feature == "watchlists"
        assert usage.usage_count == 0
        assert usage.usage_limit == 25
        assert usage.period_start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert usage.period_end == datetime(2024, 3, 31, tzinfo=timezone.utc)
        assert usage.reset_date == usage.period_end
        assert usage.reset_frequency_days == 30

    def test_api_calls_reset_daily(self, tracker, user_id):
        usage = tracker.default_usage(user_id, user_id, SubscriptionTier.PRO, "api_calls").unwrap()

        assert usage.usage_limit == 10000
        assert usage.reset_frequency_days == 1
        assert usage.period_end == datetime(2024, 3, 2, tzinfo=timezone.utc)

    def test_institutional_is_unlimited(self, tracker, user_id):
        usage = tracker.default_usage(user_id, user_id, SubscriptionTier.INSTITUTIONAL, "ai_insights").unwrap()
        assert usage.usage_limit == UNLIMITED

    def test_feature_not_offered_on_tier(self, tracker, user_id):
        error = tracker.default_usage(user_id, user_id, SubscriptionTier.FREE, "ai_analysis").unwrap_error()

        assert isinstance(error, LimitMisconfigured)
        assert error.limit == 0

    def test_unknown_feature(self, tracker, user_id):
        error = tracker.default_usage(user_id, user_id, SubscriptionTier.PRO, "teleports").unwrap_error()
        assert isinstance(error, UnsupportedFeature)


class TestUsageIndex:
    """Test the one-row-per-period invariant."""

    def test_distinct_periods_are_indexed(self, tracker, make_usage, user_id):
        march = make_usage()
        april = make_usage(
            period_start=NOW + timedelta(days=30),
            period_end=NOW + timedelta(days=60),
            reset_date=NOW + timedelta(days=60),
        )
        index = tracker.build_usage_index([march, april]).unwrap()

        assert index[(user_id, "watchlists", NOW)] is march
        assert len(index) == 2

    def test_duplicate_period_is_rejected(self, tracker, make_usage, user_id):
        error = tracker.build_usage_index([make_usage(), make_usage(count=3)]).unwrap_error()

        assert isinstance(error, DuplicateUsagePeriod)
        assert error.user_id == user_id
        assert error.feature == "watchlists"
        assert error.period_start == NOW


class TestFeatureHelpers:
    def test_known_features(self):
        assert is_known_feature("API_CALLS")
        assert not is_known_feature("teleports")

    def test_valid_limits(self):
        assert is_valid_limit(UNLIMITED)
        assert is_valid_limit(1)
        assert not is_valid_limit(0)
        assert not is_valid_limit(-2)
