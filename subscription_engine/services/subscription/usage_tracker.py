"""
Usage Tracker

Per-(subscription, feature) counters with a rolling reset period.

Usage is always recorded, even past the limit, so the historical count
stays accurate; the verdict says whether the new count is still within
the cap. Records are never mutated: every operation returns a copy.
"""

from datetime import datetime
from typing import Dict, Iterable, Tuple
from uuid import UUID

from subscription_engine.config.tier_catalog import TierCatalog
from subscription_engine.core.clock import Clock
from subscription_engine.core.constants import UNLIMITED, FeatureName
from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import SubscriptionTier
from subscription_engine.schemas.subscription.tier import FEATURE_LIMIT_FIELDS
from subscription_engine.schemas.subscription.usage import UsageTracking, UsageVerdict
from subscription_engine.services.base.errors import (
    ArithmeticInconsistency,
    DuplicateUsagePeriod,
    EngineError,
    LimitMisconfigured,
    UnsupportedFeature,
)
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.utils.datetime_utils import DateTimeHelper

# Features whose period is not the default cadence
FEATURE_RESET_DAYS: Dict[str, int] = {
    FeatureName.API_CALLS: 1,
}

UsageKey = Tuple[UUID, str, datetime]


def is_known_feature(feature: str) -> bool:
    return feature.lower() in FEATURE_LIMIT_FIELDS


def is_valid_limit(limit: int) -> bool:
    """-1 (unlimited) or a positive cap."""
    return limit == UNLIMITED or limit > 0


class UsageTracker:
    """
    Usage counting and limit enforcement.

    Args:
        catalog: Tier catalog supplying default limits
        clock: Source of "now" for period boundaries and breach stamps
        default_reset_days: Period length for features not in FEATURE_RESET_DAYS
    """

    def __init__(self, catalog: TierCatalog, clock: Clock, default_reset_days: int = 30):
        self.catalog = catalog
        self.clock = clock
        self.default_reset_days = default_reset_days
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, usage: UsageTracking) -> Result[UsageTracking, EngineError]:
        if not is_known_feature(usage.feature):
            return Failure(UnsupportedFeature(name=usage.feature))
        if not is_valid_limit(usage.usage_limit):
            return Failure(LimitMisconfigured(feature=usage.feature, limit=usage.usage_limit))
        return Success(usage)

    def reset_days_for(self, feature: str) -> int:
        return FEATURE_RESET_DAYS.get(feature.lower(), self.default_reset_days)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def check_usage(self, usage: UsageTracking) -> Result[UsageVerdict, EngineError]:
        """Within-limit flag, remaining, percentage and warning level."""
        return self.validate(usage).map(UsageVerdict.from_usage)

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def increment_usage(
        self,
        usage: UsageTracking,
        amount: int = 1,
    ) -> Result[Tuple[UsageTracking, bool], EngineError]:
        """
        Add ``amount`` and report whether the new count is within the limit.

        Landing exactly on the limit is still within it. Each increment that
        ends over the limit bumps ``exceeded_count``; ``first_exceeded_at`` is
        stamped only on the first breach of the period.
        """
        if amount < 0:
            return Failure(ArithmeticInconsistency(operation="increment_usage", amount=str(amount)))
        return self.validate(usage).map(lambda valid: self._increment(valid, amount))

    def _increment(self, usage: UsageTracking, amount: int) -> Tuple[UsageTracking, bool]:
        now = self.clock.now()
        new_count = usage.usage_count + amount
        update = {"usage_count": new_count, "last_used_date": now}

        if usage.is_unlimited():
            return usage.model_copy(update=update), True

        within_limit = new_count <= usage.usage_limit
        if not within_limit:
            update["limit_exceeded"] = True
            update["exceeded_count"] = usage.exceeded_count + 1
            if usage.first_exceeded_at is None:
                update["first_exceeded_at"] = now
            self._logger.warning(
                "Usage limit exceeded",
                extra={
                    "feature": usage.feature,
                    "usage_count": new_count,
                    "usage_limit": usage.usage_limit,
                    "exceeded_count": update["exceeded_count"],
                },
            )

        return usage.model_copy(update=update), within_limit

    def reset_usage(self, usage: UsageTracking) -> UsageTracking:
        """Zero the counters and start a new period at "now"."""
        period_start = self.clock.now()
        period_end = DateTimeHelper.add_days(period_start, usage.reset_frequency_days)
        return usage.model_copy(update={
            "usage_count": 0,
            "limit_exceeded": False,
            "exceeded_count": 0,
            "first_exceeded_at": None,
            "period_start": period_start,
            "period_end": period_end,
            "reset_date": period_end,
        })

    def update_limit(
        self,
        usage: UsageTracking,
        new_limit: int,
    ) -> Result[UsageTracking, EngineError]:
        """
        Change the cap and re-evaluate ``limit_exceeded`` against the current count.

        A lower cap can flip a record into the exceeded state without any
        increment; an unlimited cap always clears it.
        """
        if not is_valid_limit(new_limit):
            return Failure(LimitMisconfigured(feature=usage.feature, limit=new_limit))

        exceeded = False if new_limit == UNLIMITED else usage.usage_count > new_limit
        return Success(usage.model_copy(update={
            "usage_limit": new_limit,
            "limit_exceeded": exceeded,
        }))

    # -------------------------------------------------------------------------
    # Row creation and indexing
    # -------------------------------------------------------------------------

    def default_usage(
        self,
        user_id: UUID,
        subscription_id: UUID,
        tier: SubscriptionTier,
        feature: str,
    ) -> Result[UsageTracking, EngineError]:
        """
        Fresh row for a feature with no usage yet this period.

        The period is anchored to the first day of the current month; the
        limit comes from the tier's feature-limit table.
        """
        feature = feature.strip().lower()
        limit = self.catalog.usage_limit(tier, feature)
        if limit is None:
            return Failure(UnsupportedFeature(name=feature))
        if not is_valid_limit(limit):
            return Failure(LimitMisconfigured(feature=feature, limit=limit))

        reset_days = self.reset_days_for(feature)
        period_start = DateTimeHelper.first_day_of_month(self.clock.now())
        period_end = DateTimeHelper.add_days(period_start, reset_days)
        return Success(UsageTracking(
            user_id=user_id,
            subscription_id=subscription_id,
            feature=feature,
            usage_count=0,
            usage_limit=limit,
            period_start=period_start,
            period_end=period_end,
            reset_date=period_end,
            reset_frequency_days=reset_days,
        ))

    def build_usage_index(
        self,
        records: Iterable[UsageTracking],
    ) -> Result[Dict[UsageKey, UsageTracking], DuplicateUsagePeriod]:
        """Index rows by (user, feature, period start), rejecting duplicates."""
        index: Dict[UsageKey, UsageTracking] = {}
        for record in records:
            key = record.period_key
            if key in index:
                return Failure(DuplicateUsagePeriod(
                    user_id=record.user_id,
                    feature=record.feature,
                    period_start=record.period_start,
                ))
            index[key] = record
        return Success(index)


__all__ = [
    "FEATURE_RESET_DAYS",
    "UsageKey",
    "UsageTracker",
    "is_known_feature",
    "is_valid_limit",
]
