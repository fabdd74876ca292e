"""
Usage tracking schemas.

One ``UsageTracking`` row exists per (user, feature, period start). The
query methods here are read-only; counters only change through the usage
tracker service, which returns updated copies.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import Field, field_validator, model_validator

from subscription_engine.core.constants import (
    APPROACHING_LIMIT_PERCENT,
    SOFT_LIMIT_PERCENT,
    UNLIMITED,
    UNLIMITED_REMAINING,
    WARNING_THRESHOLD_CRITICAL,
    WARNING_THRESHOLD_HIGH,
    WARNING_THRESHOLD_LOW,
    WARNING_THRESHOLD_MEDIUM,
)
from subscription_engine.schemas.common.base import BaseSchema, FrozenSchema
from subscription_engine.schemas.common.enums import UsageWarningLevel

__all__ = [
    "UsageTracking",
    "UsageVerdict",
    "WARNING_LEVEL_THRESHOLDS",
]

# Highest threshold first; first match wins
WARNING_LEVEL_THRESHOLDS: List[Tuple[float, UsageWarningLevel]] = [
    (WARNING_THRESHOLD_CRITICAL, UsageWarningLevel.CRITICAL),
    (WARNING_THRESHOLD_HIGH, UsageWarningLevel.HIGH),
    (WARNING_THRESHOLD_MEDIUM, UsageWarningLevel.MEDIUM),
    (WARNING_THRESHOLD_LOW, UsageWarningLevel.LOW),
]


class UsageTracking(BaseSchema):
    """Usage counter for one feature of one subscription in one period."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    subscription_id: UUID
    feature: str = Field(..., min_length=1, max_length=100)

    usage_count: int = Field(default=0, ge=0)
    usage_limit: int = Field(..., description="Cap for the period, -1 = unlimited")

    period_start: datetime
    period_end: datetime
    reset_date: datetime
    reset_frequency_days: int = Field(default=30, ge=1)

    limit_exceeded: bool = False
    exceeded_count: int = Field(default=0, ge=0)
    first_exceeded_at: Optional[datetime] = None
    last_used_date: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("feature", mode="before")
    @classmethod
    def normalize_feature(cls, v: str) -> str:
        return str(v).strip().lower()

    @model_validator(mode="after")
    def validate_period(self) -> "UsageTracking":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not precede period_start")
        return self

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_unlimited(self) -> bool:
        return self.usage_limit == UNLIMITED

    def is_within_limit(self) -> bool:
        return self.is_unlimited() or self.usage_count < self.usage_limit

    def remaining_usage(self) -> int:
        if self.is_unlimited():
            return UNLIMITED_REMAINING
        return max(0, self.usage_limit - self.usage_count)

    def usage_percentage(self) -> float:
        if self.is_unlimited() or self.usage_limit == 0:
            return 0.0
        return min(100.0, 100.0 * self.usage_count / self.usage_limit)

    def warning_level(self) -> UsageWarningLevel:
        if self.is_unlimited():
            return UsageWarningLevel.NONE
        percentage = self.usage_percentage()
        for threshold, level in WARNING_LEVEL_THRESHOLDS:
            if percentage >= threshold:
                return level
        return UsageWarningLevel.NONE

    def is_approaching_limit(self) -> bool:
        # strict comparison, unlike warning_level
        return not self.is_unlimited() and self.usage_percentage() > APPROACHING_LIMIT_PERCENT

    def is_at_soft_limit(self) -> bool:
        return not self.is_unlimited() and self.usage_percentage() > SOFT_LIMIT_PERCENT

    def is_period_active(self, now: datetime) -> bool:
        return self.period_start < now < self.period_end

    def needs_reset(self, now: datetime) -> bool:
        return now > self.reset_date

    @property
    def period_key(self) -> Tuple[UUID, str, datetime]:
        """Uniqueness key: one row per (user, feature, period start)."""
        return (self.user_id, self.feature, self.period_start)


class UsageVerdict(FrozenSchema):
    """Read-only evaluation of a usage row."""

    feature: str
    within_limit: bool
    remaining: int
    percentage: float
    warning_level: UsageWarningLevel
    approaching_limit: bool = False
    at_soft_limit: bool = False
    unlimited: bool = False

    @classmethod
    def from_usage(cls, usage: UsageTracking) -> "UsageVerdict":
        return cls(
            feature=usage.feature,
            within_limit=usage.is_within_limit(),
            remaining=usage.remaining_usage(),
            percentage=usage.usage_percentage(),
            warning_level=usage.warning_level(),
            approaching_limit=usage.is_approaching_limit(),
            at_soft_limit=usage.is_at_soft_limit(),
            unlimited=usage.is_unlimited(),
        )
