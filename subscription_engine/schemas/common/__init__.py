"""
Common schemas package.
"""

from subscription_engine.schemas.common.base import BaseSchema, FrozenSchema
from subscription_engine.schemas.common.enums import (
    BillingCycle,
    ChangeInitiator,
    SubscriptionChangeType,
    SubscriptionStatus,
    SubscriptionTier,
    UsageWarningLevel,
)

__all__ = [
    "BaseSchema",
    "FrozenSchema",
    "BillingCycle",
    "ChangeInitiator",
    "SubscriptionChangeType",
    "SubscriptionStatus",
    "SubscriptionTier",
    "UsageWarningLevel",
]
