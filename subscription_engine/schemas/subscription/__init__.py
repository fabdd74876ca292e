"""
Subscription domain schemas.
"""

from subscription_engine.schemas.subscription.history import SubscriptionHistory
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.schemas.subscription.tier import (
    FEATURE_LIMIT_FIELDS,
    SubscriptionLimits,
    TierDefinition,
    TierPricing,
)
from subscription_engine.schemas.subscription.usage import (
    WARNING_LEVEL_THRESHOLDS,
    UsageTracking,
    UsageVerdict,
)

__all__ = [
    "SubscriptionHistory",
    "Subscription",
    "FEATURE_LIMIT_FIELDS",
    "SubscriptionLimits",
    "TierDefinition",
    "TierPricing",
    "WARNING_LEVEL_THRESHOLDS",
    "UsageTracking",
    "UsageVerdict",
]
