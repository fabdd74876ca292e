"""
Subscription Service Layer

Business rules for subscriptions:
- Status state machine and lifecycle transitions
- Tier/billing-cycle pricing with promotional discounts
- Per-feature usage tracking and limit enforcement
- Audit-history projection and change classification
"""

from subscription_engine.services.subscription.billing_calculator import (
    BillingCalculationStrategy,
    BillingCalculator,
    PromotionalBillingStrategy,
    StandardBillingStrategy,
)
from subscription_engine.services.subscription.engine import SubscriptionEngine
from subscription_engine.services.subscription.history_projection import HistoryProjection
from subscription_engine.services.subscription.lifecycle_service import SubscriptionLifecycleService
from subscription_engine.services.subscription.status_machine import StatusMachine
from subscription_engine.services.subscription.usage_tracker import UsageTracker

__all__ = [
    "BillingCalculationStrategy",
    "BillingCalculator",
    "PromotionalBillingStrategy",
    "StandardBillingStrategy",
    "SubscriptionEngine",
    "HistoryProjection",
    "SubscriptionLifecycleService",
    "StatusMachine",
    "UsageTracker",
]
