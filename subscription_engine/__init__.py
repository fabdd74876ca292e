"""
Subscription business-rules engine.

Status state machine, tier/billing-cycle pricing and per-feature usage
limits, composed through a success/failure ``Result`` type.
"""

from subscription_engine.config.tier_catalog import TierCatalog, load_tier_catalog
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.services.subscription.engine import SubscriptionEngine

__all__ = [
    "TierCatalog",
    "load_tier_catalog",
    "Failure",
    "Result",
    "Success",
    "SubscriptionEngine",
]

__version__ = "1.0.0"
