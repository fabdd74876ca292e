"""
Tier catalog entry schemas.

A tier bundles display metadata, per-cycle list prices, a feature list
and numeric usage limits. Entries are immutable once loaded.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator

from subscription_engine.core.constants import UNLIMITED, FeatureName
from subscription_engine.schemas.common.base import FrozenSchema
from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionTier
from subscription_engine.utils.money import to_money

__all__ = [
    "SubscriptionLimits",
    "TierPricing",
    "TierDefinition",
    "FEATURE_LIMIT_FIELDS",
]

LimitValue = Annotated[int, Field(ge=UNLIMITED, description="Cap, -1 = unlimited")]

# Metered feature name -> SubscriptionLimits field
FEATURE_LIMIT_FIELDS: Dict[str, str] = {
    FeatureName.WATCHLISTS: "max_watchlists",
    FeatureName.ALERTS: "max_alerts",
    FeatureName.API_CALLS: "api_calls_per_day",
    FeatureName.PORTFOLIOS: "max_portfolios",
    FeatureName.AI_ANALYSIS: "ai_analysis_per_month",
    FeatureName.AI_INSIGHTS: "ai_analysis_per_month",
    FeatureName.SUB_ACCOUNTS: "max_sub_accounts",
    FeatureName.CUSTOM_INDICATORS: "max_custom_indicators",
    FeatureName.DATA_RETENTION: "data_retention_days",
    FeatureName.WEBSOCKET_CONNECTIONS: "max_websocket_connections",
}


class SubscriptionLimits(FrozenSchema):
    """Named integer caps for one tier."""

    max_watchlists: LimitValue = 0
    max_alerts: LimitValue = 0
    api_calls_per_day: LimitValue = 0
    max_portfolios: LimitValue = 0
    ai_analysis_per_month: LimitValue = 0
    max_sub_accounts: LimitValue = 0
    max_custom_indicators: LimitValue = 0
    data_retention_days: LimitValue = 0
    max_websocket_connections: LimitValue = 0

    def limit_for(self, feature: str) -> Optional[int]:
        """Cap for a metered feature, or None for an unknown feature key."""
        field_name = FEATURE_LIMIT_FIELDS.get(feature.lower())
        if field_name is None:
            return None
        return getattr(self, field_name)


class TierPricing(FrozenSchema):
    """Authoritative list price for every billing cycle."""

    monthly: Decimal = Field(..., ge=Decimal("0"))
    quarterly: Decimal = Field(..., ge=Decimal("0"))
    annual: Decimal = Field(..., ge=Decimal("0"))

    @field_validator("monthly", "quarterly", "annual", mode="before")
    @classmethod
    def quantize_price(cls, v):
        if isinstance(v, float):
            # YAML hands prices over as floats; go through str to keep the literal
            v = str(v)
        return to_money(v)

    def price_for(self, cycle: BillingCycle) -> Decimal:
        return {
            BillingCycle.MONTHLY: self.monthly,
            BillingCycle.QUARTERLY: self.quarterly,
            BillingCycle.ANNUAL: self.annual,
        }[cycle]


class TierDefinition(FrozenSchema):
    """
    Catalog entry for a subscription tier.

    Carries display metadata, prices, features and limits.
    """

    tier: SubscriptionTier
    display_name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    pricing: TierPricing
    features: List[str] = Field(default_factory=list)
    limits: SubscriptionLimits = Field(default_factory=SubscriptionLimits)

    @property
    def monthly_price(self) -> Decimal:
        return self.pricing.monthly

    @property
    def quarterly_price(self) -> Decimal:
        return self.pricing.quarterly

    @property
    def annual_price(self) -> Decimal:
        return self.pricing.annual

    def has_feature(self, feature: str) -> bool:
        """Case-insensitive substring match against the feature list."""
        needle = feature.lower()
        return any(needle in f.lower() for f in self.features)

    def usage_limit(self, feature: str) -> Optional[int]:
        return self.limits.limit_for(feature)

    def has_unlimited_usage(self, feature: str) -> bool:
        return self.limits.limit_for(feature) == UNLIMITED
