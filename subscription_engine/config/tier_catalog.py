"""
Tier catalog loading.

The catalog is built once at startup, from a YAML/JSON document or the
built-in reference configuration, and passed into the engine as an
immutable value. Every validation problem surfaces here as a
``ConfigurationError``, never later at request time.
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError, model_validator

from subscription_engine.core.constants import UNLIMITED
from subscription_engine.core.exceptions import ConfigurationError
from subscription_engine.core.logging import get_logger, log_execution_time
from subscription_engine.schemas.common.base import FrozenSchema
from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionTier
from subscription_engine.schemas.subscription.tier import (
    SubscriptionLimits,
    TierDefinition,
    TierPricing,
)

logger = get_logger(__name__)


class TierCatalog(FrozenSchema):
    """Immutable tier -> definition lookup covering every tier."""

    tiers: Dict[SubscriptionTier, TierDefinition]
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")

    @model_validator(mode="after")
    def validate_complete(self) -> "TierCatalog":
        missing = [t.value for t in SubscriptionTier if t not in self.tiers]
        if missing:
            raise ValueError(f"Tier catalog is missing tiers: {', '.join(missing)}")
        for key, definition in self.tiers.items():
            if definition.tier != key:
                raise ValueError(
                    f"Tier catalog entry '{key.value}' declares tier '{definition.tier.value}'"
                )
        return self

    def get(self, tier: SubscriptionTier) -> TierDefinition:
        return self.tiers[tier]

    def price(self, tier: SubscriptionTier, cycle: BillingCycle) -> Decimal:
        return self.tiers[tier].pricing.price_for(cycle)

    def monthly_price(self, tier: SubscriptionTier) -> Decimal:
        return self.tiers[tier].pricing.monthly

    def limits(self, tier: SubscriptionTier) -> SubscriptionLimits:
        return self.tiers[tier].limits

    def usage_limit(self, tier: SubscriptionTier, feature: str) -> Optional[int]:
        return self.tiers[tier].usage_limit(feature)

    def display_name(self, tier: SubscriptionTier) -> str:
        return self.tiers[tier].display_name


# Reference configuration
REFERENCE_TIERS: Dict[str, Dict[str, Any]] = {
    "free": {
        "display_name": "Free",
        "description": "Basic market data and portfolio tracking",
        "pricing": {"monthly": "0.00", "quarterly": "0.00", "annual": "0.00"},
        "features": [
            "Basic market data",
            "Portfolio tracking",
            "Watchlists",
            "Price alerts",
            "Community support",
        ],
        "limits": {
            "max_watchlists": 5,
            "max_alerts": 10,
            "api_calls_per_day": 1000,
            "max_portfolios": 3,
            "ai_analysis_per_month": 0,
            "max_sub_accounts": 0,
            "max_custom_indicators": 0,
            "data_retention_days": 30,
            "max_websocket_connections": 1,
        },
    },
    "pro": {
        "display_name": "Pro",
        "description": "Real-time data and advanced charting for active traders",
        "pricing": {"monthly": "29.99", "quarterly": "79.99", "annual": "299.99"},
        "features": [
            "Real-time market data",
            "Advanced charting",
            "Custom indicators",
            "Portfolio analytics",
            "Email support",
        ],
        "limits": {
            "max_watchlists": 25,
            "max_alerts": 100,
            "api_calls_per_day": 10000,
            "max_portfolios": 10,
            "ai_analysis_per_month": 0,
            "max_sub_accounts": 0,
            "max_custom_indicators": 5,
            "data_retention_days": 365,
            "max_websocket_connections": 3,
        },
    },
    "ai_premium": {
        "display_name": "AI Premium",
        "description": "AI-driven market analysis and insights",
        "pricing": {"monthly": "99.99", "quarterly": "269.99", "annual": "999.99"},
        "features": [
            "Real-time market data",
            "Advanced charting",
            "Custom indicators",
            "AI market analysis",
            "AI insights",
            "Priority support",
        ],
        "limits": {
            "max_watchlists": 100,
            "max_alerts": 500,
            "api_calls_per_day": 50000,
            "max_portfolios": 50,
            "ai_analysis_per_month": 1000,
            "max_sub_accounts": 0,
            "max_custom_indicators": 25,
            "data_retention_days": 1095,
            "max_websocket_connections": 10,
        },
    },
    "institutional": {
        "display_name": "Institutional",
        "description": "Unlimited access for funds and trading desks",
        "pricing": {"monthly": "299.99", "quarterly": "809.99", "annual": "2999.99"},
        "features": [
            "Real-time market data",
            "Advanced charting",
            "Custom indicators",
            "AI market analysis",
            "AI insights",
            "Sub-accounts",
            "Unlimited API access",
            "Dedicated account manager",
        ],
        "limits": {
            "max_watchlists": UNLIMITED,
            "max_alerts": UNLIMITED,
            "api_calls_per_day": UNLIMITED,
            "max_portfolios": UNLIMITED,
            "ai_analysis_per_month": UNLIMITED,
            "max_sub_accounts": UNLIMITED,
            "max_custom_indicators": UNLIMITED,
            "data_retention_days": UNLIMITED,
            "max_websocket_connections": UNLIMITED,
        },
    },
}


def build_tier_catalog(document: Dict[str, Any], currency: str = "USD") -> TierCatalog:
    """
    Build a catalog from a mapping of tier name -> tier entry.

    Raises:
        ConfigurationError: If a tier is missing or any entry is invalid
    """
    if not isinstance(document, dict):
        raise ConfigurationError("Tier catalog document must be a mapping")

    entries = document.get("tiers", document)
    currency = document.get("currency", currency)

    tiers: Dict[SubscriptionTier, TierDefinition] = {}
    try:
        for name, entry in entries.items():
            try:
                tier = SubscriptionTier(str(name).strip().lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown tier '{name}' in tier catalog",
                    {"tier": str(name)},
                )
            tiers[tier] = TierDefinition(
                tier=tier,
                display_name=entry.get("display_name", tier.value),
                description=entry.get("description", ""),
                pricing=TierPricing(**entry.get("pricing", {})),
                features=list(entry.get("features", [])),
                limits=SubscriptionLimits(**entry.get("limits", {})),
            )
        catalog = TierCatalog(tiers=tiers, currency=currency)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid tier catalog",
            {"errors": [err["msg"] for err in e.errors()]},
        ) from e
    except (AttributeError, TypeError) as e:
        raise ConfigurationError(f"Malformed tier catalog entry: {e}") from e

    return catalog


def reference_catalog(currency: str = "USD") -> TierCatalog:
    """The built-in reference catalog."""
    return build_tier_catalog(REFERENCE_TIERS, currency=currency)


@log_execution_time()
def load_tier_catalog(
    path: Optional[Union[str, Path]] = None,
    currency: str = "USD",
) -> TierCatalog:
    """
    Load the tier catalog from a YAML or JSON file.

    Args:
        path: Catalog file; the reference catalog is used when None
        currency: Default currency when the document does not name one

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    if path is None:
        catalog = reference_catalog(currency=currency)
        logger.info("Loaded reference tier catalog", extra={"tier_count": len(catalog.tiers)})
        return catalog

    catalog_path = Path(path)
    if not catalog_path.exists():
        raise ConfigurationError(
            f"Tier catalog file not found: {catalog_path}",
            {"path": str(catalog_path)},
        )

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            if catalog_path.suffix.lower() == ".json":
                document = json.load(f)
            else:
                document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Failed to read tier catalog from {catalog_path}: {e}",
            {"path": str(catalog_path)},
        ) from e

    catalog = build_tier_catalog(document or {}, currency=currency)
    logger.info(
        f"Loaded tier catalog from {catalog_path}",
        extra={"tier_count": len(catalog.tiers)},
    )
    return catalog
