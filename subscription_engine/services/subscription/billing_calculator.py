"""
Billing Calculator

Maps (tier, billing cycle) to the amount charged per cycle.

- Standard strategy: the catalog's list price for the pair
- Promotional strategy: standard amount reduced by the promotional discount
- Billing-cycle terms: months per cycle, reference discount, next billing date

Quarterly and annual amounts are always the catalog's own list prices,
never recomputed from the monthly price. Money is Decimal, two places,
rounded half-up.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from subscription_engine.config.tier_catalog import TierCatalog
from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionTier
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.services.base.errors import ArithmeticInconsistency
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.utils.datetime_utils import DateTimeHelper
from subscription_engine.utils.money import ZERO, apply_discount, is_valid_amount, to_money


@dataclass(frozen=True)
class CycleTerms:
    """Constants attached to a billing cycle."""
    months: int
    discount_percentage: Decimal


CYCLE_TERMS: Dict[BillingCycle, CycleTerms] = {
    BillingCycle.MONTHLY: CycleTerms(months=1, discount_percentage=Decimal("0")),
    BillingCycle.QUARTERLY: CycleTerms(months=3, discount_percentage=Decimal("0.06")),
    BillingCycle.ANNUAL: CycleTerms(months=12, discount_percentage=Decimal("0.17")),
}


# -------------------------------------------------------------------------
# Billing-cycle helpers (display and comparison, not charging)
# -------------------------------------------------------------------------

def months_in(cycle: BillingCycle) -> int:
    return CYCLE_TERMS[cycle].months


def discount_percentage(cycle: BillingCycle) -> Decimal:
    return CYCLE_TERMS[cycle].discount_percentage


def has_discount(cycle: BillingCycle) -> bool:
    return CYCLE_TERMS[cycle].discount_percentage > 0


def discount_multiplier(cycle: BillingCycle) -> Decimal:
    return Decimal("1") - CYCLE_TERMS[cycle].discount_percentage


def is_long_term(cycle: BillingCycle) -> bool:
    return cycle in (BillingCycle.QUARTERLY, BillingCycle.ANNUAL)


def next_billing_date(cycle: BillingCycle, from_date: datetime) -> datetime:
    """Advance by 1, 3 or 12 calendar months."""
    return DateTimeHelper.add_months(from_date, CYCLE_TERMS[cycle].months)


def calculate_total_price(cycle: BillingCycle, monthly_price: Decimal) -> Decimal:
    """Reference total for one cycle: monthly x months x discount multiplier."""
    return to_money(monthly_price * months_in(cycle) * discount_multiplier(cycle))


def effective_monthly_price(cycle: BillingCycle, monthly_price: Decimal) -> Decimal:
    return to_money(calculate_total_price(cycle, monthly_price) / months_in(cycle))


def monthly_savings(cycle: BillingCycle, monthly_price: Decimal) -> Decimal:
    return to_money(monthly_price - effective_monthly_price(cycle, monthly_price))


def total_savings(cycle: BillingCycle, monthly_price: Decimal) -> Decimal:
    return to_money(monthly_savings(cycle, monthly_price) * months_in(cycle))


def recommended_cycle(savings_threshold: Decimal) -> BillingCycle:
    """Cycle with the largest discount at or above the threshold, else MONTHLY."""
    eligible = [c for c in BillingCycle if discount_percentage(c) >= savings_threshold]
    if not eligible:
        return BillingCycle.MONTHLY
    return max(eligible, key=discount_percentage)


# -------------------------------------------------------------------------
# Strategies
# -------------------------------------------------------------------------

class BillingCalculationStrategy(ABC):
    """Computes the per-cycle charge for a tier."""

    @abstractmethod
    def calculate_amount(
        self,
        tier: SubscriptionTier,
        cycle: BillingCycle,
    ) -> Result[Decimal, ArithmeticInconsistency]:
        """Amount charged per ``cycle`` for ``tier``."""

    @property
    def strategy_name(self) -> str:
        return self.__class__.__name__


class StandardBillingStrategy(BillingCalculationStrategy):
    """Catalog list price for the (tier, cycle) pair."""

    def __init__(self, catalog: TierCatalog):
        self.catalog = catalog

    def calculate_amount(self, tier, cycle):
        if tier == SubscriptionTier.FREE:
            return Success(ZERO)
        amount = self.catalog.price(tier, cycle)
        if not is_valid_amount(amount):
            return Failure(
                ArithmeticInconsistency(operation="standard_price_lookup", amount=str(amount))
            )
        return Success(to_money(amount))

    @property
    def strategy_name(self) -> str:
        return "Standard Billing Strategy"


class PromotionalBillingStrategy(BillingCalculationStrategy):
    """Standard amount multiplied by ``1 - discount``; FREE is never discounted."""

    def __init__(self, catalog: TierCatalog, discount: Decimal):
        self.base = StandardBillingStrategy(catalog)
        self.discount = discount

    def calculate_amount(self, tier, cycle):
        return self.base.calculate_amount(tier, cycle).flat_map(
            lambda amount: self._discounted(tier, amount)
        )

    def _discounted(self, tier: SubscriptionTier, amount: Decimal) -> Result[Decimal, ArithmeticInconsistency]:
        if tier == SubscriptionTier.FREE or amount == ZERO:
            return Success(amount)
        discounted = apply_discount(amount, self.discount)
        if not is_valid_amount(discounted):
            return Failure(
                ArithmeticInconsistency(operation="promotional_discount", amount=str(discounted))
            )
        return Success(discounted)

    @property
    def strategy_name(self) -> str:
        percent = (self.discount * 100).normalize()
        return f"Promotional Billing Strategy ({percent:f}% Discount)"


class BillingCalculator:
    """
    Picks a strategy and prices subscriptions.

    ``price_subscription`` re-derives ``monthly_price`` and
    ``billing_amount`` from the catalog; callers never set them directly.
    """

    def __init__(self, catalog: TierCatalog, promotional_discount: Decimal):
        self.catalog = catalog
        self.promotional_discount = promotional_discount
        self.standard = StandardBillingStrategy(catalog)
        self.promotional = PromotionalBillingStrategy(catalog, promotional_discount)
        self._logger = get_logger(self.__class__.__name__)

    def strategy_for(self, promotion_active: bool) -> BillingCalculationStrategy:
        return self.promotional if promotion_active else self.standard

    def calculate_billing_amount(
        self,
        tier: SubscriptionTier,
        cycle: BillingCycle,
        promotion_active: bool = False,
    ) -> Result[Decimal, ArithmeticInconsistency]:
        strategy = self.strategy_for(promotion_active)
        result = strategy.calculate_amount(tier, cycle)
        if result.is_success:
            self._logger.debug(
                "Billing amount calculated",
                extra={
                    "tier": tier.value,
                    "billing_cycle": cycle.value,
                    "strategy": strategy.strategy_name,
                    "amount": str(result.unwrap()),
                },
            )
        return result

    def price_subscription(
        self,
        subscription: Subscription,
        tier: Optional[SubscriptionTier] = None,
        cycle: Optional[BillingCycle] = None,
        promotion_discount: Optional[Decimal] = None,
    ) -> Result[Subscription, ArithmeticInconsistency]:
        """
        Return a copy priced for the given (or current) tier, cycle and promotion.

        The subscription's own ``promotion_discount`` applies the same way
        the promotional strategy does: only to a nonzero base amount.
        """
        tier = tier if tier is not None else subscription.tier
        cycle = cycle if cycle is not None else subscription.billing_cycle
        discount = (
            promotion_discount if promotion_discount is not None
            else subscription.promotion_discount
        )
        # model_copy skips field validation, so the [0, 1] bound is checked here
        if not discount.is_finite() or not ZERO <= discount <= 1:
            return Failure(
                ArithmeticInconsistency(operation="promotion_discount", amount=str(discount))
            )

        def priced(base: Decimal) -> Result[Subscription, ArithmeticInconsistency]:
            amount = base
            if discount > 0 and base != ZERO:
                amount = apply_discount(base, discount)
            if not is_valid_amount(amount):
                return Failure(
                    ArithmeticInconsistency(operation="price_subscription", amount=str(amount))
                )
            monthly = ZERO if tier == SubscriptionTier.FREE else to_money(self.catalog.monthly_price(tier))
            return Success(subscription.model_copy(update={
                "tier": tier,
                "billing_cycle": cycle,
                "promotion_discount": discount,
                "monthly_price": monthly,
                "billing_amount": amount,
            }))

        return self.standard.calculate_amount(tier, cycle).flat_map(priced)


__all__ = [
    "CycleTerms",
    "CYCLE_TERMS",
    "months_in",
    "discount_percentage",
    "has_discount",
    "discount_multiplier",
    "is_long_term",
    "next_billing_date",
    "calculate_total_price",
    "effective_monthly_price",
    "monthly_savings",
    "total_savings",
    "recommended_cycle",
    "BillingCalculationStrategy",
    "StandardBillingStrategy",
    "PromotionalBillingStrategy",
    "BillingCalculator",
]
