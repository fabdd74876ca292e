"""
Tests for billing amounts, cycle terms and subscription pricing.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionTier
from subscription_engine.services.base.errors import ArithmeticInconsistency
from subscription_engine.services.subscription.billing_calculator import (
    CYCLE_TERMS,
    BillingCalculator,
    PromotionalBillingStrategy,
    StandardBillingStrategy,
    calculate_total_price,
    discount_multiplier,
    effective_monthly_price,
    has_discount,
    is_long_term,
    monthly_savings,
    months_in,
    next_billing_date,
    recommended_cycle,
    total_savings,
)


@pytest.fixture
def calculator(catalog):
    return BillingCalculator(catalog, Decimal("0.20"))


class TestCycleTerms:
    """Test the billing-cycle lookup table and helpers."""

    def test_every_cycle_has_terms(self):
        assert set(CYCLE_TERMS) == set(BillingCycle)

    def test_months_and_discounts(self):
        assert [months_in(c) for c in BillingCycle] == [1, 3, 12]
        assert discount_multiplier(BillingCycle.MONTHLY) == Decimal("1")
        assert discount_multiplier(BillingCycle.QUARTERLY) == Decimal("0.94")
        assert discount_multiplier(BillingCycle.ANNUAL) == Decimal("0.83")
        assert not has_discount(BillingCycle.MONTHLY)
        assert has_discount(BillingCycle.ANNUAL)

    def test_long_term(self):
        assert not is_long_term(BillingCycle.MONTHLY)
        assert is_long_term(BillingCycle.QUARTERLY)
        assert is_long_term(BillingCycle.ANNUAL)

    def test_reference_totals_and_savings(self):
        monthly = Decimal("29.99")

        assert calculate_total_price(BillingCycle.MONTHLY, monthly) == Decimal("29.99")
        assert calculate_total_price(BillingCycle.QUARTERLY, monthly) == Decimal("84.57")
        assert calculate_total_price(BillingCycle.ANNUAL, monthly) == Decimal("298.70")
        assert effective_monthly_price(BillingCycle.ANNUAL, monthly) == Decimal("24.89")
        assert monthly_savings(BillingCycle.ANNUAL, monthly) == Decimal("5.10")
        assert total_savings(BillingCycle.ANNUAL, monthly) == Decimal("61.20")
        assert total_savings(BillingCycle.MONTHLY, monthly) == Decimal("0.00")

    def test_recommended_cycle(self):
        assert recommended_cycle(Decimal("0.05")) is BillingCycle.ANNUAL
        assert recommended_cycle(Decimal("0.17")) is BillingCycle.ANNUAL
        assert recommended_cycle(Decimal("0.50")) is BillingCycle.MONTHLY


class TestNextBillingDate:
    """Test calendar-month arithmetic."""

    def test_monthly_clamps_to_short_month(self):
        start = datetime(2024, 1, 31, 9, 30, tzinfo=timezone.utc)
        assert next_billing_date(BillingCycle.MONTHLY, start) == datetime(2024, 2, 29, 9, 30, tzinfo=timezone.utc)

    def test_quarterly(self):
        start = datetime(2024, 11, 30, tzinfo=timezone.utc)
        assert next_billing_date(BillingCycle.QUARTERLY, start) == datetime(2025, 2, 28, tzinfo=timezone.utc)

    def test_annual_from_leap_day(self):
        start = datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert next_billing_date(BillingCycle.ANNUAL, start) == datetime(2025, 2, 28, tzinfo=timezone.utc)

    def test_preserves_timezone(self):
        start = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert next_billing_date(BillingCycle.MONTHLY, start).tzinfo is timezone.utc


class TestBillingStrategies:
    """Test standard and promotional strategies."""

    @pytest.mark.parametrize("cycle", list(BillingCycle))
    @pytest.mark.parametrize("promotion_active", [False, True])
    def test_free_is_always_zero(self, calculator, cycle, promotion_active):
        amount = calculator.calculate_billing_amount(
            SubscriptionTier.FREE, cycle, promotion_active
        ).unwrap()
        assert amount == Decimal("0.00")

    @pytest.mark.parametrize("cycle,expected", [
        (BillingCycle.MONTHLY, Decimal("29.99")),
        (BillingCycle.QUARTERLY, Decimal("79.99")),
        (BillingCycle.ANNUAL, Decimal("299.99")),
    ])
    def test_pro_uses_catalog_list_prices(self, calculator, cycle, expected):
        assert calculator.calculate_billing_amount(SubscriptionTier.PRO, cycle).unwrap() == expected

    def test_promotional_discount_rounds_half_up(self, calculator):
        assert calculator.calculate_billing_amount(
            SubscriptionTier.PRO, BillingCycle.MONTHLY, promotion_active=True
        ).unwrap() == Decimal("23.99")
        assert calculator.calculate_billing_amount(
            SubscriptionTier.AI_PREMIUM, BillingCycle.MONTHLY, promotion_active=True
        ).unwrap() == Decimal("79.99")

    def test_every_amount_is_two_place_decimal(self, calculator):
        for tier in SubscriptionTier:
            for cycle in BillingCycle:
                for promo in (False, True):
                    amount = calculator.calculate_billing_amount(tier, cycle, promo).unwrap()
                    assert isinstance(amount, Decimal)
                    assert amount >= 0
                    assert amount.as_tuple().exponent == -2

    def test_strategy_selection_and_names(self, calculator):
        assert isinstance(calculator.strategy_for(False), StandardBillingStrategy)
        assert isinstance(calculator.strategy_for(True), PromotionalBillingStrategy)
        assert calculator.strategy_for(False).strategy_name == "Standard Billing Strategy"
        assert calculator.strategy_for(True).strategy_name == "Promotional Billing Strategy (20% Discount)"


class TestPriceSubscription:
    """Test re-deriving stored prices on a subscription."""

    def test_new_subscription_is_priced(self, pro_subscription):
        assert pro_subscription.monthly_price == Decimal("29.99")
        assert pro_subscription.billing_amount == Decimal("29.99")

    def test_reprice_to_annual(self, calculator, pro_subscription):
        priced = calculator.price_subscription(pro_subscription, cycle=BillingCycle.ANNUAL).unwrap()

        assert priced.billing_cycle is BillingCycle.ANNUAL
        assert priced.monthly_price == Decimal("29.99")
        assert priced.billing_amount == Decimal("299.99")
        # original snapshot untouched
        assert pro_subscription.billing_cycle is BillingCycle.MONTHLY

    def test_reprice_with_discount(self, calculator, pro_subscription):
        priced = calculator.price_subscription(
            pro_subscription, promotion_discount=Decimal("0.20")
        ).unwrap()

        assert priced.promotion_discount == Decimal("0.20")
        assert priced.billing_amount == Decimal("23.99")
        assert priced.monthly_price == Decimal("29.99")

    def test_free_tier_ignores_discount(self, calculator, pro_subscription):
        priced = calculator.price_subscription(
            pro_subscription, tier=SubscriptionTier.FREE, promotion_discount=Decimal("0.50")
        ).unwrap()

        assert priced.tier is SubscriptionTier.FREE
        assert priced.monthly_price == Decimal("0.00")
        assert priced.billing_amount == Decimal("0.00")

    def test_negative_discount_is_rejected(self, calculator, pro_subscription):
        result = calculator.price_subscription(pro_subscription, promotion_discount=Decimal("-0.5"))

        assert result.is_failure
        assert isinstance(result.unwrap_error(), ArithmeticInconsistency)
        assert result.unwrap_error().amount == "-0.5"
