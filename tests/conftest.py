"""
Shared fixtures for the subscription engine test suite.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from subscription_engine.config.settings import Settings
from subscription_engine.config.tier_catalog import reference_catalog
from subscription_engine.core.clock import FixedClock
from subscription_engine.schemas.common.enums import BillingCycle, SubscriptionTier
from subscription_engine.schemas.subscription.usage import UsageTracking
from subscription_engine.services.subscription.engine import SubscriptionEngine

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def catalog():
    return reference_catalog()


@pytest.fixture
def engine(catalog, clock, settings):
    return SubscriptionEngine(catalog, clock=clock, settings=settings)


@pytest.fixture
def lifecycle(engine):
    return engine.lifecycle


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def pro_subscription(lifecycle, user_id):
    """A freshly created PENDING PRO/MONTHLY subscription."""
    return lifecycle.new_subscription(user_id, SubscriptionTier.PRO, BillingCycle.MONTHLY).unwrap()


@pytest.fixture
def active_subscription(lifecycle, pro_subscription):
    return lifecycle.activate(pro_subscription).unwrap()


@pytest.fixture
def make_usage(user_id):
    """Factory for usage rows with a 30-day period starting at NOW."""

    def _make(count=0, limit=100, feature="watchlists", **overrides):
        values = dict(
            user_id=user_id,
            subscription_id=overrides.pop("subscription_id", uuid4()),
            feature=feature,
            usage_count=count,
            usage_limit=limit,
            period_start=NOW,
            period_end=NOW + timedelta(days=30),
            reset_date=NOW + timedelta(days=30),
            reset_frequency_days=30,
        )
        values.update(overrides)
        return UsageTracking(**values)

    return _make
