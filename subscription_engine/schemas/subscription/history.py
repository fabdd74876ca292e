"""
Subscription audit trail schema.

Append-only snapshot diff describing one subscription change. Derived
classification lives in ``services.subscription.history_projection``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import Field

from subscription_engine.schemas.common.base import FrozenSchema
from subscription_engine.schemas.common.enums import (
    BillingCycle,
    ChangeInitiator,
    SubscriptionChangeType,
    SubscriptionStatus,
    SubscriptionTier,
)

__all__ = ["SubscriptionHistory"]


class SubscriptionHistory(FrozenSchema):
    """Immutable audit record for one subscription change."""

    id: UUID = Field(default_factory=uuid4)
    subscription_id: UUID
    user_id: UUID
    change_type: SubscriptionChangeType

    old_tier: Optional[SubscriptionTier] = None
    new_tier: Optional[SubscriptionTier] = None
    old_status: Optional[SubscriptionStatus] = None
    new_status: Optional[SubscriptionStatus] = None
    old_billing_cycle: Optional[BillingCycle] = None
    new_billing_cycle: Optional[BillingCycle] = None
    old_monthly_price: Optional[Decimal] = None
    new_monthly_price: Optional[Decimal] = None
    old_billing_amount: Optional[Decimal] = None
    new_billing_amount: Optional[Decimal] = None

    change_reason: Optional[str] = Field(None, max_length=500)
    initiated_by: ChangeInitiator = ChangeInitiator.SYSTEM
    changed_by_user_id: Optional[UUID] = None
    payment_transaction_id: Optional[UUID] = None

    effective_date: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)
