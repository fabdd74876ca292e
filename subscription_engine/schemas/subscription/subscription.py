"""
Subscription aggregate snapshot.

The engine reads these snapshots and hands back updated copies; it never
assigns to an instance it was given. ``version`` is the optimistic-lock
counter owned by the persistence gateway.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from subscription_engine.schemas.common.base import BaseSchema
from subscription_engine.schemas.common.enums import (
    BillingCycle,
    SubscriptionStatus,
    SubscriptionTier,
)

__all__ = ["Subscription"]


class Subscription(BaseSchema):
    """
    A user's subscription to one tier.

    ``billing_amount`` is always derived from the tier's price table for
    ``billing_cycle`` and ``promotion_discount``; it is never set on its own.
    """

    id: UUID = Field(default_factory=uuid4, description="Subscription ID")
    user_id: UUID = Field(..., description="Owning user ID")

    tier: SubscriptionTier
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    pending_tier: Optional[SubscriptionTier] = Field(
        None, description="Target tier while an upgrade/downgrade is pending"
    )

    # Pricing
    monthly_price: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"))
    billing_amount: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"))
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        pattern=r"^[A-Z]{3}$",
        description="ISO 4217 currency code",
    )
    promotion_discount: Decimal = Field(
        default=Decimal("0"), ge=Decimal("0"), le=Decimal("1")
    )
    promotion_code: Optional[str] = Field(None, max_length=50)

    # Dates
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None

    # Billing state
    failed_billing_attempts: int = Field(default=0, ge=0)
    auto_renewal: bool = True

    # Cancellation
    cancellation_reason: Optional[str] = Field(None, max_length=500)
    cancelled_at: Optional[datetime] = None

    # Payment gateway correlation
    payment_method_id: Optional[UUID] = None
    gateway_customer_id: Optional[str] = None
    gateway_subscription_id: Optional[str] = None

    # Audit timestamps
    activated_date: Optional[datetime] = None
    upgraded_date: Optional[datetime] = None
    last_billed_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return str(v).strip().upper()

    @property
    def has_promotion(self) -> bool:
        return self.promotion_discount > 0
