"""
Enumerations shared across the subscription engine.

Per-variant behaviour (transition tables, cycle terms, warning thresholds)
lives in lookup tables keyed by these enums inside the service modules;
the enums themselves only carry identity, ordering and display labels.
"""

from enum import Enum

__all__ = [
    "SubscriptionTier",
    "SubscriptionStatus",
    "BillingCycle",
    "UsageWarningLevel",
    "SubscriptionChangeType",
    "ChangeInitiator",
]


class SubscriptionTier(str, Enum):
    """Subscription tiers, declared in upgrade-path order."""

    FREE = "free"
    PRO = "pro"
    AI_PREMIUM = "ai_premium"
    INSTITUTIONAL = "institutional"

    @property
    def rank(self) -> int:
        """Position on the upgrade path (FREE == 0)."""
        return _TIER_ORDER.index(self)

    def can_upgrade_to(self, target: "SubscriptionTier") -> bool:
        return self.rank < target.rank

    def can_downgrade_to(self, target: "SubscriptionTier") -> bool:
        return self.rank > target.rank

    @property
    def next_tier(self) -> "SubscriptionTier":
        """Next higher tier, or self at the top of the path."""
        return _TIER_ORDER[min(self.rank + 1, len(_TIER_ORDER) - 1)]

    @property
    def previous_tier(self) -> "SubscriptionTier":
        """Next lower tier, or self at the bottom of the path."""
        return _TIER_ORDER[max(self.rank - 1, 0)]

    # str's lexical ordering must not leak into tier comparisons
    def __lt__(self, other):
        if isinstance(other, SubscriptionTier):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, SubscriptionTier):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, SubscriptionTier):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, SubscriptionTier):
            return self.rank >= other.rank
        return NotImplemented


_TIER_ORDER = list(SubscriptionTier)


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    PENDING = "pending"
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    PAYMENT_FAILED = "payment_failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"
    UPGRADE_PENDING = "upgrade_pending"
    DOWNGRADE_PENDING = "downgrade_pending"
    TERMINATED = "terminated"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class BillingCycle(str, Enum):
    """Billing cycle."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"

    @property
    def display_name(self) -> str:
        return self.value.title()


class UsageWarningLevel(str, Enum):
    """Usage warning levels, ordered by severity."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SubscriptionChangeType(str, Enum):
    """Kind of change recorded in the subscription audit trail."""

    CREATED = "created"
    ACTIVATED = "activated"
    UPGRADED = "upgraded"
    DOWNGRADED = "downgraded"
    BILLING_CYCLE_CHANGED = "billing_cycle_changed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    TERMINATED = "terminated"
    REACTIVATED = "reactivated"
    PAUSED = "paused"
    RESUMED = "resumed"
    TRIAL_STARTED = "trial_started"
    TRIAL_ENDED = "trial_ended"
    EXPIRED = "expired"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    AUTO_RENEWAL_ENABLED = "auto_renewal_enabled"
    AUTO_RENEWAL_DISABLED = "auto_renewal_disabled"
    PRICE_CHANGED = "price_changed"
    PROMOTION_APPLIED = "promotion_applied"
    PROMOTION_REMOVED = "promotion_removed"

    @property
    def display_name(self) -> str:
        return _CHANGE_TYPE_LABELS[self]


_CHANGE_TYPE_LABELS = {
    SubscriptionChangeType.CREATED: "Subscription Created",
    SubscriptionChangeType.ACTIVATED: "Subscription Activated",
    SubscriptionChangeType.UPGRADED: "Tier Upgraded",
    SubscriptionChangeType.DOWNGRADED: "Tier Downgraded",
    SubscriptionChangeType.BILLING_CYCLE_CHANGED: "Billing Cycle Changed",
    SubscriptionChangeType.SUSPENDED: "Subscription Suspended",
    SubscriptionChangeType.CANCELLED: "Subscription Cancelled",
    SubscriptionChangeType.TERMINATED: "Subscription Terminated",
    SubscriptionChangeType.REACTIVATED: "Subscription Reactivated",
    SubscriptionChangeType.PAUSED: "Subscription Paused",
    SubscriptionChangeType.RESUMED: "Subscription Resumed",
    SubscriptionChangeType.TRIAL_STARTED: "Trial Started",
    SubscriptionChangeType.TRIAL_ENDED: "Trial Ended",
    SubscriptionChangeType.EXPIRED: "Subscription Expired",
    SubscriptionChangeType.PAYMENT_FAILED: "Payment Failed",
    SubscriptionChangeType.PAYMENT_SUCCEEDED: "Payment Succeeded",
    SubscriptionChangeType.AUTO_RENEWAL_ENABLED: "Auto-Renewal Enabled",
    SubscriptionChangeType.AUTO_RENEWAL_DISABLED: "Auto-Renewal Disabled",
    SubscriptionChangeType.PRICE_CHANGED: "Price Changed",
    SubscriptionChangeType.PROMOTION_APPLIED: "Promotion Applied",
    SubscriptionChangeType.PROMOTION_REMOVED: "Promotion Removed",
}


class ChangeInitiator(str, Enum):
    """Who or what initiated a subscription change."""

    USER = "user"
    SYSTEM = "system"
    ADMIN = "admin"
    PAYMENT_GATEWAY = "payment_gateway"
    SCHEDULED_TASK = "scheduled_task"

    @property
    def display_name(self) -> str:
        return {
            ChangeInitiator.USER: "User Action",
            ChangeInitiator.SYSTEM: "System Automated",
            ChangeInitiator.ADMIN: "Administrator",
            ChangeInitiator.PAYMENT_GATEWAY: "Payment Gateway",
            ChangeInitiator.SCHEDULED_TASK: "Scheduled Task",
        }[self]
