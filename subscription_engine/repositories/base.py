"""
Persistence gateway contracts.

The engine never calls these; they define the snapshot/verdict contract
the calling service layer relies on. ``save_subscription`` is an
optimistic-lock write: it must reject a snapshot whose version no longer
matches the stored row, and bump the version on success.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from subscription_engine.schemas.subscription.history import SubscriptionHistory
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.schemas.subscription.usage import UsageTracking


class SubscriptionGateway(ABC):
    """Load and save subscription aggregates."""

    @abstractmethod
    def load_subscription(self, subscription_id: UUID) -> Subscription:
        """
        Raises:
            RecordNotFoundError: If no such subscription exists
        """

    @abstractmethod
    def save_subscription(
        self,
        subscription: Subscription,
        expected_version: Optional[int] = None,
    ) -> Subscription:
        """
        Persist a snapshot and return it with its new version.

        Raises:
            StaleSnapshotError: If the stored version differs from expected_version
        """


class UsageGateway(ABC):
    """Usage rows, unique per (user, feature, period start)."""

    @abstractmethod
    def find_usage(
        self,
        user_id: UUID,
        feature: str,
        period_start: Optional[datetime] = None,
    ) -> Optional[UsageTracking]:
        """Row for the given period, or the latest period when none is given."""

    @abstractmethod
    def save_usage(self, usage: UsageTracking) -> UsageTracking:
        """
        Insert or replace a usage row.

        Raises:
            DuplicateRecordError: If a different row already holds the same period key
        """

    @abstractmethod
    def list_usage(self, user_id: UUID) -> List[UsageTracking]:
        """All usage rows for a user."""


class HistoryGateway(ABC):
    """Append-only audit trail."""

    @abstractmethod
    def append_history(self, record: SubscriptionHistory) -> SubscriptionHistory:
        """Append one record; records are never updated or deleted."""

    @abstractmethod
    def list_history(self, subscription_id: UUID) -> List[SubscriptionHistory]:
        """Records for a subscription, oldest first."""


__all__ = ["SubscriptionGateway", "UsageGateway", "HistoryGateway"]
