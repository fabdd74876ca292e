"""
In-memory persistence gateway.

Reference implementation of the gateway contracts: enforces the version
counter on subscriptions and one usage row per (user, feature, period
start). Used by tests and as a template for real adapters.
"""

from datetime import datetime
from threading import RLock
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from subscription_engine.core.exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    StaleSnapshotError,
)
from subscription_engine.core.logging import get_logger
from subscription_engine.repositories.base import (
    HistoryGateway,
    SubscriptionGateway,
    UsageGateway,
)
from subscription_engine.schemas.subscription.history import SubscriptionHistory
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.schemas.subscription.usage import UsageTracking

logger = get_logger(__name__)


class InMemoryGateway(SubscriptionGateway, UsageGateway, HistoryGateway):
    """Dictionary-backed gateway for subscriptions, usage and history."""

    def __init__(self):
        self._lock = RLock()
        self._subscriptions: Dict[UUID, Subscription] = {}
        self._usage: Dict[Tuple[UUID, str, datetime], UsageTracking] = {}
        self._history: List[SubscriptionHistory] = []

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def load_subscription(self, subscription_id: UUID) -> Subscription:
        with self._lock:
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                raise RecordNotFoundError("Subscription", subscription_id)
            return subscription

    def save_subscription(
        self,
        subscription: Subscription,
        expected_version: Optional[int] = None,
    ) -> Subscription:
        with self._lock:
            stored = self._subscriptions.get(subscription.id)
            if stored is not None:
                expected = subscription.version if expected_version is None else expected_version
                if stored.version != expected:
                    raise StaleSnapshotError(subscription.id, expected, stored.version)
                new_version = stored.version + 1
            else:
                new_version = subscription.version

            saved = subscription.model_copy(update={"version": new_version})
            self._subscriptions[saved.id] = saved
            logger.debug(
                "Subscription saved",
                extra={"subscription_ref": str(saved.id), "version": new_version},
            )
            return saved

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    def find_usage(
        self,
        user_id: UUID,
        feature: str,
        period_start: Optional[datetime] = None,
    ) -> Optional[UsageTracking]:
        feature = feature.strip().lower()
        with self._lock:
            if period_start is not None:
                return self._usage.get((user_id, feature, period_start))
            rows = [
                row for (uid, name, _), row in self._usage.items()
                if uid == user_id and name == feature
            ]
            return max(rows, key=lambda row: row.period_start) if rows else None

    def save_usage(self, usage: UsageTracking) -> UsageTracking:
        with self._lock:
            existing = self._usage.get(usage.period_key)
            if existing is not None and existing.id != usage.id:
                raise DuplicateRecordError(
                    "Usage row already exists for this period",
                    {
                        "user_id": str(usage.user_id),
                        "feature": usage.feature,
                        "period_start": usage.period_start.isoformat(),
                    },
                )

            # A reset moves period_start, so the row is re-keyed under its new period
            for key, row in list(self._usage.items()):
                if row.id == usage.id and key != usage.period_key:
                    del self._usage[key]
            self._usage[usage.period_key] = usage
            return usage

    def list_usage(self, user_id: UUID) -> List[UsageTracking]:
        with self._lock:
            return sorted(
                (row for row in self._usage.values() if row.user_id == user_id),
                key=lambda row: (row.feature, row.period_start),
            )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def append_history(self, record: SubscriptionHistory) -> SubscriptionHistory:
        with self._lock:
            self._history.append(record)
            return record

    def list_history(self, subscription_id: UUID) -> List[SubscriptionHistory]:
        with self._lock:
            return [r for r in self._history if r.subscription_id == subscription_id]


__all__ = ["InMemoryGateway"]
