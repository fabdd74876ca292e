"""
Subscription Engine

The entry point the service layer calls. It wires the status machine,
billing calculator, usage tracker and history projection around one
immutable tier catalog and one injected clock.

Every operation returns a ``Result``. Expected business failures pass
through as-is; an unexpected exception at an operation boundary becomes
``Failure(UnexpectedFault)`` and is logged. The engine performs no I/O.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from uuid import UUID

from subscription_engine.config.settings import Settings, get_settings
from subscription_engine.config.tier_catalog import TierCatalog, load_tier_catalog
from subscription_engine.core.clock import Clock, SystemClock
from subscription_engine.core.logging import get_logger
from subscription_engine.schemas.common.enums import (
    BillingCycle,
    ChangeInitiator,
    SubscriptionChangeType,
    SubscriptionStatus,
    SubscriptionTier,
)
from subscription_engine.schemas.subscription.history import SubscriptionHistory
from subscription_engine.schemas.subscription.subscription import Subscription
from subscription_engine.schemas.subscription.usage import UsageTracking, UsageVerdict
from subscription_engine.services.base.error_handler import ErrorHandler
from subscription_engine.services.base.errors import EngineError, UnexpectedFault
from subscription_engine.services.base.result import Failure, Result, Success
from subscription_engine.services.subscription import billing_calculator
from subscription_engine.services.subscription.billing_calculator import BillingCalculator
from subscription_engine.services.subscription.history_projection import HistoryProjection
from subscription_engine.services.subscription.lifecycle_service import SubscriptionLifecycleService
from subscription_engine.services.subscription.status_machine import StatusMachine
from subscription_engine.services.subscription.usage_tracker import UsageKey, UsageTracker


# Lifecycle operations reachable through SubscriptionEngine.apply
LIFECYCLE_OPERATIONS = frozenset({
    "activate",
    "start_trial",
    "cancel",
    "suspend",
    "pause",
    "resume",
    "expire",
    "terminate",
    "request_tier_change",
    "complete_tier_change",
    "change_billing_cycle",
    "apply_promotion",
    "remove_promotion",
    "set_auto_renewal",
    "record_successful_billing",
    "record_failed_billing",
})


class SubscriptionEngine:
    """
    Business-rules engine for subscriptions.

    Args:
        catalog: Immutable tier catalog, built once at startup
        clock: Injected clock; defaults to the system clock in settings.TIMEZONE
        settings: Business-rule settings; defaults to the cached environment settings
    """

    def __init__(
        self,
        catalog: TierCatalog,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.clock = clock or SystemClock(self.settings.TIMEZONE)

        self.status_machine = StatusMachine()
        self.billing = BillingCalculator(catalog, self.settings.PROMOTIONAL_DISCOUNT_PERCENT)
        self.usage = UsageTracker(catalog, self.clock, self.settings.DEFAULT_RESET_FREQUENCY_DAYS)
        self.history = HistoryProjection(catalog, self.clock)
        self.lifecycle = SubscriptionLifecycleService(
            catalog,
            self.clock,
            self.settings,
            calculator=self.billing,
            status_machine=self.status_machine,
        )

        self._error_handler = ErrorHandler(self.__class__.__name__)
        self._logger = get_logger(self.__class__.__name__)
        self._logger.debug(
            "Subscription engine initialized",
            extra={"tier_count": len(catalog.tiers), "timezone": self.settings.TIMEZONE},
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> "SubscriptionEngine":
        """Load the catalog named by TIER_CATALOG_PATH (or the reference catalog)."""
        settings = settings or get_settings()
        catalog = load_tier_catalog(settings.TIER_CATALOG_PATH, currency=settings.DEFAULT_CURRENCY)
        return cls(catalog, clock=clock, settings=settings)

    # -------------------------------------------------------------------------
    # Boundary guard
    # -------------------------------------------------------------------------

    def _guard(self, operation: str, func: Callable[[], Result]) -> Result:
        try:
            result = func()
        except Exception as e:
            return self._error_handler.handle(e, operation)
        if result.is_failure and not isinstance(result.unwrap_error(), EngineError):
            # a mapper raised inside the pipeline
            return self._error_handler.handle(result.unwrap_error(), operation)
        return result

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def evaluate_transition(
        self,
        current: SubscriptionStatus,
        target: SubscriptionStatus,
    ) -> Result[None, EngineError]:
        return self._guard(
            "evaluate transition",
            lambda: self.status_machine.evaluate_transition(current, target),
        )

    # -------------------------------------------------------------------------
    # Billing
    # -------------------------------------------------------------------------

    def calculate_billing_amount(
        self,
        tier: SubscriptionTier,
        cycle: BillingCycle,
        promotion_active: bool = False,
    ) -> Result[Decimal, EngineError]:
        return self._guard(
            "calculate billing amount",
            lambda: self.billing.calculate_billing_amount(tier, cycle, promotion_active),
        )

    @staticmethod
    def next_billing_date(cycle: BillingCycle, from_date: datetime) -> datetime:
        return billing_calculator.next_billing_date(cycle, from_date)

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    def check_usage(self, usage: UsageTracking) -> Result[UsageVerdict, EngineError]:
        return self._guard("check usage", lambda: self.usage.check_usage(usage))

    def apply_usage_increment(
        self,
        usage: UsageTracking,
        amount: int = 1,
    ) -> Result[Tuple[UsageTracking, bool], EngineError]:
        return self._guard(
            "apply usage increment",
            lambda: self.usage.increment_usage(usage, amount),
        )

    def reset_usage_period(self, usage: UsageTracking) -> Result[UsageTracking, EngineError]:
        return self._guard(
            "reset usage period",
            lambda: Success(self.usage.reset_usage(usage)),
        )

    def update_usage_limit(self, usage: UsageTracking, new_limit: int) -> Result[UsageTracking, EngineError]:
        return self._guard(
            "update usage limit",
            lambda: self.usage.update_limit(usage, new_limit),
        )

    def default_usage(
        self,
        user_id: UUID,
        subscription_id: UUID,
        tier: SubscriptionTier,
        feature: str,
    ) -> Result[UsageTracking, EngineError]:
        return self._guard(
            "create default usage",
            lambda: self.usage.default_usage(user_id, subscription_id, tier, feature),
        )

    def build_usage_index(
        self,
        records: Iterable[UsageTracking],
    ) -> Result[Dict[UsageKey, UsageTracking], EngineError]:
        return self._guard("build usage index", lambda: self.usage.build_usage_index(records))

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def classify_change(
        self,
        old: Optional[Subscription],
        new: Subscription,
        change_type: Optional[SubscriptionChangeType] = None,
        reason: Optional[str] = None,
        initiated_by: ChangeInitiator = ChangeInitiator.SYSTEM,
        changed_by_user_id: Optional[UUID] = None,
    ) -> Result[SubscriptionHistory, EngineError]:
        return self._guard(
            "classify change",
            lambda: self.history.classify_change(
                old,
                new,
                change_type=change_type,
                reason=reason,
                initiated_by=initiated_by,
                changed_by_user_id=changed_by_user_id,
            ),
        )

    def describe_change(self, history: SubscriptionHistory) -> str:
        return self.history.change_description(history)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def apply(self, operation: str, subscription: Subscription, *args: Any, **kwargs: Any) -> Result[Subscription, EngineError]:
        """
        Run a named lifecycle operation under the boundary guard.

        Example:
            engine.apply("cancel", subscription, reason="Too expensive")
        """
        if operation not in LIFECYCLE_OPERATIONS:
            return Failure(UnexpectedFault(
                operation=operation,
                exception=AttributeError(f"Unknown lifecycle operation: {operation}"),
            ))
        handler = getattr(self.lifecycle, operation)
        return self._guard(operation.replace("_", " "), lambda: handler(subscription, *args, **kwargs))


__all__ = ["LIFECYCLE_OPERATIONS", "SubscriptionEngine"]
