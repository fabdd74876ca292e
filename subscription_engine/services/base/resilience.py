"""
Caller-side resilience policy.

Retry with exponential backoff and a circuit breaker, applied around the
*caller's* use of the engine and its persistence gateway. The engine
itself never retries; a rejected optimistic-lock write is retried here
with a freshly reloaded snapshot, never blindly reapplied.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from subscription_engine.config.settings import Settings, settings as default_settings
from subscription_engine.core.exceptions import CircuitOpenError, StaleSnapshotError
from subscription_engine.core.logging import get_logger, subscription_id as subscription_context
from subscription_engine.services.base.errors import ConcurrencyConflict, EngineError
from subscription_engine.services.base.result import Failure, Result

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retrying a failing call."""
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **overrides) -> "RetryPolicy":
        config = config or default_settings
        values = dict(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            backoff_seconds=config.RETRY_BACKOFF_SECONDS,
            backoff_multiplier=config.RETRY_BACKOFF_MULTIPLIER,
        )
        values.update(overrides)
        return cls(**values)

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Invoke ``func`` until it returns, retrying retryable exceptions.

        The last exception propagates once attempts are exhausted.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                # an open circuit already says "stop calling"
                if isinstance(e, CircuitOpenError):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        f"{getattr(func, '__name__', 'call')} failed after {attempt} attempts: {e}"
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{getattr(func, '__name__', 'call')} failed (attempt {attempt}), "
                    f"retrying in {delay}s: {e}"
                )
                self.sleep(delay)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """
    Per-dependency circuit breaker.

    Opens after ``failure_threshold`` consecutive failures; after
    ``recovery_seconds`` the next call is let through as a half-open probe.
    A successful probe closes the circuit, a failed one reopens it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_seconds = recovery_seconds
        self._clock = clock
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._state = CircuitState.CLOSED

    @classmethod
    def from_settings(cls, name: str, config: Optional[Settings] = None, **overrides) -> "CircuitBreaker":
        config = config or default_settings
        values = dict(
            failure_threshold=config.BREAKER_FAILURE_THRESHOLD,
            recovery_seconds=config.BREAKER_RECOVERY_SECONDS,
        )
        values.update(overrides)
        return cls(name, **values)

    @property
    def state(self) -> CircuitState:
        # Transition from open to half-open once the recovery window passes
        if (
            self._state == CircuitState.OPEN
            and self._last_failure_time is not None
            and self._clock() - self._last_failure_time >= self.recovery_seconds
        ):
            self._state = CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            if self._state != CircuitState.OPEN:
                logger.warning(
                    f"Circuit '{self.name}' opened",
                    extra={"circuit": self.name, "failure_count": self._failure_count},
                )
            self._state = CircuitState.OPEN

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        if self.state == CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_time or 0.0)
            raise CircuitOpenError(self.name, max(0.0, self.recovery_seconds - elapsed))
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


def resilient(
    retry: Optional[RetryPolicy] = None,
    breaker: Optional[CircuitBreaker] = None,
):
    """
    Decorator applying a breaker and a retry policy to a caller function.

    The breaker wraps each individual attempt, so an open circuit stops
    the retry loop immediately (``CircuitOpenError`` is never retried).
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            def attempt():
                if breaker is None:
                    return func(*args, **kwargs)
                return breaker.call(func, *args, **kwargs)

            if retry is None:
                return attempt()
            return retry.call(attempt)

        return wrapper

    return decorator


def apply_with_optimistic_retry(
    gateway: Any,
    subscription_id: Any,
    decide: Callable[[Any], Result[Any, EngineError]],
    max_attempts: int = 3,
) -> Result[Any, EngineError]:
    """
    Load, decide, save; on a stale write reload and decide again.

    Args:
        gateway: A SubscriptionGateway
        subscription_id: Subscription to update
        decide: Pure function from a fresh snapshot to the new snapshot
        max_attempts: Save attempts before giving up

    Returns:
        The saved snapshot, the decision's own failure, or
        ``Failure(ConcurrencyConflict)`` once every attempt lost the race
    """
    token = subscription_context.set(str(subscription_id))
    try:
        for attempt in range(1, max_attempts + 1):
            snapshot = gateway.load_subscription(subscription_id)
            decision = decide(snapshot)
            if decision.is_failure:
                return decision
            try:
                return Result.success(
                    gateway.save_subscription(decision.unwrap(), expected_version=snapshot.version)
                )
            except StaleSnapshotError as e:
                logger.warning(
                    f"Stale snapshot on attempt {attempt}, reloading",
                    extra={
                        "subscription_ref": str(subscription_id),
                        "expected_version": e.expected_version,
                        "actual_version": e.actual_version,
                    },
                )

        return Failure(ConcurrencyConflict(subscription_id=subscription_id, attempts=max_attempts))
    finally:
        subscription_context.reset(token)


__all__ = [
    "RetryPolicy",
    "CircuitState",
    "CircuitBreaker",
    "resilient",
    "apply_with_optimistic_retry",
]
