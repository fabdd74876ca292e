"""
Base service layer: result type, error taxonomy, error handling and
caller-side resilience.
"""

from subscription_engine.services.base.error_handler import ErrorHandler
from subscription_engine.services.base.errors import (
    AmbiguousChange,
    ArithmeticInconsistency,
    ConcurrencyConflict,
    DuplicateUsagePeriod,
    EngineError,
    ErrorCode,
    ErrorSeverity,
    InvalidTierChange,
    InvalidTransition,
    LimitMisconfigured,
    UnexpectedFault,
    UnsupportedFeature,
)
from subscription_engine.services.base.resilience import (
    CircuitBreaker,
    CircuitState,
    RetryPolicy,
    apply_with_optimistic_retry,
    resilient,
)
from subscription_engine.services.base.result import Failure, Result, Success, combine, sequence

__all__ = [
    "ErrorHandler",
    "AmbiguousChange",
    "ArithmeticInconsistency",
    "ConcurrencyConflict",
    "DuplicateUsagePeriod",
    "EngineError",
    "ErrorCode",
    "ErrorSeverity",
    "InvalidTierChange",
    "InvalidTransition",
    "LimitMisconfigured",
    "UnexpectedFault",
    "UnsupportedFeature",
    "CircuitBreaker",
    "CircuitState",
    "RetryPolicy",
    "apply_with_optimistic_retry",
    "resilient",
    "Failure",
    "Result",
    "Success",
    "combine",
    "sequence",
]
