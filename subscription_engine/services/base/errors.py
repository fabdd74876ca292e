"""
Error taxonomy carried as the error side of ``Result``.

Every error is a frozen dataclass with a stable ``code`` and enough
identifiers for the calling layer to build a user-facing response without
re-deriving context.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes for engine failures."""

    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_TIER_CHANGE = "INVALID_TIER_CHANGE"
    UNSUPPORTED_FEATURE = "UNSUPPORTED_FEATURE"
    LIMIT_MISCONFIGURED = "LIMIT_MISCONFIGURED"
    ARITHMETIC_INCONSISTENCY = "ARITHMETIC_INCONSISTENCY"
    DUPLICATE_USAGE_PERIOD = "DUPLICATE_USAGE_PERIOD"
    AMBIGUOUS_CHANGE = "AMBIGUOUS_CHANGE"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    UNEXPECTED_FAULT = "UNEXPECTED_FAULT"


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class EngineError:
    """Base class for expected engine failures."""

    code: ClassVar[ErrorCode]
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.WARNING

    @property
    def message(self) -> str:
        return self.code.value

    @property
    def details(self) -> Dict[str, Any]:
        return {
            key: (value.value if isinstance(value, Enum) else value)
            for key, value in asdict(self).items()
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "details": _jsonable(self.details),
        }

    def __str__(self) -> str:
        return self.message


def _jsonable(details: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in details.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif value is None or isinstance(value, (str, int, float, bool)):
            out[key] = value
        else:
            out[key] = str(value)
    return out


@dataclass(frozen=True)
class InvalidTransition(EngineError):
    """An illegal status change was requested."""

    code: ClassVar[ErrorCode] = ErrorCode.INVALID_TRANSITION

    from_status: Any
    to_status: Any

    @property
    def message(self) -> str:
        return (
            f"Cannot transition subscription from "
            f"{_label(self.from_status)} to {_label(self.to_status)}"
        )


@dataclass(frozen=True)
class InvalidTierChange(EngineError):
    """A tier change in the wrong direction, or to the current tier."""

    code: ClassVar[ErrorCode] = ErrorCode.INVALID_TIER_CHANGE

    current_tier: Any
    target_tier: Any
    reason: str = ""

    @property
    def message(self) -> str:
        text = f"Cannot change tier from {_label(self.current_tier)} to {_label(self.target_tier)}"
        return f"{text}: {self.reason}" if self.reason else text


@dataclass(frozen=True)
class UnsupportedFeature(EngineError):
    """A usage check named a feature key the engine does not meter."""

    code: ClassVar[ErrorCode] = ErrorCode.UNSUPPORTED_FEATURE

    name: str

    @property
    def message(self) -> str:
        return f"Unsupported feature: {self.name}"


@dataclass(frozen=True)
class LimitMisconfigured(EngineError):
    """A limit of zero, or negative other than the unlimited sentinel."""

    code: ClassVar[ErrorCode] = ErrorCode.LIMIT_MISCONFIGURED

    feature: str
    limit: int

    @property
    def message(self) -> str:
        return f"Limit {self.limit} is not a usable cap for feature '{self.feature}'"


@dataclass(frozen=True)
class ArithmeticInconsistency(EngineError):
    """A price lookup or rounding step produced a negative or undefined amount."""

    code: ClassVar[ErrorCode] = ErrorCode.ARITHMETIC_INCONSISTENCY
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.ERROR

    operation: str
    amount: Optional[str] = None

    @property
    def message(self) -> str:
        return f"Arithmetic inconsistency in {self.operation}: {self.amount}"


@dataclass(frozen=True)
class DuplicateUsagePeriod(EngineError):
    """Two usage rows share a (user, feature, period start) key."""

    code: ClassVar[ErrorCode] = ErrorCode.DUPLICATE_USAGE_PERIOD

    user_id: Any
    feature: str
    period_start: datetime

    @property
    def message(self) -> str:
        return (
            f"Duplicate usage period for user {self.user_id}, "
            f"feature '{self.feature}', starting {self.period_start.isoformat()}"
        )


@dataclass(frozen=True)
class AmbiguousChange(EngineError):
    """No change type could be inferred from two snapshots."""

    code: ClassVar[ErrorCode] = ErrorCode.AMBIGUOUS_CHANGE

    old_status: Any
    new_status: Any

    @property
    def message(self) -> str:
        return (
            f"Cannot infer change type for {_label(self.old_status)} -> "
            f"{_label(self.new_status)}; pass an explicit change_type"
        )


@dataclass(frozen=True)
class ConcurrencyConflict(EngineError):
    """An optimistic-lock write kept losing after every allowed retry."""

    code: ClassVar[ErrorCode] = ErrorCode.CONCURRENCY_CONFLICT
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.ERROR

    subscription_id: Any
    attempts: int

    @property
    def message(self) -> str:
        return f"Subscription {self.subscription_id} changed concurrently {self.attempts} times"


@dataclass(frozen=True)
class UnexpectedFault(EngineError):
    """An unexpected exception caught at an operation boundary."""

    code: ClassVar[ErrorCode] = ErrorCode.UNEXPECTED_FAULT
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.CRITICAL

    operation: str
    exception: Exception = field(compare=False)

    @property
    def message(self) -> str:
        return f"Failed to {self.operation}: {self.exception}"

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "exception_type": type(self.exception).__name__,
            "error": str(self.exception),
        }


def _label(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "EngineError",
    "InvalidTransition",
    "InvalidTierChange",
    "UnsupportedFeature",
    "LimitMisconfigured",
    "ArithmeticInconsistency",
    "DuplicateUsagePeriod",
    "AmbiguousChange",
    "ConcurrencyConflict",
    "UnexpectedFault",
]
