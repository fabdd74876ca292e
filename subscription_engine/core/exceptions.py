"""
Exceptions for the subscription engine.

Expected business conditions are never raised; they travel as
``Failure`` values (see ``services.base.errors``). The exceptions below
cover startup configuration and the infrastructure seams around the
engine: persistence gateways and caller-side resilience wrappers.
"""

from typing import Any, Dict, Optional


class EngineException(Exception):
    """Base exception for the subscription engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(EngineException):
    """Raised at startup when the tier catalog or settings are invalid."""


class RecordNotFoundError(EngineException):
    """Raised by a persistence gateway when a row does not exist."""

    def __init__(self, resource_type: str, identifier: Any) -> None:
        super().__init__(
            f"{resource_type} with identifier '{identifier}' not found",
            {"resource_type": resource_type, "identifier": str(identifier)},
        )
        self.resource_type = resource_type
        self.identifier = identifier


class StaleSnapshotError(EngineException):
    """Raised when an optimistic-lock write is rejected."""

    def __init__(self, resource_id: Any, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Stale snapshot for '{resource_id}': expected version "
            f"{expected_version}, found {actual_version}",
            {
                "resource_id": str(resource_id),
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class DuplicateRecordError(EngineException):
    """Raised when a write would break a uniqueness invariant."""


class CircuitOpenError(EngineException):
    """Raised when a call is refused because its circuit breaker is open."""

    def __init__(self, name: str, retry_after_seconds: float) -> None:
        super().__init__(
            f"Circuit '{name}' is open",
            {"circuit": name, "retry_after_seconds": retry_after_seconds},
        )
        self.name = name
        self.retry_after_seconds = retry_after_seconds
