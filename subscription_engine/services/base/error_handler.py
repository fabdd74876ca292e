"""
Operation-boundary error handling for the engine.
"""

import sys
from traceback import format_exception
from typing import Any, Dict, Optional, Type

from subscription_engine.core.logging import get_logger
from subscription_engine.services.base.errors import (
    EngineError,
    ErrorSeverity,
    UnexpectedFault,
)
from subscription_engine.services.base.result import Failure, Result


class ErrorHandler:
    """
    Converts unexpected exceptions into ``Failure(UnexpectedFault)``.

    - Exception mapping to severity
    - Contextual logging
    - Stack trace capture
    """

    # Exception to severity mapping; anything unlisted is critical
    EXCEPTION_MAP: Dict[Type[Exception], ErrorSeverity] = {
        ValueError: ErrorSeverity.ERROR,
        KeyError: ErrorSeverity.ERROR,
        ArithmeticError: ErrorSeverity.ERROR,
    }

    def __init__(self, logger_name: str = "EngineErrorHandler"):
        self._logger = get_logger(logger_name)

    # -------------------------------------------------------------------------
    # Error Handling
    # -------------------------------------------------------------------------

    def handle(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
        include_traceback: bool = False,
    ) -> Result[Any, EngineError]:
        """
        Handle exception and convert to a failed Result.

        Args:
            exception: The exception to handle
            operation: Description of failed operation
            entity_ref: Reference to affected entity
            additional_context: Extra context for debugging
            include_traceback: Whether to log the full traceback text

        Returns:
            Failure carrying an UnexpectedFault
        """
        severity = self._map_exception(exception)

        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)
        if include_traceback:
            context["traceback"] = self._capture_traceback()

        self._log_error(severity, operation, exception, context)

        return Failure(UnexpectedFault(operation=operation, exception=exception))

    def log_failure(self, operation: str, error: EngineError) -> None:
        """Log an expected failure at its declared severity."""
        context = {"operation": operation, "error_code": error.code.value}
        # prefixed so detail keys never collide with LogRecord attributes
        context.update(
            {f"error_{key}": value for key, value in error.to_dict()["details"].items()}
        )
        if error.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
            self._logger.error(f"{operation} failed: {error.message}", extra=context)
        elif error.severity == ErrorSeverity.WARNING:
            self._logger.warning(f"{operation} rejected: {error.message}", extra=context)
        else:
            self._logger.info(f"{operation}: {error.message}", extra=context)

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def _map_exception(self, exception: Exception) -> ErrorSeverity:
        for exc_type, severity in self.EXCEPTION_MAP.items():
            if isinstance(exception, exc_type):
                return severity
        return ErrorSeverity.CRITICAL

    def _log_error(
        self,
        severity: ErrorSeverity,
        operation: str,
        exception: Exception,
        context: Dict[str, Any],
    ) -> None:
        log_message = f"Error in {operation}: {exception}"

        if severity == ErrorSeverity.CRITICAL:
            self._logger.critical(log_message, exc_info=exception, extra=context)
        else:
            self._logger.error(log_message, exc_info=exception, extra=context)

    def _capture_traceback(self) -> str:
        exc_type, exc_value, exc_traceback = sys.exc_info()
        if exc_type is None:
            return ""
        return "".join(format_exception(exc_type, exc_value, exc_traceback))
