"""
Result type for railway-style error propagation.

A ``Result`` is exactly one of ``Success(value)`` or ``Failure(error)``.
Every engine operation returns one instead of raising for an expected
business condition. Mappers that raise are caught at the mapping step and
turned into a ``Failure`` holding the raised exception, so a composed
pipeline never aborts half-way.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")
E = TypeVar("E")
F = TypeVar("F")


class Result(Generic[T, E]):
    """
    Base class of the two result variants.

    Do not instantiate directly; use ``Result.success`` / ``Result.failure``
    or the ``Success`` / ``Failure`` classes.
    """

    __slots__ = ()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @staticmethod
    def success(value: T = None) -> "Result[T, Any]":
        """Create a successful result."""
        return Success(value)

    @staticmethod
    def failure(error: E) -> "Result[Any, E]":
        """Create a failed result."""
        return Failure(error)

    @staticmethod
    def try_execute(operation: Callable[[], T]) -> "Result[T, Exception]":
        """Run ``operation`` and wrap its return value or raised exception."""
        try:
            return Success(operation())
        except Exception as e:
            return Failure(e)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def is_success(self) -> bool:
        raise NotImplementedError

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def unwrap(self) -> T:
        """
        Return the success value.

        Raises:
            ValueError: If the result is a failure
        """
        raise NotImplementedError

    def unwrap_error(self) -> E:
        """
        Return the failure error.

        Raises:
            ValueError: If the result is a success
        """
        raise NotImplementedError

    def unwrap_or(self, default: T) -> T:
        """Unwrap the value or return default if failed."""
        return self.unwrap() if self.is_success else default

    def to_optional(self) -> Optional[T]:
        """Return the value, or None for a failure (the error is dropped)."""
        return self.unwrap() if self.is_success else None

    def __bool__(self) -> bool:
        return self.is_success

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def map(self, mapper: Callable[[T], U]) -> "Result[U, E]":
        raise NotImplementedError

    def flat_map(self, mapper: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        raise NotImplementedError

    def map_error(self, mapper: Callable[[E], F]) -> "Result[T, F]":
        raise NotImplementedError

    def filter(self, predicate: Callable[[T], bool], error_if_false: E) -> "Result[T, E]":
        raise NotImplementedError

    def on_success(self, action: Callable[[T], Any]) -> "Result[T, E]":
        raise NotImplementedError

    def on_failure(self, action: Callable[[E], Any]) -> "Result[T, E]":
        raise NotImplementedError

    def recover(self, recovery: Callable[[E], T]) -> "Result[T, E]":
        raise NotImplementedError

    def recover_with(self, recovery: Callable[[E], "Result[T, E]"]) -> "Result[T, E]":
        raise NotImplementedError

    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        raise NotImplementedError


@dataclass(frozen=True)
class Success(Result[T, E]):
    """Successful outcome carrying a value."""

    value: T = None

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_error(self) -> E:
        raise ValueError("Cannot unwrap error from a successful result")

    def map(self, mapper: Callable[[T], U]) -> Result[U, E]:
        try:
            return Success(mapper(self.value))
        except Exception as e:
            return Failure(e)

    def flat_map(self, mapper: Callable[[T], Result[U, E]]) -> Result[U, E]:
        try:
            return mapper(self.value)
        except Exception as e:
            return Failure(e)

    def map_error(self, mapper: Callable[[E], F]) -> Result[T, F]:
        return self

    def filter(self, predicate: Callable[[T], bool], error_if_false: E) -> Result[T, E]:
        try:
            return self if predicate(self.value) else Failure(error_if_false)
        except Exception as e:
            return Failure(e)

    def on_success(self, action: Callable[[T], Any]) -> Result[T, E]:
        action(self.value)
        return self

    def on_failure(self, action: Callable[[E], Any]) -> Result[T, E]:
        return self

    def recover(self, recovery: Callable[[E], T]) -> Result[T, E]:
        return self

    def recover_with(self, recovery: Callable[[E], Result[T, E]]) -> Result[T, E]:
        return self

    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        return on_success(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_success": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True)
class Failure(Result[T, E]):
    """Failed outcome carrying a typed error."""

    error: E

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> T:
        raise ValueError(f"Cannot unwrap failed result: {self.error}")

    def unwrap_error(self) -> E:
        return self.error

    def map(self, mapper: Callable[[T], U]) -> Result[U, E]:
        return self

    def flat_map(self, mapper: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return self

    def map_error(self, mapper: Callable[[E], F]) -> Result[T, F]:
        try:
            return Failure(mapper(self.error))
        except Exception as e:
            return Failure(e)

    def filter(self, predicate: Callable[[T], bool], error_if_false: E) -> Result[T, E]:
        return self

    def on_success(self, action: Callable[[T], Any]) -> Result[T, E]:
        return self

    def on_failure(self, action: Callable[[E], Any]) -> Result[T, E]:
        action(self.error)
        return self

    def recover(self, recovery: Callable[[E], T]) -> Result[T, E]:
        try:
            return Success(recovery(self.error))
        except Exception as e:
            return Failure(e)

    def recover_with(self, recovery: Callable[[E], Result[T, E]]) -> Result[T, E]:
        try:
            return recovery(self.error)
        except Exception as e:
            return Failure(e)

    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        return on_failure(self.error)

    def to_dict(self) -> Dict[str, Any]:
        error = self.error.to_dict() if hasattr(self.error, "to_dict") else str(self.error)
        return {"is_success": False, "error": error}

    def __repr__(self) -> str:
        return f"Failure({self.error!r})"


# Utility functions for composing results
def sequence(results: Iterable[Result[T, E]]) -> Result[List[T], E]:
    """
    Collapse a list of results into a result of a list.

    Returns the first failure in left-to-right order, or a success wrapping
    every value in input order.
    """
    values: List[T] = []
    for result in results:
        if result.is_failure:
            return result
        values.append(result.unwrap())
    return Success(values)


def combine(
    first: Result[T, E],
    second: Result[U, E],
    combiner: Callable[[T, U], V],
) -> Result[V, E]:
    """Combine two results with a binary function."""
    return first.flat_map(lambda a: second.map(lambda b: combiner(a, b)))


__all__ = [
    "Result",
    "Success",
    "Failure",
    "sequence",
    "combine",
]
