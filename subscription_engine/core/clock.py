"""
Injectable clocks.

The engine asks a clock for "now" whenever it stamps a period boundary or
an audit record; it never calls ``datetime.now`` itself.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from subscription_engine.utils.datetime_utils import DateTimeHelper


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""


class SystemClock(Clock):
    """Wall clock in the configured timezone."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz_name = tz_name

    def now(self) -> datetime:
        return DateTimeHelper.now(self.tz_name)


class FixedClock(Clock):
    """
    Clock frozen at a given instant, for deterministic tests and replays.

    ``advance`` moves the instant forward; nothing moves it implicitly.
    """

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant
