"""
Date and time utilities for billing periods and usage windows
"""

from datetime import datetime, timedelta
from typing import Optional

import pytz
from dateutil.relativedelta import relativedelta


class DateTimeHelper:
    """Date and time manipulation utilities"""

    @staticmethod
    def now(timezone: str = 'UTC') -> datetime:
        """Get current datetime in specified timezone"""
        tz_obj = pytz.timezone(timezone)
        return datetime.now(tz_obj)

    @staticmethod
    def add_months(dt: datetime, months: int) -> datetime:
        """Add calendar months, clamping to the last day of short months"""
        return dt + relativedelta(months=months)

    @staticmethod
    def add_days(dt: datetime, days: int) -> datetime:
        return dt + timedelta(days=days)

    @staticmethod
    def first_day_of_month(dt: datetime) -> datetime:
        """Midnight on the first day of dt's month, keeping tzinfo"""
        return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    @staticmethod
    def whole_days_between(start: datetime, end: Optional[datetime]) -> int:
        """Whole days from start to end (negative if end is in the past)"""
        if end is None:
            return 0
        delta = end - start
        # timedelta.days floors; truncate toward zero instead
        if delta < timedelta(0):
            return -((-delta).days)
        return delta.days
