"""
Utility helpers for money and dates.
"""

from subscription_engine.utils.datetime_utils import DateTimeHelper
from subscription_engine.utils.money import CENT, ZERO, apply_discount, is_valid_amount, to_money

__all__ = ["DateTimeHelper", "CENT", "ZERO", "apply_discount", "is_valid_amount", "to_money"]
