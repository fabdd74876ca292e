"""
Persistence gateway contracts and the in-memory reference gateway.
"""

from subscription_engine.repositories.base import HistoryGateway, SubscriptionGateway, UsageGateway
from subscription_engine.repositories.memory import InMemoryGateway

__all__ = [
    "HistoryGateway",
    "SubscriptionGateway",
    "UsageGateway",
    "InMemoryGateway",
]
