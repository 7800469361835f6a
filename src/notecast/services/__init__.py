"""Relay orchestration: sessions, publish fan-out, subscriptions, and the client facade.

Attributes:
    RelayConnectionManager: Owns the live-session map; batch connect/disconnect.
    PublishCoordinator: Concurrent publish with per-relay OK tracking.
    SubscriptionManager: ``REQ``/``CLOSE`` with async-iterator delivery.
    NostrClient: The entry point exposed to front ends.
"""

from .client import NostrClient
from .publisher import NOT_CONNECTED_MESSAGE, PublishCoordinator
from .relay_manager import RelayConnectionManager
from .subscriptions import (
    END_OF_STORED_EVENTS,
    Subscription,
    SubscriptionManager,
    new_subscription_id,
)


__all__ = [
    "END_OF_STORED_EVENTS",
    "NOT_CONNECTED_MESSAGE",
    "NostrClient",
    "PublishCoordinator",
    "RelayConnectionManager",
    "Subscription",
    "SubscriptionManager",
    "new_subscription_id",
]
