"""Pure frozen dataclasses with zero I/O for Nostr events, relays, and filters.

The models layer is the foundation of the diamond DAG. It depends only on the
standard library and ``rfc3986``. Every model uses
``@dataclass(frozen=True, slots=True)`` and performs all validation in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    Event: NIP-01 event, *draft* (unsigned) or *final* (signed).
    Filter: Subscription predicate serialized into ``REQ`` frames.
    RelayEndpoint: Normalized ``wss://`` relay URL.
    PublishStatus: Per-relay publish outcome.
    ConnectResult: Connected set plus failure map from a batch connect.
    EventKind: Well-known event kinds.
    ConnectionState: Relay session state machine states.
"""

from .constants import (
    SUBSCRIPTION_ID_MAX_LENGTH,
    ConnectionState,
    EventKind,
)
from .event import Event
from .filter import Filter
from .publish import ConnectResult, PublishStatus
from .relay import RelayEndpoint


__all__ = [
    "SUBSCRIPTION_ID_MAX_LENGTH",
    "ConnectResult",
    "ConnectionState",
    "Event",
    "EventKind",
    "Filter",
    "PublishStatus",
    "RelayEndpoint",
]
