"""Shared constants for the models layer.

Defines enumerations used across the model modules and by the transport and
service layers. Placing them here avoids circular dependencies between the
models and utils layers.

See Also:
    [notecast.models.event][]: Uses [EventKind][notecast.models.constants.EventKind]
        for well-known kinds.
    [notecast.utils.transport][]: Drives a
        [ConnectionState][notecast.models.constants.ConnectionState] machine per relay.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


SUBSCRIPTION_ID_MAX_LENGTH = 64


class EventKind(IntEnum):
    """Well-known Nostr event kinds understood by the client.

    Any non-negative integer is a valid kind; this enum only names the ones
    the client builds or displays.

    Examples:
        ```python
        EventKind.TEXT_NOTE        # 1
        int(EventKind.REACTION)    # 7
        ```
    """

    METADATA = 0
    TEXT_NOTE = 1
    RECOMMEND_RELAY = 2
    CONTACTS = 3
    ENCRYPTED_DIRECT_MESSAGE = 4
    EVENT_DELETION = 5
    REACTION = 7
    CHANNEL_CREATION = 40
    CHANNEL_METADATA = 41
    CHANNEL_MESSAGE = 42
    CHANNEL_HIDE_MESSAGE = 43
    CHANNEL_MUTE_USER = 44


class ConnectionState(StrEnum):
    """Lifecycle state of a single relay session.

    Transitions:

    ```text
    DISCONNECTED --connect()--> CONNECTING --handshake ok--> CONNECTED
    CONNECTING | CONNECTED --timeout / error / peer close / close()--> DISCONNECTED
    ```

    Attributes:
        DISCONNECTED: No transport is open. Initial and final state.
        CONNECTING: A WebSocket handshake is in flight.
        CONNECTED: Handshake completed; frames may be sent and received.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
