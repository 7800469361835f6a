"""notecast exception hierarchy.

Provides typed exceptions for every failure category of the client engine,
so callers can distinguish a bad key from an unreachable relay without
string matching, and so ``CancelledError`` always propagates untouched.

Exception hierarchy:

```text
NotecastError (base -- never raised directly)
├── ConfigurationError         -- config validation, bad YAML
├── InvalidKeyFormatError      -- malformed secret key input (also ValueError)
├── SigningError               -- Schnorr signing failed (unreachable for valid keys)
├── ConnectivityError          -- relay unreachable, session lost
│   ├── ConnectError           -- handshake rejected, malformed URL
│   ├── RelayTimeoutError      -- handshake or response timed out
│   └── NotConnectedError      -- no live session for the endpoint
├── ProtocolError              -- malformed wire frame or event object
├── SubscriptionClosedError    -- relay ended a subscription with CLOSED
└── PublishingError            -- event broadcast failures
    ├── PublishRejectedError   -- relay answered OK false
    └── PublishTimeoutError    -- no OK within the publish timeout
```

Note:
    Per-relay connect and publish failures are *returned as data* by
    [RelayConnectionManager.connect_all()][notecast.services.relay_manager.RelayConnectionManager.connect_all]
    and
    [PublishCoordinator.publish()][notecast.services.publisher.PublishCoordinator.publish].
    The exceptions below are raised inside a single relay's task and
    converted to those values at the fan-out boundary.
"""

from __future__ import annotations


class NotecastError(Exception):
    """Base exception for all notecast errors.

    Never raised directly -- always use a specific subclass.
    """


class ConfigurationError(NotecastError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Keys and signing
# ---------------------------------------------------------------------------


class InvalidKeyFormatError(NotecastError, ValueError):
    """Secret key input is neither 64 hex characters nor a valid ``nsec1`` string.

    See Also:
        [decode_secret()][notecast.utils.keys.decode_secret]: The only raiser.
    """


class SigningError(NotecastError):
    """Signing an event id failed.

    Unreachable for keys accepted by
    [decode_secret()][notecast.utils.keys.decode_secret].
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NotecastError):
    """Base for all relay/network connectivity errors."""


class ConnectError(ConnectivityError):
    """Transport rejected the handshake or the URL is malformed."""


class RelayTimeoutError(ConnectivityError):
    """Connection handshake or relay response did not arrive in time."""


class NotConnectedError(ConnectivityError):
    """Operation attempted against an endpoint with no live session."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NotecastError):
    """A relay frame or event object does not follow NIP-01."""


class SubscriptionClosedError(NotecastError):
    """The relay terminated a subscription with a ``CLOSED`` frame.

    Attributes:
        subscription_id: The subscription the relay closed.
        reason: Relay-supplied reason (may be empty).
    """

    def __init__(self, subscription_id: str, reason: str = "") -> None:
        super().__init__(f"subscription {subscription_id} closed by relay: {reason}")
        self.subscription_id = subscription_id
        self.reason = reason


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(NotecastError):
    """Failed to publish a Nostr event to a relay."""


class PublishRejectedError(PublishingError):
    """The relay answered ``["OK", <id>, false, <reason>]``.

    Attributes:
        reason: Relay-supplied reason.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"rejected: {reason}")
        self.reason = reason


class PublishTimeoutError(PublishingError):
    """No ``OK`` acknowledgement arrived within the publish timeout."""
