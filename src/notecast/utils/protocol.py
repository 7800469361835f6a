"""NIP-01 wire codec: client frames out, relay frames in.

All frames are JSON arrays sent as WebSocket text messages:

```text
client -> relay   ["EVENT", <event>]
                  ["REQ", <sub_id>, <filter>, ...]
                  ["CLOSE", <sub_id>]
relay -> client   ["EVENT", <sub_id>, <event>]
                  ["EOSE", <sub_id>]
                  ["OK", <event_id>, <true|false>, <message>]
                  ["NOTICE", <message>]
                  ["CLOSED", <sub_id>, <message>]
                  ["AUTH", <challenge>]
```

Encoders are pure functions returning ``str``. The decoder
[parse_relay_message()][notecast.utils.protocol.parse_relay_message] maps a
text frame onto one of the frozen message dataclasses below and raises
[ProtocolError][notecast.core.exceptions.ProtocolError] for anything else.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from notecast.core.exceptions import ProtocolError
from notecast.models import SUBSCRIPTION_ID_MAX_LENGTH, Event, Filter


def _dumps(payload: list[Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Client -> relay
# ---------------------------------------------------------------------------


def validate_subscription_id(subscription_id: str) -> None:
    """Raise ``ValueError`` unless *subscription_id* is 1..64 characters."""
    if not isinstance(subscription_id, str):
        raise TypeError("subscription id must be a str")
    if not 0 < len(subscription_id) <= SUBSCRIPTION_ID_MAX_LENGTH:
        raise ValueError(
            f"subscription id must be 1..{SUBSCRIPTION_ID_MAX_LENGTH} characters"
        )


def encode_event_message(event: Event) -> str:
    """Encode a publish frame. *event* must be signed."""
    if not event.is_signed:
        raise ValueError("cannot publish an unsigned event")
    return _dumps(["EVENT", event.to_dict()])


def encode_req_message(subscription_id: str, filters: Sequence[Filter]) -> str:
    """Encode a subscription request with one or more filters."""
    validate_subscription_id(subscription_id)
    if not filters:
        raise ValueError("at least one filter is required")
    return _dumps(["REQ", subscription_id, *(f.to_dict() for f in filters)])


def encode_close_message(subscription_id: str) -> str:
    """Encode a subscription close frame."""
    validate_subscription_id(subscription_id)
    return _dumps(["CLOSE", subscription_id])


# ---------------------------------------------------------------------------
# Relay -> client
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventMessage:
    subscription_id: str
    event: Event


@dataclass(frozen=True, slots=True)
class EoseMessage:
    subscription_id: str


@dataclass(frozen=True, slots=True)
class OkMessage:
    event_id: str
    accepted: bool
    message: str


@dataclass(frozen=True, slots=True)
class NoticeMessage:
    message: str


@dataclass(frozen=True, slots=True)
class ClosedMessage:
    subscription_id: str
    message: str


@dataclass(frozen=True, slots=True)
class AuthMessage:
    challenge: str


RelayMessage = EventMessage | EoseMessage | OkMessage | NoticeMessage | ClosedMessage | AuthMessage


def _expect_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"{what} must be a string, got {type(value).__name__}")
    return value


def parse_relay_message(text: str) -> RelayMessage:
    """Decode one relay text frame.

    Args:
        text: Raw WebSocket text payload.

    Returns:
        The typed message.

    Raises:
        ProtocolError: If the frame is not JSON, not a non-empty array with a
            known string label, has the wrong arity, or carries an invalid
            event object.

    Note:
        ``OK`` frames with a missing message (seen on older relays) are
        accepted with ``message=""``. Extra trailing elements are ignored.
    """
    try:
        frame = json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise ProtocolError(f"frame is not valid JSON: {e}") from None

    if not isinstance(frame, list) or not frame:
        raise ProtocolError("frame must be a non-empty JSON array")

    label = frame[0]
    args = frame[1:]

    if label == "EVENT":
        if len(args) < 2:
            raise ProtocolError("EVENT frame requires a subscription id and an event")
        sub_id = _expect_str(args[0], "EVENT subscription id")
        try:
            event = Event.from_dict(args[1])
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"invalid event object: {e}") from None
        return EventMessage(sub_id, event)

    if label == "EOSE":
        if len(args) < 1:
            raise ProtocolError("EOSE frame requires a subscription id")
        return EoseMessage(_expect_str(args[0], "EOSE subscription id"))

    if label == "OK":
        if len(args) < 2:
            raise ProtocolError("OK frame requires an event id and a status")
        event_id = _expect_str(args[0], "OK event id")
        accepted = args[1]
        if not isinstance(accepted, bool):
            raise ProtocolError("OK status must be a boolean")
        message = _expect_str(args[2], "OK message") if len(args) > 2 else ""
        return OkMessage(event_id, accepted, message)

    if label == "NOTICE":
        if len(args) < 1:
            raise ProtocolError("NOTICE frame requires a message")
        return NoticeMessage(_expect_str(args[0], "NOTICE message"))

    if label == "CLOSED":
        if len(args) < 1:
            raise ProtocolError("CLOSED frame requires a subscription id")
        sub_id = _expect_str(args[0], "CLOSED subscription id")
        message = _expect_str(args[1], "CLOSED message") if len(args) > 1 else ""
        return ClosedMessage(sub_id, message)

    if label == "AUTH":
        if len(args) < 1:
            raise ProtocolError("AUTH frame requires a challenge")
        return AuthMessage(_expect_str(args[0], "AUTH challenge"))

    raise ProtocolError(f"unknown frame label: {label!r}")
