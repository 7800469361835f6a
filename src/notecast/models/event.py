"""
Immutable Nostr event record.

An [Event][notecast.models.event.Event] is a *draft* until signed (``id`` and
``sig`` are empty strings) and *final* afterwards. Both stages use the same
frozen dataclass so a draft can be handed to
[sign_event()][notecast.nips.signing.sign_event], which returns a new
final instance rather than mutating the draft.

See Also:
    [notecast.nips.event_builders][]: Produces draft events.
    [notecast.nips.signing][]: Computes ``id`` and ``sig``.
    [notecast.utils.protocol][]: Parses inbound event objects via
        [Event.from_dict()][notecast.models.event.Event.from_dict].
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from ._validation import (
    freeze_tags,
    is_hex,
    validate_hex,
    validate_str,
    validate_str_no_null,
    validate_timestamp,
)


_EVENT_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event (NIP-01).

    Attributes:
        pubkey: Author public key, 64 hex characters (x-only secp256k1).
        created_at: Unix timestamp in seconds.
        kind: Event kind, any non-negative integer.
        tags: Ordered tuple of ordered string tuples. Order is meaningful.
        content: Arbitrary text, kept verbatim (control characters included).
        id: SHA-256 of the canonical serialization, 64 hex characters, or
            ``""`` for a draft.
        sig: BIP-340 Schnorr signature over ``id``, 128 hex characters, or
            ``""`` for a draft.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a hex field is malformed or ``kind`` is negative.

    Examples:
        ```python
        draft = Event(pubkey="ab" * 32, created_at=1700000000, kind=1,
                      tags=[["t", "nostr"]], content="hello")
        draft.is_signed   # False
        draft.tags        # (('t', 'nostr'),)
        ```

    Note:
        ``tags`` accepts lists on input and is stored as nested tuples, so a
        signed event cannot be altered after its ``id`` was computed.
    """

    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    id: str = ""
    sig: str = ""

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", 64)
        object.__setattr__(self, "pubkey", self.pubkey.lower())
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        validate_str(self.content, "content")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

        validate_str_no_null(self.id, "id")
        validate_str_no_null(self.sig, "sig")
        if self.id and not is_hex(self.id, 64):
            raise ValueError("id must be 64 hex characters")
        if self.sig and not is_hex(self.sig, 128):
            raise ValueError("sig must be 128 hex characters")
        object.__setattr__(self, "id", self.id.lower())
        object.__setattr__(self, "sig", self.sig.lower())

    @property
    def is_signed(self) -> bool:
        """True when both ``id`` and ``sig`` are present (a *final* event)."""
        return bool(self.id and self.sig)

    def with_signature(self, event_id: str, sig: str) -> Event:
        """Return a copy of this event carrying *event_id* and *sig*."""
        return replace(self, id=event_id, sig=sig)

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 wire object (tags as lists of lists)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        """Build an [Event][notecast.models.event.Event] from a wire object.

        Args:
            data: Decoded JSON object received from a relay.

        Raises:
            TypeError: If *data* is not a mapping or a field has the wrong type.
            ValueError: If a required field is missing or malformed.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"event must be an object, got {type(data).__name__}")
        missing = [name for name in _EVENT_FIELDS if name not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")
        return cls(
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=data["tags"],
            content=data["content"],
            id=data["id"],
            sig=data["sig"],
        )
