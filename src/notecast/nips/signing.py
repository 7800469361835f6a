"""Event id computation, Schnorr signing, and verification (NIP-01).

The event id is the SHA-256 of the UTF-8 JSON array
``[0, pubkey, created_at, kind, tags, content]`` serialized with no
whitespace and non-ASCII characters left unescaped. The signature is a
BIP-340 Schnorr signature over the 32-byte id, produced by ``nostr_sdk``.

All functions here are synchronous and CPU-bound; none of them suspend.

Examples:
    ```python
    secret = decode_secret(nsec)
    draft = EventBuilder().build(1, derive_public(secret), "hello")
    event = sign_event(draft, secret)
    verify_event(event)  # True
    ```
"""

from __future__ import annotations

import hashlib
import json

from nostr_sdk import Event as NostrEvent
from nostr_sdk import Keys, NostrSdkError, SecretKey

from notecast.core.exceptions import SigningError
from notecast.models import Event


SERIALIZATION_VERSION = 0


def serialize_for_hash(event: Event) -> bytes:
    """Return the canonical byte serialization of *event*'s signable fields.

    Identical logical content always yields identical bytes: tag order is
    preserved, separators carry no whitespace, and content is UTF-8.
    """
    payload = [
        SERIALIZATION_VERSION,
        event.pubkey,
        event.created_at,
        event.kind,
        [list(tag) for tag in event.tags],
        event.content,
    ]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def hash_serialized(data: bytes) -> bytes:
    """SHA-256 digest (32 bytes) of a canonical serialization."""
    return hashlib.sha256(data).digest()


def compute_event_id(event: Event) -> str:
    """Return the 64-hex-char id *event* must carry."""
    return hash_serialized(serialize_for_hash(event)).hex()


def sign_id(event_id: str, secret: SecretKey) -> str:
    """Sign a hex event id with *secret*; returns 128 hex characters.

    Raises:
        SigningError: If the id is not 32 bytes of hex or signing fails.
    """
    try:
        message = bytes.fromhex(event_id)
    except ValueError:
        raise SigningError("event id is not valid hex") from None
    if len(message) != 32:
        raise SigningError("event id must be 32 bytes")
    try:
        return Keys(secret).sign_schnorr(message)
    except NostrSdkError as e:
        raise SigningError(f"schnorr signing failed: {e}") from e


def sign_event(draft: Event, secret: SecretKey) -> Event:
    """Compute the id of *draft*, sign it, and return the final event.

    The pubkey of *draft* must belong to *secret*; otherwise relays would
    reject the result, so this is checked up front.

    Raises:
        SigningError: If *draft*'s pubkey does not match *secret*, or
            signing fails.
    """
    keys = Keys(secret)
    if keys.public_key().to_hex() != draft.pubkey:
        raise SigningError("event pubkey does not match the signing key")
    event_id = compute_event_id(draft)
    return draft.with_signature(event_id, sign_id(event_id, secret))


def verify_event(event: Event) -> bool:
    """Return True if *event*'s id matches its content and its signature is valid.

    Never raises for a malformed or forged event.
    """
    if not event.is_signed or compute_event_id(event) != event.id:
        return False
    try:
        return bool(NostrEvent.from_json(json.dumps(event.to_dict())).verify())
    except NostrSdkError:
        return False
