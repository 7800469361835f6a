"""NIP-01 event construction and signing.

Attributes:
    event_builders: Draft construction with the default tag policy.
    signing: Canonical serialization, SHA-256 event ids, BIP-340 Schnorr
        signatures via ``nostr_sdk``, and verification.
"""

from .event_builders import DEFAULT_CLIENT_TAG, EventBuilder, default_tags
from .signing import (
    compute_event_id,
    hash_serialized,
    serialize_for_hash,
    sign_event,
    sign_id,
    verify_event,
)


__all__ = [
    "DEFAULT_CLIENT_TAG",
    "EventBuilder",
    "compute_event_id",
    "default_tags",
    "hash_serialized",
    "serialize_for_hash",
    "sign_event",
    "sign_id",
    "verify_event",
]
