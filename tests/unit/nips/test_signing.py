"""
Unit tests for nips.signing module.

Tests:
- serialize_for_hash() canonical form
- compute_event_id() determinism and sensitivity
- sign_event() / sign_id() output and error mapping
- verify_event() acceptance and tamper detection
"""

import hashlib
import json
from dataclasses import replace

import pytest
from nostr_sdk import Event as NostrEvent
from nostr_sdk import Keys

from notecast.core.exceptions import SigningError
from notecast.models import Event
from notecast.nips.signing import (
    compute_event_id,
    hash_serialized,
    serialize_for_hash,
    sign_event,
    sign_id,
    verify_event,
)
from notecast.utils.keys import decode_secret


OTHER_HEX_KEY = "1" * 64  # pragma: allowlist secret


# =============================================================================
# Serialization and id
# =============================================================================


class TestSerialization:
    def test_canonical_form(self):
        event = Event(
            pubkey="ab" * 32,
            created_at=1_700_000_000,
            kind=1,
            tags=[["t", "nostr"]],
            content='say "gm" ☕\n',
        )
        expected = (
            '[0,"' + "ab" * 32 + '",1700000000,1,[["t","nostr"]],"say \\"gm\\" ☕\\n"]'
        ).encode()
        assert serialize_for_hash(event) == expected

    def test_id_is_sha256_of_serialization(self, draft_event):
        digest = hashlib.sha256(serialize_for_hash(draft_event)).hexdigest()
        assert compute_event_id(draft_event) == digest
        assert hash_serialized(serialize_for_hash(draft_event)).hex() == digest

    def test_id_deterministic(self, draft_event):
        assert compute_event_id(draft_event) == compute_event_id(replace(draft_event))

    def test_id_changes_with_tag_order(self, draft_event):
        reordered = replace(draft_event, tags=tuple(reversed(draft_event.tags)))
        assert compute_event_id(reordered) != compute_event_id(draft_event)

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda e: replace(e, content=e.content + "!"),
            lambda e: replace(e, tags=((e.tags[0][0], "other"), *e.tags[1:])),
            lambda e: replace(e, created_at=e.created_at + 1),
            lambda e: replace(e, kind=e.kind + 1),
            lambda e: replace(e, pubkey="ab" * 32),
        ],
        ids=["content", "single_tag_value", "created_at", "kind", "pubkey"],
    )
    def test_id_changes_with_any_field(self, draft_event, mutate):
        assert compute_event_id(mutate(draft_event)) != compute_event_id(draft_event)

    def test_id_ignores_existing_id_and_sig(self, signed_event, draft_event):
        assert compute_event_id(signed_event) == compute_event_id(draft_event)


# =============================================================================
# Signing
# =============================================================================


class TestSignEvent:
    def test_produces_final_event(self, draft_event, secret_key):
        event = sign_event(draft_event, secret_key)
        assert event.is_signed
        assert len(event.id) == 64
        assert len(event.sig) == 128
        assert event.id == compute_event_id(draft_event)

    def test_draft_unchanged(self, draft_event, secret_key):
        sign_event(draft_event, secret_key)
        assert draft_event.is_signed is False

    def test_pubkey_mismatch(self, draft_event):
        with pytest.raises(SigningError, match="pubkey"):
            sign_event(draft_event, decode_secret(OTHER_HEX_KEY))

    def test_accepted_by_nostr_sdk(self, signed_event):
        parsed = NostrEvent.from_json(json.dumps(signed_event.to_dict()))
        assert parsed.verify()
        assert parsed.id().to_hex() == signed_event.id


class TestSignId:
    def test_bad_hex(self, secret_key):
        with pytest.raises(SigningError, match="hex"):
            sign_id("zz" * 32, secret_key)

    def test_wrong_length(self, secret_key):
        with pytest.raises(SigningError, match="32 bytes"):
            sign_id("ab" * 16, secret_key)

    def test_signature_is_hex(self, secret_key):
        sig = sign_id("ab" * 32, secret_key)
        assert len(sig) == 128
        int(sig, 16)


# =============================================================================
# Verification
# =============================================================================


class TestVerifyEvent:
    def test_valid(self, signed_event):
        assert verify_event(signed_event) is True

    def test_unsigned(self, draft_event):
        assert verify_event(draft_event) is False

    def test_tampered_content(self, signed_event):
        assert verify_event(replace(signed_event, content="tampered")) is False

    def test_tampered_signature(self, signed_event):
        flipped = ("0" if signed_event.sig[0] != "0" else "1") + signed_event.sig[1:]
        assert verify_event(replace(signed_event, sig=flipped)) is False

    def test_signature_from_other_key(self, signed_event):
        other = Keys(decode_secret(OTHER_HEX_KEY))
        forged = replace(signed_event, pubkey=other.public_key().to_hex())
        assert verify_event(forged) is False
