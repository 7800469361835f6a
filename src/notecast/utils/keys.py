"""Nostr secret key decoding and public key derivation.

Accepts a secret key either as 64 hexadecimal characters or as a NIP-19
``nsec1...`` bech32 string, and normalizes it into a ``nostr_sdk.SecretKey``.
Elliptic-curve work (secp256k1, bech32 checksums) is delegated to
``nostr_sdk``; this module owns the input rules and error mapping.

Warning:
    Secret keys must **never** be logged, stored in configuration files, or
    echoed back in error messages. Errors raised here describe the *shape*
    of the input only.

Examples:
    ```python
    secret = decode_secret("  nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5 ")
    derive_public(secret)  # '7e7e9c42...'  (64 hex chars)
    ```
"""

from __future__ import annotations

import os

from nostr_sdk import Keys, NostrSdkError, SecretKey

from notecast.core.exceptions import InvalidKeyFormatError
from notecast.models._validation import is_hex


ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret
SECRET_KEY_HRP = "nsec"
SECRET_KEY_HEX_LENGTH = 64

_BECH32_SEPARATOR = "1"
_INVALID_FORMAT_MESSAGE = (
    "Invalid private key format. Must be a 64-character hex string or nsec format."
)


def decode_secret(value: str) -> SecretKey:
    """Parse a user-supplied secret key.

    Surrounding whitespace is stripped. Input starting with a bech32
    human-readable prefix is decoded and must denote a secret key
    (``nsec``); anything else must be exactly 64 hex characters.

    Args:
        value: Raw key text from the user or the environment.

    Returns:
        The canonical 32-byte secret key.

    Raises:
        InvalidKeyFormatError: If the input is empty, a bech32 string of
            another type (e.g. ``npub1...``) or with a bad checksum, hex of
            the wrong length or with non-hex characters, or a value outside
            the secp256k1 scalar range.
    """
    if not isinstance(value, str):
        raise InvalidKeyFormatError(_INVALID_FORMAT_MESSAGE)
    key = value.strip()
    if not key:
        raise InvalidKeyFormatError(_INVALID_FORMAT_MESSAGE)

    if _looks_like_bech32(key):
        hrp = key.lower().split(_BECH32_SEPARATOR, 1)[0]
        if hrp != SECRET_KEY_HRP:
            raise InvalidKeyFormatError(
                f"Expected an {SECRET_KEY_HRP} key, got a bech32 '{hrp}' value"
            )
    elif not is_hex(key, SECRET_KEY_HEX_LENGTH):
        raise InvalidKeyFormatError(_INVALID_FORMAT_MESSAGE)

    try:
        return SecretKey.parse(key.lower())
    except NostrSdkError:
        raise InvalidKeyFormatError(_INVALID_FORMAT_MESSAGE) from None


def _looks_like_bech32(key: str) -> bool:
    """True if *key* has the ``<hrp>1<data>`` shape of a bech32 string."""
    if _BECH32_SEPARATOR not in key or is_hex(key):
        return False
    hrp = key.split(_BECH32_SEPARATOR, 1)[0]
    return hrp.isalpha()


def derive_public(secret: SecretKey) -> str:
    """Derive the x-only public key for *secret* as 64 lowercase hex characters."""
    return Keys(secret).public_key().to_hex()


def encode_secret(secret: SecretKey) -> str:
    """Encode *secret* as a NIP-19 ``nsec1...`` string."""
    return secret.to_bech32()


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load a signing key pair from an environment variable.

    Args:
        env_var: Name of the environment variable holding the secret key
            (``nsec1...`` or 64-char hex).

    Returns:
        A ``nostr_sdk.Keys`` pair ready for signing.

    Raises:
        ValueError: If the variable is unset or empty.
        InvalidKeyFormatError: If the value is not a valid secret key.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )
    return Keys(decode_secret(value))
