"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints,
hex-encoding rules, and null-byte safety.
"""

from __future__ import annotations

import string
from typing import Any


_HEX_DIGITS = frozenset(string.hexdigits)


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_str(value: Any, name: str) -> None:
    """Raise ``TypeError`` if *value* is not a ``str``."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    validate_str(value, name)
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def is_hex(value: str, length: int | None = None) -> bool:
    """Return True if *value* is a hex string, optionally of an exact *length*."""
    if length is not None and len(value) != length:
        return False
    return bool(value) and all(c in _HEX_DIGITS for c in value)


def validate_hex(value: Any, name: str, length: int) -> None:
    """Raise if *value* is not a hex ``str`` of exactly *length* characters."""
    validate_str_no_null(value, name)
    if not is_hex(value, length):
        raise ValueError(f"{name} must be {length} hex characters")


def freeze_tags(tags: Any, name: str = "tags") -> tuple[tuple[str, ...], ...]:
    """Convert a sequence of string sequences into nested tuples.

    Order is preserved at both levels. Every tag value must be a ``str``;
    the text itself is kept verbatim.

    Raises:
        TypeError: If *tags* is not a list/tuple of lists/tuples of ``str``.
    """
    if not isinstance(tags, list | tuple):
        raise TypeError(f"{name} must be a list of lists, got {type(tags).__name__}")
    frozen: list[tuple[str, ...]] = []
    for tag in tags:
        if not isinstance(tag, list | tuple):
            raise TypeError(f"{name} entries must be lists, got {type(tag).__name__}")
        for value in tag:
            validate_str(value, f"{name} value")
        frozen.append(tuple(tag))
    return tuple(frozen)
