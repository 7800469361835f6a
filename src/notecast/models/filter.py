"""
Subscription filter predicate (NIP-01 ``<filters>`` object).

All present fields are ANDed; absent fields impose no constraint. The
relay evaluates the filter -- [Filter.matches()][notecast.models.filter.Filter.matches]
is a local mirror of the same rules, used for display and tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_hex, validate_timestamp
from .event import Event


def _frozen(values: Iterable[Any] | None) -> frozenset[Any] | None:
    return None if values is None else frozenset(values)


def _lowered(values: Iterable[str] | None) -> Iterable[str] | None:
    return None if values is None else (v.lower() if isinstance(v, str) else v for v in values)


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable query predicate for a subscription.

    Attributes:
        ids: Event ids to match.
        kinds: Event kinds to match.
        authors: Author public keys (64 hex characters) to match.
        since: Only events with ``created_at >= since``.
        until: Only events with ``created_at <= until``.
        limit: Maximum number of stored events the relay should backfill.
        tags: Single-letter tag filters, e.g. ``{"t": {"nostr"}}`` which is
            sent as ``"#t": ["nostr"]``.

    Examples:
        ```python
        Filter(kinds={1}, limit=20).to_dict()
        # {'kinds': [1], 'limit': 20}
        ```
    """

    ids: frozenset[str] | None = None
    kinds: frozenset[int] | None = None
    authors: frozenset[str] | None = None
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    tags: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _frozen(_lowered(self.ids)))
        object.__setattr__(self, "kinds", _frozen(self.kinds))
        object.__setattr__(self, "authors", _frozen(_lowered(self.authors)))

        for event_id in self.ids or ():
            validate_hex(event_id, "ids entry", 64)
        for author in self.authors or ():
            validate_hex(author, "authors entry", 64)
        for kind in self.kinds or ():
            validate_timestamp(kind, "kinds entry")
        for name in ("since", "until", "limit"):
            value = getattr(self, name)
            if value is not None:
                validate_timestamp(value, name)

        frozen_tags: dict[str, frozenset[str]] = {}
        for letter, values in self.tags.items():
            if not isinstance(letter, str) or len(letter) != 1 or not letter.isalpha():
                raise ValueError(f"tag filter key must be a single letter, got {letter!r}")
            frozen_tags[letter] = frozenset(values)
        object.__setattr__(self, "tags", frozen_tags)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire object, omitting absent fields.

        Set-valued fields are sorted so identical filters always produce
        identical ``REQ`` frames.
        """
        result: dict[str, Any] = {}
        if self.ids is not None:
            result["ids"] = sorted(self.ids)
        if self.kinds is not None:
            result["kinds"] = sorted(self.kinds)
        if self.authors is not None:
            result["authors"] = sorted(self.authors)
        for letter in sorted(self.tags):
            result[f"#{letter}"] = sorted(self.tags[letter])
        if self.since is not None:
            result["since"] = self.since
        if self.until is not None:
            result["until"] = self.until
        if self.limit is not None:
            result["limit"] = self.limit
        return result

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every present field.

        ``limit`` only bounds the relay's backfill and is ignored here.
        """
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for letter, values in self.tags.items():
            tagged = {tag[1] for tag in event.tags if len(tag) >= 2 and tag[0] == letter}
            if not tagged & values:
                return False
        return True
