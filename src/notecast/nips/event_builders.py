"""Draft event construction (NIP-01).

[EventBuilder][notecast.nips.event_builders.EventBuilder] assembles unsigned
events from kind, content, caller tags, and the author's public key, then
appends the client's default tags.

Default tag policy:
    After the caller's tags, in this order:

    * ``["client", <client_tag>]``
    * ``["published_at", "<created_at>"]``

    The defaults are appended even when the caller already supplied tags
    with the same names; no deduplication is performed.

See Also:
    [notecast.nips.signing][notecast.nips.signing]: Turns drafts into final events.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from notecast.models import Event


DEFAULT_CLIENT_TAG = "notecast"

TagList = Sequence[Sequence[str]]


def default_tags(client_tag: str, created_at: int) -> list[list[str]]:
    """Return the policy-default tags for an event created at *created_at*."""
    return [["client", client_tag], ["published_at", str(created_at)]]


class EventBuilder:
    """Builds draft events with a fixed tag-enrichment policy.

    Args:
        client_tag: Value for the ``client`` tag.
        add_default_tags: If False, only the caller's tags are used.
        clock: Returns the current Unix time in seconds; injectable for tests.

    Examples:
        ```python
        builder = EventBuilder(client_tag="notecast")
        draft = builder.build(1, pubkey_hex, "hello", [])
        draft.tags  # (('client', 'notecast'), ('published_at', '1700000000'))
        ```
    """

    def __init__(
        self,
        *,
        client_tag: str = DEFAULT_CLIENT_TAG,
        add_default_tags: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_tag = client_tag
        self._add_default_tags = add_default_tags
        self._clock = clock

    def build(
        self,
        kind: int,
        pubkey: str,
        content: str,
        tags: TagList = (),
    ) -> Event:
        """Assemble an unsigned event stamped with the current time.

        Caller tags come first in their original order, followed by the
        default tags.

        Raises:
            TypeError: If a tag is not a sequence of ``str``.
            ValueError: If *pubkey* is not 64 hex characters or *kind* is
                negative. Content and tag text are never rejected.
        """
        created_at = int(self._clock())
        all_tags = [list(tag) for tag in tags]
        if self._add_default_tags:
            all_tags.extend(default_tags(self._client_tag, created_at))
        return Event(
            pubkey=pubkey,
            created_at=created_at,
            kind=int(kind),
            tags=all_tags,
            content=content,
        )
