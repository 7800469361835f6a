"""UI-facing facade over the engine.

[NostrClient][notecast.services.client.NostrClient] is the sole entry point a
front end needs: key validation, batch connect, build-sign-publish, and
subscriptions. It owns one
[RelayConnectionManager][notecast.services.relay_manager.RelayConnectionManager]
instance (no process-wide pool) and wires the publisher and subscription
manager to it. It never touches persistence or rendering.

Examples:
    ```python
    async with NostrClient(ClientConfig(relays=["wss://relay.damus.io"])) as client:
        result = await client.connect_all()
        statuses = await client.publish_note("hello", secret_key_text)
        for status in statuses:
            print(status.relay, status.success, status.message)
    ```
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from types import TracebackType
from typing import Self

from nostr_sdk import SecretKey

from notecast.core.config import ClientConfig
from notecast.core.exceptions import NotConnectedError
from notecast.core.logger import Logger
from notecast.models import ConnectResult, Event, EventKind, Filter, PublishStatus
from notecast.nips.event_builders import EventBuilder, TagList
from notecast.nips.signing import sign_event
from notecast.services.publisher import PublishCoordinator
from notecast.services.relay_manager import RelayConnectionManager
from notecast.services.subscriptions import Subscription, SubscriptionManager
from notecast.utils.keys import decode_secret, derive_public


class NostrClient:
    """Connect, publish, and subscribe against a configurable relay set.

    Args:
        config: Client configuration; defaults to ``ClientConfig()``.
        manager: Pre-built relay manager (mainly for tests). When omitted one
            is created from ``config``.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        manager: RelayConnectionManager | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        timeouts = self._config.timeouts
        self._manager = manager or RelayConnectionManager(
            connect_timeout=timeouts.connect,
            close_timeout=timeouts.close,
            allow_insecure=self._config.allow_insecure,
        )
        self._publisher = PublishCoordinator(self._manager, publish_timeout=timeouts.publish)
        self._subscriptions = SubscriptionManager(
            idle_timeout=timeouts.subscription_idle,
            verify_events=self._config.verify_events,
        )
        self._builder = EventBuilder(
            client_tag=self._config.client_tag,
            add_default_tags=self._config.add_default_tags,
        )
        self._logger = Logger("client")

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def manager(self) -> RelayConnectionManager:
        return self._manager

    @property
    def builder(self) -> EventBuilder:
        return self._builder

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Disconnect every relay."""
        await self._manager.disconnect_all()

    # -- keys ---------------------------------------------------------------

    @staticmethod
    def validate_key(value: str) -> str:
        """Validate a secret key and return its public key (64 hex chars).

        Raises:
            InvalidKeyFormatError: If *value* is not a usable secret key.
        """
        return derive_public(decode_secret(value))

    # -- relays -------------------------------------------------------------

    async def connect_all(self, urls: Iterable[str] | None = None) -> ConnectResult:
        """Connect to *urls*, or to the configured relays when omitted."""
        targets = list(urls) if urls is not None else list(self._config.relays)
        return await self._manager.connect_all(targets)

    async def disconnect(self, url: str) -> None:
        await self._manager.disconnect(url)

    @property
    def connected_relays(self) -> frozenset[str]:
        return self._manager.connected_urls

    # -- publishing ---------------------------------------------------------

    def create_event(
        self,
        kind: int,
        secret: str | SecretKey,
        content: str,
        tags: TagList = (),
    ) -> Event:
        """Validate the key, build the draft, and sign it.

        Raises:
            InvalidKeyFormatError: If *secret* is malformed.
            SigningError: If signing fails.
        """
        secret_key = decode_secret(secret) if isinstance(secret, str) else secret
        draft = self._builder.build(kind, derive_public(secret_key), content, tags)
        event = sign_event(draft, secret_key)
        self._logger.debug("event_signed", event_id=event.id[:16], kind=event.kind)
        return event

    async def publish(
        self,
        event: Event,
        targets: Iterable[str] | None = None,
    ) -> list[PublishStatus]:
        """Publish a signed event to *targets* (default: every live relay)."""
        relays = list(targets) if targets is not None else sorted(self._manager.connected_urls)
        return await self._publisher.publish(event, relays)

    async def publish_note(
        self,
        content: str,
        secret: str | SecretKey,
        *,
        tags: TagList = (),
        kind: int = EventKind.TEXT_NOTE,
        targets: Iterable[str] | None = None,
    ) -> list[PublishStatus]:
        """Build, sign, and publish in one step.

        Key and signing errors raise before anything is sent; per-relay
        failures are reported in the returned statuses.
        """
        event = self.create_event(kind, secret, content, tags)
        return await self.publish(event, targets)

    # -- subscriptions ------------------------------------------------------

    async def subscribe(
        self,
        url: str,
        filters: Sequence[Filter] | Filter,
        *,
        subscription_id: str | None = None,
    ) -> Subscription:
        """Open a subscription on the live session for *url*.

        Raises:
            NotConnectedError: *url* has no live session.
        """
        conn = self._manager.get(url)
        if conn is None:
            raise NotConnectedError(f"not connected: {url}")
        return await self._subscriptions.subscribe(conn, filters, subscription_id=subscription_id)

    async def unsubscribe(self, subscription: Subscription) -> None:
        await self._subscriptions.unsubscribe(subscription)
