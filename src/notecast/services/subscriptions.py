"""Filtered subscriptions delivered as async iterators.

[SubscriptionManager.subscribe()][notecast.services.subscriptions.SubscriptionManager.subscribe]
sends ``["REQ", <id>, <filter>, ...]`` on a live session and returns a
[Subscription][notecast.services.subscriptions.Subscription] handle. Iterating
the handle yields, in relay send order:

* [Event][notecast.models.event.Event] values as they arrive, and
* the [END_OF_STORED_EVENTS][notecast.services.subscriptions.END_OF_STORED_EVENTS]
  marker once, when the relay finishes the historical backfill.

No reordering or deduplication is performed. Events whose id or signature
does not verify are dropped with a ``relay_event_invalid`` warning (unless
``verify_events=False``). The sequence is unbounded; it ends when the caller
unsubscribes, or with an exception when the relay sends
``CLOSED`` ([SubscriptionClosedError][notecast.core.exceptions.SubscriptionClosedError]),
the session drops ([ConnectivityError][notecast.core.exceptions.ConnectivityError]),
or the optional idle timeout elapses
([RelayTimeoutError][notecast.core.exceptions.RelayTimeoutError]).

Examples:
    ```python
    subs = SubscriptionManager()
    conn = manager.get("wss://relay.damus.io")
    async with await subs.subscribe(conn, [Filter(kinds={1}, limit=20)]) as sub:
        async for item in sub:
            if item is END_OF_STORED_EVENTS:
                print("caught up")
                continue
            print(item.content)
    ```
"""

from __future__ import annotations

import asyncio
import secrets
from collections.abc import Sequence
from enum import Enum
from types import TracebackType
from typing import Final, Literal, Self

from notecast.core.exceptions import (
    ConnectivityError,
    NotConnectedError,
    RelayTimeoutError,
    SubscriptionClosedError,
)
from notecast.core.logger import Logger
from notecast.core.metrics import INVALID_EVENTS, SUBSCRIPTION_EVENTS
from notecast.models import Event, Filter
from notecast.nips.signing import verify_event
from notecast.utils.protocol import (
    ClosedMessage,
    EoseMessage,
    EventMessage,
    encode_close_message,
    encode_req_message,
    validate_subscription_id,
)
from notecast.utils.transport import ConnectionLost, RelayConnection, SubscriptionItem


SUBSCRIPTION_ID_PREFIX: Final[str] = "notecast-"


class _EndOfStoredEvents(Enum):
    """Singleton type for the EOSE marker."""

    TOKEN = "EOSE"

    def __repr__(self) -> str:
        return "END_OF_STORED_EVENTS"


END_OF_STORED_EVENTS: Final = _EndOfStoredEvents.TOKEN
"""Yielded once per subscription when the relay sends ``EOSE``."""

SubscriptionDelivery = Event | Literal[_EndOfStoredEvents.TOKEN]


def new_subscription_id() -> str:
    """Return a fresh random subscription id (``notecast-`` + 16 hex chars)."""
    return SUBSCRIPTION_ID_PREFIX + secrets.token_hex(8)


class Subscription:
    """Handle for one open ``REQ`` on one relay.

    Created by [SubscriptionManager.subscribe()][notecast.services.subscriptions.SubscriptionManager.subscribe];
    not meant to be constructed directly.

    Attributes:
        subscription_id: Identifier sent in the ``REQ`` frame.
        filters: Filters sent in the ``REQ`` frame.
        relay: URL of the relay serving the subscription.
        eose_received: True once the backfill marker was delivered.
    """

    def __init__(
        self,
        connection: RelayConnection,
        subscription_id: str,
        filters: Sequence[Filter],
        queue: asyncio.Queue[SubscriptionItem],
        *,
        idle_timeout: float | None = None,
        verify_events: bool = True,
    ) -> None:
        self._connection = connection
        self.subscription_id = subscription_id
        self.filters = tuple(filters)
        self._queue = queue
        self._idle_timeout = idle_timeout
        self._verify_events = verify_events
        self._closed = False
        # Set when the relay (CLOSED) or the transport ended the REQ; no CLOSE is owed.
        self._ended_remotely = False
        self.eose_received = False
        self._logger = Logger("subscriptions").bind(
            relay=connection.url, subscription=subscription_id
        )

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id!r}, relay={self.relay!r}, "
            f"closed={self._closed})"
        )

    @property
    def relay(self) -> str:
        return self._connection.url

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> SubscriptionDelivery:
        while True:
            if self._closed or self._ended_remotely:
                raise StopAsyncIteration
            item = await self._next_item()

            if isinstance(item, EventMessage):
                if self._verify_events and not verify_event(item.event):
                    INVALID_EVENTS.inc()
                    self._logger.warning("relay_event_invalid", event_id=item.event.id[:16])
                    continue
                SUBSCRIPTION_EVENTS.inc()
                return item.event
            if isinstance(item, EoseMessage):
                self.eose_received = True
                self._logger.debug("subscription_eose")
                return END_OF_STORED_EVENTS
            if isinstance(item, ClosedMessage):
                self._ended_remotely = True
                self._logger.warning("subscription_closed_by_relay", reason=item.message)
                raise SubscriptionClosedError(self.subscription_id, item.message)
            if isinstance(item, ConnectionLost):
                self._ended_remotely = True
                self._logger.warning("subscription_connection_lost", reason=item.reason)
                raise ConnectivityError(f"connection lost: {item.reason}")
            # Sentinel pushed by close() to wake a pending reader.
            raise StopAsyncIteration

    async def _next_item(self) -> SubscriptionItem:
        if self._idle_timeout is None:
            return await self._queue.get()
        try:
            async with asyncio.timeout(self._idle_timeout):
                return await self._queue.get()
        except TimeoutError:
            self._logger.info("subscription_idle_timeout", idle_s=self._idle_timeout)
            await self.close()
            raise RelayTimeoutError(
                f"subscription {self.subscription_id} idle for {self._idle_timeout}s"
            ) from None

    async def close(self) -> None:
        """Send ``CLOSE`` (if still connected) and stop iteration. Idempotent.

        ``CLOSE`` is skipped when the relay already ended the subscription
        or the session dropped.
        """
        if self._closed:
            return
        self._closed = True
        self._connection.release_subscription(self.subscription_id)
        self._queue.put_nowait(None)  # type: ignore[arg-type]  # wake a blocked __anext__

        if self._ended_remotely or not self._connection.is_connected:
            self._logger.debug("subscription_released")
            return
        try:
            await self._connection.send(encode_close_message(self.subscription_id))
        except ConnectivityError as e:
            self._logger.debug("subscription_close_not_sent", error=str(e))
            return
        self._logger.info("subscription_closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class SubscriptionManager:
    """Opens and closes [Subscription][notecast.services.subscriptions.Subscription] handles.

    Args:
        idle_timeout: Default idle bound for new subscriptions (``None`` = none).
        verify_events: Drop inbound events that fail id or signature checks.
    """

    def __init__(
        self, *, idle_timeout: float | None = None, verify_events: bool = True
    ) -> None:
        self._idle_timeout = idle_timeout
        self._verify_events = verify_events
        self._logger = Logger("subscriptions")

    async def subscribe(
        self,
        connection: RelayConnection,
        filters: Sequence[Filter] | Filter,
        *,
        subscription_id: str | None = None,
        idle_timeout: float | None = None,
    ) -> Subscription:
        """Send a ``REQ`` on *connection* and return the handle.

        Args:
            connection: A connected session, typically from
                [RelayConnectionManager.get()][notecast.services.relay_manager.RelayConnectionManager.get].
            filters: One filter or a sequence of filters (ORed by the relay).
            subscription_id: Explicit id; a random one is generated if omitted.
            idle_timeout: Overrides the manager default for this subscription.

        Raises:
            NotConnectedError: *connection* is not connected.
            ValueError: No filters, or an invalid/duplicate subscription id.
            ConnectivityError: Sending the ``REQ`` failed.
        """
        if isinstance(filters, Filter):
            filters = [filters]
        sub_id = subscription_id if subscription_id is not None else new_subscription_id()
        validate_subscription_id(sub_id)
        frame = encode_req_message(sub_id, filters)

        if connection is None or not connection.is_connected:
            raise NotConnectedError("not connected")

        queue = connection.open_subscription(sub_id)
        try:
            await connection.send(frame)
        except BaseException:
            connection.release_subscription(sub_id)
            raise

        self._logger.info(
            "subscription_opened",
            relay=connection.url,
            subscription=sub_id,
            filters=len(filters),
        )
        return Subscription(
            connection,
            sub_id,
            filters,
            queue,
            idle_timeout=idle_timeout if idle_timeout is not None else self._idle_timeout,
            verify_events=self._verify_events,
        )

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Close *subscription*. Idempotent; safe after the session dropped."""
        await subscription.close()
