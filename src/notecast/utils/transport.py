"""WebSocket session to a single relay.

[RelayConnection][notecast.utils.transport.RelayConnection] owns one
``aiohttp`` client session and WebSocket, drives the
[ConnectionState][notecast.models.constants.ConnectionState] machine, and
runs one background reader task that decodes inbound frames and routes them:

* ``OK`` -> the pending acknowledgement futures for that event id
* ``EVENT`` / ``EOSE`` / ``CLOSED`` -> the queue of that subscription id
* ``NOTICE`` -> the log and any registered notice listeners
* ``AUTH`` -> remembered as ``auth_challenge`` (not answered)

When the relay closes the socket or the transport fails, pending
acknowledgements fail with
[ConnectivityError][notecast.core.exceptions.ConnectivityError], every open
subscription queue receives a terminal
[ConnectionLost][notecast.utils.transport.ConnectionLost] item, the transport
is released, and the owner's ``on_disconnect`` callback is awaited.

A connection is never re-opened implicitly: after it drops, ``send()`` raises
[NotConnectedError][notecast.core.exceptions.NotConnectedError] until the
owner calls ``connect()`` again.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Final

import aiohttp

from notecast.core.exceptions import (
    ConnectError,
    ConnectivityError,
    NotConnectedError,
    ProtocolError,
    RelayTimeoutError,
)
from notecast.core.logger import Logger
from notecast.models import ConnectionState, RelayEndpoint
from notecast.utils.protocol import (
    AuthMessage,
    ClosedMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    OkMessage,
    RelayMessage,
    parse_relay_message,
)


DEFAULT_CONNECT_TIMEOUT: Final[float] = 5.0
DEFAULT_CLOSE_TIMEOUT: Final[float] = 5.0
DEFAULT_HEARTBEAT: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class ConnectionLost:
    """Terminal queue item: the session ended while a subscription was open."""

    reason: str


SubscriptionItem = EventMessage | EoseMessage | ClosedMessage | ConnectionLost
DisconnectCallback = Callable[["RelayConnection", str], Awaitable[None]]
NoticeListener = Callable[[str, str], None]


class RelayConnection:
    """One WebSocket session to one relay endpoint.

    Args:
        endpoint: Validated relay URL.
        on_disconnect: Awaited with ``(connection, reason)`` when the relay
            closes the socket or the transport fails. Not called for an
            explicit [close()][notecast.utils.transport.RelayConnection.close].
        close_timeout: Upper bound for releasing the transport.
        heartbeat: WebSocket ping interval in seconds (``None`` disables).

    Examples:
        ```python
        conn = RelayConnection(RelayEndpoint("wss://relay.example.com"))
        await conn.connect(timeout=5.0)
        await conn.send('["CLOSE","x"]')
        await conn.close()
        ```
    """

    def __init__(
        self,
        endpoint: RelayEndpoint,
        *,
        on_disconnect: DisconnectCallback | None = None,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        heartbeat: float | None = DEFAULT_HEARTBEAT,
    ) -> None:
        self._endpoint = endpoint
        self._on_disconnect = on_disconnect
        self._close_timeout = close_timeout
        self._heartbeat = heartbeat
        self._logger = Logger("transport").bind(relay=endpoint.url)

        self._state = ConnectionState.DISCONNECTED
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None

        self._pending_oks: dict[str, list[asyncio.Future[OkMessage]]] = {}
        self._subscriptions: dict[str, asyncio.Queue[SubscriptionItem]] = {}
        self._notice_listeners: list[NoticeListener] = []
        self.auth_challenge: str | None = None

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url!r}, state={self._state.value})"

    @property
    def endpoint(self) -> RelayEndpoint:
        return self._endpoint

    @property
    def url(self) -> str:
        return self._endpoint.url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # -- lifecycle ----------------------------------------------------------

    async def connect(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> None:  # noqa: ASYNC109
        """Open the WebSocket and start the reader task.

        No-op if already connected.

        Raises:
            RelayTimeoutError: The handshake did not complete within *timeout*.
            ConnectError: The transport or relay rejected the handshake, or a
                connect is already in progress.
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._state is ConnectionState.CONNECTING:
            raise ConnectError(f"Connect already in progress: {self.url}")

        self._state = ConnectionState.CONNECTING
        self._logger.debug("relay_connecting", timeout_s=timeout)
        session = aiohttp.ClientSession()

        try:
            async with asyncio.timeout(timeout):
                ws = await session.ws_connect(self.url, heartbeat=self._heartbeat)
        except TimeoutError:
            await self._close_session(session)
            self._state = ConnectionState.DISCONNECTED
            raise RelayTimeoutError(f"Connection timeout after {timeout}s: {self.url}") from None
        except asyncio.CancelledError:
            await self._close_session(session)
            self._state = ConnectionState.DISCONNECTED
            raise
        except (aiohttp.ClientError, OSError, ValueError) as e:
            await self._close_session(session)
            self._state = ConnectionState.DISCONNECTED
            raise ConnectError(f"Connection failed: {self.url} ({e})") from e

        self._session = session
        self._ws = ws
        self.auth_challenge = None
        self._state = ConnectionState.CONNECTED
        self._reader = asyncio.create_task(self._read_loop(ws), name=f"relay-reader:{self.url}")
        self._logger.debug("relay_handshake_done")

    async def close(self) -> None:
        """Stop the reader and release the transport. Idempotent.

        Pending acknowledgements fail and open subscriptions receive a
        terminal [ConnectionLost][notecast.utils.transport.ConnectionLost].
        """
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        was_open = self._ws is not None
        self._state = ConnectionState.DISCONNECTED
        self._fail_waiters("connection closed")
        await self._release_transport()
        if was_open:
            self._logger.debug("relay_closed")

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        reason = "connection closed by relay"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"transport error: {ws.exception()}"
                    break
        except (aiohttp.ClientError, OSError) as e:
            reason = f"transport error: {e}"
        except Exception as e:
            # close() cancels the reader and does its own cleanup.
            reason = f"reader failed: {e!r}"
            self._logger.error("relay_reader_failed", error=repr(e))

        self._reader = None
        self._state = ConnectionState.DISCONNECTED
        self._logger.warning("relay_disconnected", reason=reason)
        self._fail_waiters(reason)
        await self._release_transport()
        if self._on_disconnect is not None:
            await self._on_disconnect(self, reason)

    async def _release_transport(self) -> None:
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        if ws is not None:
            # aiohttp can raise ClientError, ServerDisconnectedError, etc.
            # while closing an already broken socket.
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(), timeout=self._close_timeout)
        if session is not None:
            await self._close_session(session)

    async def _close_session(self, session: aiohttp.ClientSession) -> None:
        with contextlib.suppress(Exception):
            await asyncio.wait_for(session.close(), timeout=self._close_timeout)

    def _fail_waiters(self, reason: str) -> None:
        pending, self._pending_oks = self._pending_oks, {}
        for futures in pending.values():
            for future in futures:
                if not future.done():
                    future.set_exception(ConnectivityError(f"connection lost: {reason}"))

        subscriptions, self._subscriptions = self._subscriptions, {}
        for queue in subscriptions.values():
            queue.put_nowait(ConnectionLost(reason))

    # -- outbound -----------------------------------------------------------

    async def send(self, frame: str) -> None:
        """Send one text frame.

        Raises:
            NotConnectedError: The session is not in the ``CONNECTED`` state.
            ConnectivityError: The transport failed while sending.
        """
        ws = self._ws
        if self._state is not ConnectionState.CONNECTED or ws is None or ws.closed:
            raise NotConnectedError(f"not connected: {self.url}")
        try:
            await ws.send_str(frame)
        except (aiohttp.ClientError, OSError) as e:
            raise ConnectivityError(f"send failed: {self.url} ({e})") from e

    # -- routing ------------------------------------------------------------

    def expect_ok(self, event_id: str) -> asyncio.Future[OkMessage]:
        """Register interest in the ``OK`` frame for *event_id*.

        Several waiters for the same id are all resolved by one ``OK``.
        """
        future: asyncio.Future[OkMessage] = asyncio.get_running_loop().create_future()
        self._pending_oks.setdefault(event_id, []).append(future)
        return future

    def discard_ok(self, event_id: str, future: asyncio.Future[OkMessage]) -> None:
        """Drop a waiter registered with ``expect_ok`` (after timeout or cancel)."""
        futures = self._pending_oks.get(event_id)
        if not futures:
            return
        with contextlib.suppress(ValueError):
            futures.remove(future)
        if not futures:
            del self._pending_oks[event_id]

    def open_subscription(self, subscription_id: str) -> asyncio.Queue[SubscriptionItem]:
        """Create the delivery queue for *subscription_id*.

        Raises:
            NotConnectedError: The session is not connected.
            ValueError: The id is already in use on this connection.
        """
        if not self.is_connected:
            raise NotConnectedError(f"not connected: {self.url}")
        if subscription_id in self._subscriptions:
            raise ValueError(f"subscription id already in use: {subscription_id}")
        queue: asyncio.Queue[SubscriptionItem] = asyncio.Queue()
        self._subscriptions[subscription_id] = queue
        return queue

    def release_subscription(self, subscription_id: str) -> None:
        self._subscriptions.pop(subscription_id, None)

    def add_notice_listener(self, listener: NoticeListener) -> None:
        """Call ``listener(url, message)`` for every ``NOTICE`` frame."""
        self._notice_listeners.append(listener)

    def _dispatch(self, text: str) -> None:
        try:
            message: RelayMessage = parse_relay_message(text)
        except ProtocolError as e:
            self._logger.warning("relay_frame_dropped", error=str(e))
            return

        if isinstance(message, OkMessage):
            for future in self._pending_oks.pop(message.event_id, []):
                if not future.done():
                    future.set_result(message)
        elif isinstance(message, EventMessage | EoseMessage | ClosedMessage):
            queue = self._subscriptions.get(message.subscription_id)
            if queue is None:
                self._logger.debug("relay_frame_unrouted", subscription=message.subscription_id)
                return
            if isinstance(message, ClosedMessage):
                del self._subscriptions[message.subscription_id]
            queue.put_nowait(message)
        elif isinstance(message, NoticeMessage):
            self._logger.info("relay_notice", message=message.message)
            for listener in list(self._notice_listeners):
                try:
                    listener(self.url, message.message)
                except Exception as e:
                    self._logger.warning("notice_listener_failed", error=repr(e))
        elif isinstance(message, AuthMessage):
            self.auth_challenge = message.challenge
            self._logger.debug("relay_auth_challenge")
