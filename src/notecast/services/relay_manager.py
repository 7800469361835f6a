"""Live relay sessions keyed by endpoint URL.

[RelayConnectionManager][notecast.services.relay_manager.RelayConnectionManager]
is the single owner of [RelayConnection][notecast.utils.transport.RelayConnection]
objects. Its live-session map is the only shared mutable state in the engine:

* written on connect success, explicit disconnect, and unsolicited
  disconnect -- always under one ``asyncio.Lock``;
* read lock-free by [get()][notecast.services.relay_manager.RelayConnectionManager.get]
  (a single dict lookup cannot observe a half-applied write on the event loop).

Only sessions that completed their handshake are ever registered. A failed
attempt leaves nothing behind: its transport is closed before the failure
is reported.

Examples:
    ```python
    manager = RelayConnectionManager(connect_timeout=5.0)
    result = await manager.connect_all(["wss://relay.damus.io", "wss://nos.lol"])
    result.connected   # frozenset({'wss://relay.damus.io'})
    result.failures    # {'wss://nos.lol': 'timeout: ...'}
    await manager.disconnect_all()
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from types import TracebackType
from typing import Self

from notecast.core.exceptions import ConnectError, RelayTimeoutError
from notecast.core.logger import Logger
from notecast.core.metrics import LIVE_RELAYS, RELAY_CONNECTIONS
from notecast.models import ConnectResult, RelayEndpoint
from notecast.utils.transport import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    RelayConnection,
)


class RelayConnectionManager:
    """Owns one [RelayConnection][notecast.utils.transport.RelayConnection] per relay URL.

    Args:
        connect_timeout: Per-relay handshake bound in seconds.
        close_timeout: Per-relay transport teardown bound in seconds.
        allow_insecure: Accept ``ws://`` URLs (local relays and tests).

    Note:
        URLs are normalized through
        [RelayEndpoint][notecast.models.relay.RelayEndpoint] before use, but
        results are reported under the string the caller passed so the
        caller can correlate them without normalizing.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        allow_insecure: bool = False,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._allow_insecure = allow_insecure
        self._live: dict[str, RelayConnection] = {}
        self._lock = asyncio.Lock()
        self._logger = Logger("relay_manager")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect_all()

    # -- queries ------------------------------------------------------------

    def _normalize(self, url: str) -> str | None:
        try:
            return RelayEndpoint(url, allow_insecure=self._allow_insecure).url
        except (TypeError, ValueError):
            return None

    def get(self, url: str) -> RelayConnection | None:
        """Return the live session for *url*, or ``None``. Never connects."""
        key = self._normalize(url)
        if key is None:
            return None
        conn = self._live.get(key)
        if conn is None or not conn.is_connected:
            return None
        return conn

    @property
    def connected_urls(self) -> frozenset[str]:
        """Normalized URLs of every registered session."""
        return frozenset(self._live)

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.get(url) is not None

    # -- connect ------------------------------------------------------------

    async def connect_all(self, urls: Iterable[str]) -> ConnectResult:
        """Connect to every URL concurrently; report successes and failures.

        Each attempt is bounded by ``connect_timeout``. Invalid URLs fail
        without a network attempt. URLs that already have a live session
        are reported as connected without a new handshake. Duplicate input
        URLs are attempted once.

        Returns:
            [ConnectResult][notecast.models.publish.ConnectResult] covering
            every distinct input URL exactly once.
        """
        targets = list(dict.fromkeys(urls))
        if not targets:
            return ConnectResult()

        outcomes = await asyncio.gather(*(self._connect_one(url) for url in targets))

        connected = {url for url, reason in zip(targets, outcomes, strict=True) if reason is None}
        failures = {
            url: reason for url, reason in zip(targets, outcomes, strict=True) if reason is not None
        }
        self._logger.info(
            "connect_all_completed",
            requested=len(targets),
            connected=len(connected),
            failed=len(failures),
        )
        return ConnectResult(connected=frozenset(connected), failures=failures)

    async def _connect_one(self, url: str) -> str | None:
        """Connect a single relay; return ``None`` on success or a failure reason."""
        try:
            endpoint = RelayEndpoint(url, allow_insecure=self._allow_insecure)
        except (TypeError, ValueError) as e:
            RELAY_CONNECTIONS.labels(outcome="invalid").inc()
            self._logger.warning("relay_url_invalid", url=url, error=str(e))
            return f"connect error: invalid url ({e})"

        if self.get(endpoint.url) is not None:
            return None

        conn = RelayConnection(
            endpoint,
            on_disconnect=self._handle_unsolicited_disconnect,
            close_timeout=self._close_timeout,
        )
        try:
            await conn.connect(timeout=self._connect_timeout)
        except RelayTimeoutError as e:
            RELAY_CONNECTIONS.labels(outcome="timeout").inc()
            self._logger.warning("relay_connect_timeout", url=endpoint.url, error=str(e))
            return f"timeout: {e}"
        except ConnectError as e:
            RELAY_CONNECTIONS.labels(outcome="error").inc()
            self._logger.warning("relay_connect_failed", url=endpoint.url, error=str(e))
            return f"connect error: {e}"

        async with self._lock:
            existing = self._live.get(endpoint.url)
            if existing is not None and existing.is_connected:
                # A concurrent call registered the same relay first.
                duplicate = conn
            else:
                duplicate = None
                self._live[endpoint.url] = conn
                LIVE_RELAYS.set(len(self._live))

        if duplicate is not None:
            await duplicate.close()
        else:
            RELAY_CONNECTIONS.labels(outcome="ok").inc()
            self._logger.info("relay_connected", url=endpoint.url)
        return None

    # -- disconnect ---------------------------------------------------------

    async def disconnect(self, url: str) -> None:
        """Remove *url* from the live map and release its transport. Idempotent."""
        key = self._normalize(url)
        if key is None:
            return
        async with self._lock:
            conn = self._live.pop(key, None)
            LIVE_RELAYS.set(len(self._live))
        if conn is not None:
            await conn.close()
            self._logger.info("relay_disconnected", url=key)

    async def disconnect_all(self) -> None:
        """Close every live session."""
        async with self._lock:
            conns = list(self._live.values())
            self._live.clear()
            LIVE_RELAYS.set(0)
        await asyncio.gather(*(conn.close() for conn in conns))

    async def _handle_unsolicited_disconnect(self, conn: RelayConnection, reason: str) -> None:
        async with self._lock:
            if self._live.get(conn.url) is conn:
                del self._live[conn.url]
                LIVE_RELAYS.set(len(self._live))
        self._logger.warning("relay_lost", url=conn.url, reason=reason)
