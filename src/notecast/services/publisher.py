"""Concurrent publish fan-out with per-relay acknowledgement tracking.

For every target relay the coordinator sends ``["EVENT", <event>]`` on the
live session and waits for the matching ``["OK", <id>, <bool>, <msg>]``,
bounded by ``publish_timeout``. Targets run concurrently, so a silent relay
delays the overall result by at most its own timeout window.

The coordinator only reports; deciding whether a publish "succeeded"
overall (e.g. at least one ``success=True``) is the caller's call.

Failure messages use stable prefixes:

* ``not connected`` -- no live session; nothing was sent
* ``timeout: ...`` -- no ``OK`` within the window
* ``rejected: ...`` -- the relay answered ``OK false`` (its reason follows)
* ``connection lost: ...`` / ``send failed: ...`` -- transport failure
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from notecast.core.exceptions import (
    ConnectivityError,
    NotConnectedError,
    PublishRejectedError,
    PublishTimeoutError,
)
from notecast.core.logger import Logger
from notecast.core.metrics import PUBLISH_RESULTS
from notecast.models import Event, PublishStatus
from notecast.services.relay_manager import RelayConnectionManager
from notecast.utils.protocol import encode_event_message
from notecast.utils.transport import RelayConnection


DEFAULT_PUBLISH_TIMEOUT = 5.0
NOT_CONNECTED_MESSAGE = "not connected"


class PublishCoordinator:
    """Publishes signed events through a [RelayConnectionManager][notecast.services.relay_manager.RelayConnectionManager].

    Args:
        manager: Source of live sessions. Never asked to connect.
        publish_timeout: Seconds to wait for each relay's ``OK``.
    """

    def __init__(
        self,
        manager: RelayConnectionManager,
        *,
        publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT,
    ) -> None:
        self._manager = manager
        self._publish_timeout = publish_timeout
        self._logger = Logger("publisher")

    async def publish(self, event: Event, targets: Iterable[str]) -> list[PublishStatus]:
        """Send *event* to every target and collect one status per target.

        Args:
            event: A signed event.
            targets: Relay URLs. Duplicates are collapsed, keeping the first
                occurrence; the result follows that order.

        Returns:
            One [PublishStatus][notecast.models.publish.PublishStatus] per
            distinct target, in target order.

        Raises:
            ValueError: If *event* is not signed.
        """
        if not event.is_signed:
            raise ValueError("cannot publish an unsigned event")

        ordered = list(dict.fromkeys(targets))
        frame = encode_event_message(event)

        statuses = await asyncio.gather(
            *(self._publish_one(event, frame, url) for url in ordered)
        )

        accepted = sum(1 for status in statuses if status.success)
        self._logger.info(
            "publish_completed",
            event_id=event.id[:16],
            targets=len(ordered),
            accepted=accepted,
        )
        return list(statuses)

    async def _publish_one(self, event: Event, frame: str, url: str) -> PublishStatus:
        conn = self._manager.get(url)
        if conn is None:
            PUBLISH_RESULTS.labels(outcome="not_connected").inc()
            self._logger.debug("publish_skipped", relay=url, reason=NOT_CONNECTED_MESSAGE)
            return PublishStatus(relay=url, success=False, message=NOT_CONNECTED_MESSAGE)

        try:
            message = await self.send_and_wait(conn, event, frame)
        except NotConnectedError:
            PUBLISH_RESULTS.labels(outcome="not_connected").inc()
            return PublishStatus(relay=url, success=False, message=NOT_CONNECTED_MESSAGE)
        except PublishRejectedError as e:
            PUBLISH_RESULTS.labels(outcome="rejected").inc()
            self._logger.warning("publish_rejected", relay=url, reason=e.reason)
            return PublishStatus(relay=url, success=False, message=str(e))
        except PublishTimeoutError as e:
            PUBLISH_RESULTS.labels(outcome="timeout").inc()
            self._logger.warning("publish_timeout", relay=url, timeout_s=self._publish_timeout)
            return PublishStatus(relay=url, success=False, message=str(e))
        except ConnectivityError as e:
            PUBLISH_RESULTS.labels(outcome="error").inc()
            self._logger.warning("publish_failed", relay=url, error=str(e))
            return PublishStatus(relay=url, success=False, message=str(e))

        PUBLISH_RESULTS.labels(outcome="ok").inc()
        self._logger.info("publish_ok", relay=url, event_id=event.id[:16])
        return PublishStatus(relay=url, success=True, message=message or None)

    async def send_and_wait(self, conn: RelayConnection, event: Event, frame: str) -> str:
        """Send *frame* on *conn* and wait for the ``OK`` for *event*.

        Returns:
            The relay's message on acceptance (possibly empty).

        Raises:
            NotConnectedError: The session dropped before sending.
            ConnectivityError: The transport failed while sending or waiting.
            PublishRejectedError: The relay answered ``OK false``.
            PublishTimeoutError: No ``OK`` within ``publish_timeout`` (the send
                itself counts against the same bound).
        """
        # Register before sending so a fast OK cannot be missed.
        waiter = conn.expect_ok(event.id)
        try:
            async with asyncio.timeout(self._publish_timeout):
                await conn.send(frame)
                ok = await waiter
        except TimeoutError:
            raise PublishTimeoutError(
                f"timeout: no OK within {self._publish_timeout}s"
            ) from None
        finally:
            conn.discard_ok(event.id, waiter)
            if not waiter.done():
                waiter.cancel()
            elif not waiter.cancelled():
                waiter.exception()  # mark a transport failure as retrieved

        if not ok.accepted:
            raise PublishRejectedError(ok.message)
        return ok.message
