"""
Unit tests for services.subscriptions module.

Tests run against in-process FakeRelay instances over ws://127.0.0.1.

Tests:
- subscribe() - REQ frame, id generation and validation, preconditions
- Delivery - stored events, EOSE marker, live events, per-subscription routing
- Verification - forged events dropped unless verification is disabled
- Termination - unsubscribe, relay CLOSED, connection loss, idle timeout
"""

import asyncio
import re
from dataclasses import replace

import pytest
from prometheus_client import REGISTRY

from notecast.core.exceptions import (
    ConnectivityError,
    NotConnectedError,
    RelayTimeoutError,
    SubscriptionClosedError,
)
from notecast.models import Filter, RelayEndpoint
from notecast.nips.signing import sign_event
from notecast.services.subscriptions import (
    END_OF_STORED_EVENTS,
    SUBSCRIPTION_ID_PREFIX,
    SubscriptionManager,
    new_subscription_id,
)
from notecast.utils.transport import RelayConnection


@pytest.fixture
def subscriptions() -> SubscriptionManager:
    return SubscriptionManager()


@pytest.fixture
async def connection(manager, fake_relay):
    await manager.connect_all([fake_relay.url])
    return manager.get(fake_relay.url)


async def next_item(sub, timeout: float = 2.0):
    return await asyncio.wait_for(anext(sub), timeout)


# =============================================================================
# Subscription ids
# =============================================================================


class TestSubscriptionIds:
    def test_format(self):
        sub_id = new_subscription_id()
        assert re.fullmatch(r"notecast-[0-9a-f]{16}", sub_id)
        assert sub_id.startswith(SUBSCRIPTION_ID_PREFIX)

    def test_unique(self):
        assert len({new_subscription_id() for _ in range(100)}) == 100

    def test_marker_repr(self):
        assert repr(END_OF_STORED_EVENTS) == "END_OF_STORED_EVENTS"


# =============================================================================
# subscribe()
# =============================================================================


class TestSubscribe:
    async def test_sends_req(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, [Filter(kinds={1}, limit=10)])
        frame = await fake_relay.wait_for_frame("REQ")
        assert frame == ["REQ", sub.subscription_id, {"kinds": [1], "limit": 10}]
        assert sub.relay == fake_relay.url
        await sub.close()

    async def test_single_filter_accepted(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, Filter(kinds={7}))
        frame = await fake_relay.wait_for_frame("REQ")
        assert frame[2:] == [{"kinds": [7]}]
        await sub.close()

    async def test_explicit_id(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, Filter(), subscription_id="feed")
        assert sub.subscription_id == "feed"
        assert (await fake_relay.wait_for_frame("REQ"))[1] == "feed"
        await sub.close()

    async def test_id_too_long(self, subscriptions, connection):
        with pytest.raises(ValueError):
            await subscriptions.subscribe(connection, Filter(), subscription_id="x" * 65)

    async def test_duplicate_id(self, subscriptions, connection):
        sub = await subscriptions.subscribe(connection, Filter(), subscription_id="feed")
        with pytest.raises(ValueError, match="already in use"):
            await subscriptions.subscribe(connection, Filter(), subscription_id="feed")
        await sub.close()

    async def test_no_filters(self, subscriptions, connection):
        with pytest.raises(ValueError):
            await subscriptions.subscribe(connection, [])

    async def test_not_connected(self, subscriptions, fake_relay):
        conn = RelayConnection(RelayEndpoint(fake_relay.url, allow_insecure=True))
        with pytest.raises(NotConnectedError):
            await subscriptions.subscribe(conn, Filter())
        assert fake_relay.received == []


# =============================================================================
# Delivery
# =============================================================================


class TestDelivery:
    async def test_stored_then_eose(self, subscriptions, connection, fake_relay, signed_event):
        fake_relay.stored = [signed_event.to_dict()]
        async with await subscriptions.subscribe(connection, Filter(kinds={1})) as sub:
            assert await next_item(sub) == signed_event
            assert sub.eose_received is False
            assert await next_item(sub) is END_OF_STORED_EVENTS
            assert sub.eose_received is True

    async def test_live_events_after_eose(
        self, subscriptions, connection, fake_relay, signed_event
    ):
        async with await subscriptions.subscribe(connection, Filter()) as sub:
            assert await next_item(sub) is END_OF_STORED_EVENTS
            await fake_relay.send(["EVENT", sub.subscription_id, signed_event.to_dict()])
            assert await next_item(sub) == signed_event

    async def test_relay_send_order_preserved(
        self, subscriptions, connection, fake_relay, builder, public_key, secret_key
    ):
        events = [sign_event(builder.build(1, public_key, f"n{i}"), secret_key) for i in range(3)]
        fake_relay.stored = [e.to_dict() for e in events]
        async with await subscriptions.subscribe(connection, Filter()) as sub:
            received = [await next_item(sub) for _ in range(3)]
        assert [e.content for e in received] == ["n0", "n1", "n2"]

    async def test_subscriptions_isolated(
        self, subscriptions, connection, fake_relay, signed_event
    ):
        first = await subscriptions.subscribe(connection, Filter(), subscription_id="a")
        second = await subscriptions.subscribe(connection, Filter(), subscription_id="b")
        assert await next_item(first) is END_OF_STORED_EVENTS
        assert await next_item(second) is END_OF_STORED_EVENTS

        await fake_relay.send(["EVENT", "b", signed_event.to_dict()])
        assert await next_item(second) == signed_event
        with pytest.raises(TimeoutError):
            await next_item(first, timeout=0.1)
        await first.close()
        await second.close()


# =============================================================================
# Verification
# =============================================================================


class TestVerification:
    async def test_forged_events_dropped(
        self, subscriptions, connection, fake_relay, signed_event
    ):
        tampered = replace(signed_event, content="tampered")
        bad_sig = replace(signed_event, sig="00" * 64)
        fake_relay.stored = [tampered.to_dict(), bad_sig.to_dict(), signed_event.to_dict()]
        before = REGISTRY.get_sample_value("notecast_invalid_events_total") or 0.0

        async with await subscriptions.subscribe(connection, Filter()) as sub:
            assert await next_item(sub) == signed_event
            assert await next_item(sub) is END_OF_STORED_EVENTS

        after = REGISTRY.get_sample_value("notecast_invalid_events_total")
        assert after - before == 2

    async def test_verification_disabled(self, connection, fake_relay, signed_event):
        tampered = replace(signed_event, content="tampered")
        fake_relay.stored = [tampered.to_dict()]
        subscriptions = SubscriptionManager(verify_events=False)
        async with await subscriptions.subscribe(connection, Filter()) as sub:
            assert await next_item(sub) == tampered


# =============================================================================
# Termination
# =============================================================================


class TestTermination:
    async def test_unsubscribe_sends_close(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, Filter())
        await subscriptions.unsubscribe(sub)
        frame = await fake_relay.wait_for_frame("CLOSE")
        assert frame == ["CLOSE", sub.subscription_id]
        assert sub.closed is True
        with pytest.raises(StopAsyncIteration):
            await anext(sub)

    async def test_unsubscribe_idempotent(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, Filter())
        await subscriptions.unsubscribe(sub)
        await subscriptions.unsubscribe(sub)
        await fake_relay.wait_for_frame("CLOSE")
        await asyncio.sleep(0.05)
        assert len(fake_relay.frames("CLOSE")) == 1

    async def test_close_wakes_pending_reader(self, subscriptions, connection):
        sub = await subscriptions.subscribe(connection, Filter())
        assert await next_item(sub) is END_OF_STORED_EVENTS

        async def drain():
            return [item async for item in sub]

        task = asyncio.create_task(drain())
        await asyncio.sleep(0.05)
        await sub.close()
        assert await asyncio.wait_for(task, 1.0) == []

    async def test_relay_closed(self, subscriptions, connection, fake_relay):
        fake_relay.closed_reason = "auth-required: log in first"
        sub = await subscriptions.subscribe(connection, Filter())
        with pytest.raises(SubscriptionClosedError) as exc_info:
            await next_item(sub)
        assert exc_info.value.reason == "auth-required: log in first"
        assert exc_info.value.subscription_id == sub.subscription_id
        with pytest.raises(StopAsyncIteration):
            await anext(sub)
        await sub.close()
        assert fake_relay.frames("CLOSE") == []

    async def test_connection_lost(self, subscriptions, connection, fake_relay):
        sub = await subscriptions.subscribe(connection, Filter())
        assert await next_item(sub) is END_OF_STORED_EVENTS
        await fake_relay.drop_clients()
        with pytest.raises(ConnectivityError, match="connection lost"):
            await next_item(sub)
        # Unsubscribing after the drop is silent.
        await subscriptions.unsubscribe(sub)

    async def test_idle_timeout(self, connection):
        subscriptions = SubscriptionManager(idle_timeout=0.1)
        sub = await subscriptions.subscribe(connection, Filter())
        assert await next_item(sub) is END_OF_STORED_EVENTS
        with pytest.raises(RelayTimeoutError, match="idle"):
            await next_item(sub)
        await sub.close()

    async def test_idle_timeout_sends_close(self, connection, fake_relay):
        subscriptions = SubscriptionManager(idle_timeout=0.1)
        sub = await subscriptions.subscribe(connection, Filter())
        assert await next_item(sub) is END_OF_STORED_EVENTS
        with pytest.raises(RelayTimeoutError):
            await next_item(sub)

        frame = await fake_relay.wait_for_frame("CLOSE")
        assert frame == ["CLOSE", sub.subscription_id]
        assert sub.closed is True
        assert connection.is_connected

        # The id was released on the connection, so it can be reused.
        connection.open_subscription(sub.subscription_id)
        connection.release_subscription(sub.subscription_id)
        await subscriptions.unsubscribe(sub)
        with pytest.raises(StopAsyncIteration):
            await anext(sub)
        assert len(fake_relay.frames("CLOSE")) == 1

    async def test_per_subscription_idle_override(self, subscriptions, connection):
        sub = await subscriptions.subscribe(connection, Filter(), idle_timeout=0.1)
        assert await next_item(sub) is END_OF_STORED_EVENTS
        with pytest.raises(RelayTimeoutError):
            await next_item(sub)
        await sub.close()
