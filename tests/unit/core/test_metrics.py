"""
Unit tests for core.metrics module.

Tests:
- MetricsConfig defaults and validation
- MetricsServer start/stop lifecycle and endpoint response
- Module-level collectors
"""

import aiohttp
import pytest
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge
from pydantic import ValidationError

from notecast.core.metrics import (
    LIVE_RELAYS,
    PUBLISH_RESULTS,
    RELAY_CONNECTIONS,
    SUBSCRIPTION_EVENTS,
    MetricsConfig,
    MetricsServer,
)


# ============================================================================
# MetricsConfig Tests
# ============================================================================


class TestMetricsConfig:
    """Tests for MetricsConfig Pydantic model."""

    def test_defaults(self) -> None:
        config = MetricsConfig()
        assert config.enabled is False
        assert config.port == 9108
        assert config.host == "127.0.0.1"
        assert config.path == "/metrics"

    def test_port_minimum_validation(self) -> None:
        with pytest.raises(ValidationError):
            MetricsConfig(port=80)


# ============================================================================
# MetricsServer Tests
# ============================================================================


class TestMetricsServer:
    async def test_disabled_is_noop(self) -> None:
        server = MetricsServer(MetricsConfig(enabled=False))
        await server.start()
        assert server._runner is None
        await server.stop()

    async def test_serves_metrics(self, unused_tcp_port: int) -> None:
        config = MetricsConfig(enabled=True, port=unused_tcp_port)
        server = MetricsServer(config)
        await server.start()
        try:
            async with aiohttp.ClientSession() as session:
                url = f"http://127.0.0.1:{unused_tcp_port}/metrics"
                async with session.get(url) as resp:
                    body = await resp.text()
                    assert resp.status == 200
                    assert resp.headers["Content-Type"] == CONTENT_TYPE_LATEST
            assert "notecast_live_relays" in body
        finally:
            await server.stop()

    async def test_stop_idempotent(self, unused_tcp_port: int) -> None:
        server = MetricsServer(MetricsConfig(enabled=True, port=unused_tcp_port))
        await server.start()
        await server.stop()
        await server.stop()
        assert server._runner is None


class TestCollectors:
    def test_types(self) -> None:
        assert isinstance(RELAY_CONNECTIONS, Counter)
        assert isinstance(PUBLISH_RESULTS, Counter)
        assert isinstance(SUBSCRIPTION_EVENTS, Counter)
        assert isinstance(LIVE_RELAYS, Gauge)

    def test_labelled_counters_accept_outcome(self) -> None:
        RELAY_CONNECTIONS.labels(outcome="ok").inc(0)
        PUBLISH_RESULTS.labels(outcome="rejected").inc(0)
