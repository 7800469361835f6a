"""
Prometheus metrics for relay sessions, publishes, and subscriptions.

Module-level metric objects are process-wide singletons (thread-safe) shared
by every [NostrClient][notecast.services.client.NostrClient] in the process.
The relay manager, publisher, and subscription manager record into them as a
side effect; nothing is exposed over HTTP unless a
[MetricsServer][notecast.core.metrics.MetricsServer] is started (the CLI
``listen`` command does so when ``metrics.enabled`` is set).

Architecture:
    RELAY_CONNECTIONS:      Connect attempts by outcome (ok/timeout/error/invalid).
    PUBLISH_RESULTS:        Per-relay publish outcomes.
    SUBSCRIPTION_EVENTS:    Events delivered to subscription handles.
    INVALID_EVENTS:         Inbound events dropped for a bad id or signature.
    LIVE_RELAYS:            Sessions currently in the live-session map.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint."""

    enabled: bool = Field(default=False, description="Expose metrics over HTTP")
    port: int = Field(default=9108, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


RELAY_CONNECTIONS = Counter(
    "notecast_relay_connections_total",
    "Relay connect attempts by outcome",
    ["outcome"],
)

PUBLISH_RESULTS = Counter(
    "notecast_publish_results_total",
    "Per-relay publish outcomes",
    ["outcome"],
)

SUBSCRIPTION_EVENTS = Counter(
    "notecast_subscription_events_total",
    "Events delivered to subscription handles",
)

INVALID_EVENTS = Counter(
    "notecast_invalid_events_total",
    "Inbound events dropped because the id or signature did not verify",
)

LIVE_RELAYS = Gauge(
    "notecast_live_relays",
    "Relay sessions currently registered as live",
)


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Release the bound port. Idempotent."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )
