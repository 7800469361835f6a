"""
Pytest configuration and shared fixtures for notecast tests.

Provides:
- Test keys and signed sample events
- Relay manager fixtures wired to the in-process fake relay
- Metric reset between tests
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import pytest
from nostr_sdk import SecretKey

from notecast.models import Event, EventKind
from notecast.nips.event_builders import EventBuilder
from notecast.nips.signing import sign_event
from notecast.services.relay_manager import RelayConnectionManager
from notecast.utils.keys import decode_secret, derive_public


pytest_plugins = ["fixtures.relays"]


# ============================================================================
# Test Keys (DO NOT USE IN PRODUCTION)
# ============================================================================

VALID_HEX_KEY = (
    "67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa"  # pragma: allowlist secret
)
VALID_NSEC_KEY = (
    "nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5"  # pragma: allowlist secret
)
FIXED_TIME = 1_700_000_000


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Key and Event Fixtures
# ============================================================================


@pytest.fixture
def secret_key() -> SecretKey:
    return decode_secret(VALID_HEX_KEY)


@pytest.fixture
def public_key(secret_key: SecretKey) -> str:
    return derive_public(secret_key)


@pytest.fixture
def builder() -> EventBuilder:
    """Builder with a frozen clock."""
    return EventBuilder(client_tag="notecast", clock=lambda: FIXED_TIME)


@pytest.fixture
def draft_event(builder: EventBuilder, public_key: str) -> Event:
    return builder.build(EventKind.TEXT_NOTE, public_key, "hello nostr", [["t", "test"]])


@pytest.fixture
def signed_event(draft_event: Event, secret_key: SecretKey) -> Event:
    return sign_event(draft_event, secret_key)


# ============================================================================
# Relay Manager Fixtures
# ============================================================================


@pytest.fixture
async def manager() -> AsyncIterator[RelayConnectionManager]:
    """Manager accepting ws:// URLs with short timeouts; disconnects on teardown."""
    async with RelayConnectionManager(
        connect_timeout=0.5,
        close_timeout=0.5,
        allow_insecure=True,
    ) as mgr:
        yield mgr
