"""
Unit tests for core.config module.

Tests:
- ClientConfig / TimeoutsConfig defaults and validation
- Relay list de-duplication and endpoint parsing
- ClientConfig.from_yaml() loading and error mapping
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from notecast.core.config import DEFAULT_RELAYS, ClientConfig, TimeoutsConfig
from notecast.core.exceptions import ConfigurationError
from notecast.models import RelayEndpoint


# ============================================================================
# Defaults
# ============================================================================


class TestDefaults:
    def test_client_defaults(self) -> None:
        config = ClientConfig()
        assert config.relays == list(DEFAULT_RELAYS)
        assert config.client_tag == "notecast"
        assert config.add_default_tags is True
        assert config.allow_insecure is False
        assert config.verify_events is True
        assert config.keys_env == "PRIVATE_KEY"  # pragma: allowlist secret
        assert config.metrics.enabled is False

    def test_default_relay(self) -> None:
        assert DEFAULT_RELAYS == ("wss://ammetronics.com",)

    def test_timeout_defaults(self) -> None:
        timeouts = TimeoutsConfig()
        assert timeouts.connect == 5.0
        assert timeouts.publish == 5.0
        assert timeouts.close == 5.0
        assert timeouts.subscription_idle is None


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    def test_relays_deduplicated_in_order(self) -> None:
        config = ClientConfig(
            relays=["wss://b.example", " wss://a.example ", "wss://b.example", ""]
        )
        assert config.relays == ["wss://b.example", "wss://a.example"]

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(relay=["wss://nos.lol"])  # type: ignore[call-arg]

    @pytest.mark.parametrize("value", [0, -1.0, 500])
    def test_timeout_bounds(self, value: float) -> None:
        with pytest.raises(ValidationError):
            TimeoutsConfig(connect=value)

    def test_empty_client_tag_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(client_tag="")


class TestRelayEndpoints:
    def test_parsed(self) -> None:
        config = ClientConfig(relays=["wss://nos.lol/", "wss://relay.damus.io"])
        assert config.relay_endpoints() == [
            RelayEndpoint("wss://nos.lol"),
            RelayEndpoint("wss://relay.damus.io"),
        ]

    def test_invalid_url(self) -> None:
        config = ClientConfig(relays=["https://nos.lol"])
        with pytest.raises(ConfigurationError, match="https://nos.lol"):
            config.relay_endpoints()

    def test_insecure_allowed(self) -> None:
        config = ClientConfig(relays=["ws://127.0.0.1:7777"], allow_insecure=True)
        assert config.relay_endpoints()[0].scheme == "ws"


# ============================================================================
# YAML Loading
# ============================================================================


class TestFromYaml:
    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "notecast.yaml"
        path.write_text(
            "relays:\n  - wss://nos.lol\n"
            "timeouts:\n  publish: 8.0\n"
            "client_tag: mytag\n"
            "metrics:\n  enabled: true\n  port: 9200\n"
        )
        config = ClientConfig.from_yaml(path)
        assert config.relays == ["wss://nos.lol"]
        assert config.timeouts.publish == 8.0
        assert config.timeouts.connect == 5.0
        assert config.client_tag == "mytag"
        assert config.metrics.port == 9200

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ClientConfig.from_yaml(path) == ClientConfig()

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("timeouts:\n  connect: -3\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ClientConfig.from_yaml(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ClientConfig.from_yaml(tmp_path / "nope.yaml")
