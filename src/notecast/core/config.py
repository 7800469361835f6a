"""Pydantic configuration models for the notecast client.

Every field has a default, so ``ClientConfig()`` is a working configuration
and YAML files only need to override what differs.

Examples:
    ```yaml
    relays:
      - wss://relay.damus.io
      - wss://nos.lol
    timeouts:
      connect: 5.0
      publish: 8.0
    client_tag: notecast
    metrics:
      enabled: true
      port: 9108
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from notecast.models import RelayEndpoint

from .exceptions import ConfigurationError
from .metrics import MetricsConfig
from .yaml import load_yaml


DEFAULT_RELAYS = ("wss://ammetronics.com",)


class TimeoutsConfig(BaseModel):
    """Per-operation timeouts in seconds."""

    model_config = ConfigDict(extra="forbid")

    connect: float = Field(default=5.0, gt=0.0, le=120.0, description="WebSocket handshake")
    publish: float = Field(default=5.0, gt=0.0, le=120.0, description="Wait for OK per relay")
    close: float = Field(default=5.0, gt=0.0, le=60.0, description="Transport teardown")
    subscription_idle: float | None = Field(
        default=None,
        gt=0.0,
        description="End a subscription when nothing arrives for this long (None = never)",
    )


class ClientConfig(BaseModel):
    """Top-level configuration for [NostrClient][notecast.services.client.NostrClient].

    Raises:
        pydantic.ValidationError: On invalid values or unknown keys.
    """

    model_config = ConfigDict(extra="forbid")

    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    client_tag: str = Field(default="notecast", min_length=1, description="Value of the client tag")
    add_default_tags: bool = Field(default=True, description="Append client/published_at tags")
    allow_insecure: bool = Field(default=False, description="Accept ws:// relay URLs")
    verify_events: bool = Field(default=True, description="Drop events failing id/sig checks")
    keys_env: str = Field(default="PRIVATE_KEY", min_length=1)  # pragma: allowlist secret
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("relays")
    @classmethod
    def _dedupe_relays(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(url.strip() for url in value if url.strip()))

    def relay_endpoints(self) -> list[RelayEndpoint]:
        """Parse ``relays`` into endpoints.

        Raises:
            ConfigurationError: If any configured URL is invalid.
        """
        endpoints = []
        for url in self.relays:
            try:
                endpoints.append(RelayEndpoint(url, allow_insecure=self.allow_insecure))
            except ValueError as e:
                raise ConfigurationError(f"Invalid relay URL {url!r}: {e}") from e
        return endpoints

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> Self:
        """Load and validate a configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML is malformed or fails validation.
        """
        data = load_yaml(config_path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
