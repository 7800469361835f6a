"""Ambient infrastructure shared by every layer above the models.

Attributes:
    exceptions: Typed exception hierarchy rooted at
        [NotecastError][notecast.core.exceptions.NotecastError].
    Logger: Structured key=value / JSON logger.
    ClientConfig: Pydantic configuration, loadable from YAML.
    metrics: Prometheus counters and the optional ``/metrics`` endpoint.
"""

from .config import DEFAULT_RELAYS, ClientConfig, TimeoutsConfig
from .exceptions import (
    ConfigurationError,
    ConnectError,
    ConnectivityError,
    InvalidKeyFormatError,
    NotConnectedError,
    NotecastError,
    ProtocolError,
    PublishingError,
    PublishRejectedError,
    PublishTimeoutError,
    RelayTimeoutError,
    SigningError,
    SubscriptionClosedError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import MetricsConfig, MetricsServer
from .yaml import load_yaml


__all__ = [
    "DEFAULT_RELAYS",
    "ClientConfig",
    "ConfigurationError",
    "ConnectError",
    "ConnectivityError",
    "InvalidKeyFormatError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NotConnectedError",
    "NotecastError",
    "ProtocolError",
    "PublishRejectedError",
    "PublishTimeoutError",
    "PublishingError",
    "RelayTimeoutError",
    "SigningError",
    "StructuredFormatter",
    "SubscriptionClosedError",
    "TimeoutsConfig",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
]
