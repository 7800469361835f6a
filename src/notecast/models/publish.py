"""Transient result values returned by connect and publish fan-outs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class PublishStatus:
    """Outcome of publishing one event to one relay.

    Attributes:
        relay: Relay URL as given by the caller.
        success: True if the relay answered ``OK`` with ``true``.
        message: Failure reason, or the relay-supplied notice on success.
            ``None`` when the relay accepted without a message.
    """

    relay: str
    success: bool
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ConnectResult:
    """Aggregated outcome of a batch connect.

    Every requested URL appears exactly once, either in ``connected`` or as
    a key of ``failures``.

    Attributes:
        connected: URLs with a live session after the call.
        failures: URL to human-readable failure reason.
    """

    connected: frozenset[str] = frozenset()
    failures: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "connected", frozenset(self.connected))
        object.__setattr__(self, "failures", MappingProxyType(dict(self.failures)))

    @property
    def all_failed(self) -> bool:
        return not self.connected
