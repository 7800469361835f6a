"""
Validated relay endpoint URL.

Parses and normalizes WebSocket relay URLs with RFC 3986 validation. Only
the secure ``wss://`` scheme is accepted unless the caller explicitly opts
into plain ``ws://`` (local development relays and tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from ._validation import validate_instance


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """Immutable, normalized relay URL.

    Equality and hashing use the normalized ``url`` only, so two endpoints
    built from ``"WSS://Relay.Example.com/"`` and ``"wss://relay.example.com"``
    are the same map key.

    Attributes:
        url: Normalized URL including scheme.
        scheme: ``wss`` (or ``ws`` when ``allow_insecure`` was given).
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit port, or ``None`` when using the scheme default.
        path: Path component without trailing slash, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, or carries
            a query string or fragment.

    Examples:
        ```python
        RelayEndpoint("wss://relay.damus.io/").url   # 'wss://relay.damus.io'
        RelayEndpoint("https://relay.damus.io")      # ValueError
        RelayEndpoint("ws://127.0.0.1:7777", allow_insecure=True).port  # 7777
        ```
    """

    raw_url: str = field(repr=False, compare=False, hash=False)
    allow_insecure: bool = field(default=False, repr=False, compare=False, hash=False)

    url: str = field(init=False)
    scheme: str = field(init=False, compare=False, hash=False)
    host: str = field(init=False, compare=False, hash=False)
    port: int | None = field(init=False, compare=False, hash=False)
    path: str | None = field(init=False, compare=False, hash=False)

    _PORT_WS: ClassVar[int] = 80
    _PORT_WSS: ClassVar[int] = 443

    def __post_init__(self) -> None:
        validate_instance(self.raw_url, str, "relay url")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        parsed = self._parse(self.raw_url, allow_insecure=self.allow_insecure)

        object.__setattr__(self, "url", parsed["url"])
        object.__setattr__(self, "scheme", parsed["scheme"])
        object.__setattr__(self, "host", parsed["host"])
        object.__setattr__(self, "port", parsed["port"])
        object.__setattr__(self, "path", parsed["path"])

    def __str__(self) -> str:
        return self.url

    @staticmethod
    def _parse(raw: str, *, allow_insecure: bool) -> dict[str, Any]:
        """Parse and normalize a raw relay URL string.

        Raises:
            ValueError: If the scheme is not allowed or the URI is invalid.
        """
        uri = uri_reference(raw.strip()).normalize()
        schemes = ("wss", "ws") if allow_insecure else ("wss",)

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes(*schemes)
            .check_validity_of("scheme", "host", "port", "path")
        )

        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError(f"Invalid scheme: must be {' or '.join(schemes)}") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        if not host:
            raise ValueError("Invalid URL: empty host")
        port = int(uri.port) if uri.port else None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        default_port = RelayEndpoint._PORT_WSS if scheme == "wss" else RelayEndpoint._PORT_WS
        if port and port != default_port:
            netloc = f"{formatted_host}:{port}"
        else:
            port = None
            netloc = formatted_host

        return {
            "url": f"{scheme}://{netloc}{path or ''}",
            "scheme": scheme,
            "host": host,
            "port": port,
            "path": path,
        }
